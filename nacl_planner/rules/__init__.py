"""
Rule normalization and partitioning

Exports:
    NetworkACLRule - A single canonical NACL rule
    RuleSubject - Targets of a group of matrix rules
    normalize_rules - Flatten all rule inputs into canonical rules
    partition_rules - Split canonical rules into inline views or a keyed map
    PartitionedRules - Result of partition_rules
"""

from .models import NetworkACLRule, RuleSubject
from .normalizer import normalize_rules, FLAT_LIST_KEY, ALLOW_ALL_EGRESS_KEY
from .partitioner import partition_rules, PartitionedRules, explode_rules

__all__ = [
    'NetworkACLRule',
    'RuleSubject',
    'normalize_rules',
    'partition_rules',
    'PartitionedRules',
    'explode_rules',
    'FLAT_LIST_KEY',
    'ALLOW_ALL_EGRESS_KEY',
]
