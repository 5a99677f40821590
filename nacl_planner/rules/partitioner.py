"""
Rule Partitioner

Turns the canonical rule sequence into what the plan consumes:

- inline mode: ordered ingress and egress views, embedded in the ACL itself
- resourced mode: a key -> rule mapping, one independent rule resource each

Matrix rules are exploded into one rule per target first. A subject marked
`self` gives one rule keyed "<key>#self"; a subject with lists gives one rule
per listed target keyed "<key>#<target index>". Exploded target i uses rule
number `rule_number + i` so the rules stay distinct within their direction.
"""

import logging
from typing import Dict, List, Iterable

from ..errors import ConfigurationError, DuplicateRuleKeyError, DuplicateRuleNumberError
from .models import NetworkACLRule, MAX_RULE_NUMBER

logger = logging.getLogger(__name__)


class PartitionedRules:
    """
    Result of partitioning.

    Exactly one side is populated: `ingress`/`egress` in inline mode, `keyed`
    in resourced mode.
    """

    def __init__(
        self,
        inline: bool,
        ingress: List[NetworkACLRule] = None,
        egress: List[NetworkACLRule] = None,
        keyed: Dict[str, NetworkACLRule] = None,
    ):
        self.inline = inline
        self.ingress = ingress or []
        self.egress = egress or []
        self.keyed = keyed or {}

    def all_rules(self) -> List[NetworkACLRule]:
        if self.inline:
            return self.ingress + self.egress
        return list(self.keyed.values())

    def to_dict(self):
        return {
            'inline_rules_enabled': self.inline,
            'all_ingress_rules': [rule.to_dict() for rule in self.ingress],
            'all_egress_rules': [rule.to_dict() for rule in self.egress],
            'keyed_resource_rules': {key: rule.to_dict() for key, rule in self.keyed.items()},
        }


def explode_rule(rule: NetworkACLRule) -> List[NetworkACLRule]:
    """
    Bind a matrix rule to each of its concrete targets.

    Non-matrix rules are returned unchanged as a one-element list.
    """
    if not rule.is_matrix:
        return [rule]

    subject = rule.subject
    if subject.self_target:
        return [rule.copy(key=f"{rule.key}#self", self_target=True, subject=None)]

    exploded = []
    for index, (field, value) in enumerate(subject.targets()):
        rule_number = rule.rule_number + index
        if rule_number > MAX_RULE_NUMBER:
            raise ConfigurationError(
                f"{rule.origin}.rule_number",
                f"target {index} of rule '{rule.key}' would need rule number {rule_number}, "
                f"above {MAX_RULE_NUMBER}",
            )
        exploded.append(
            rule.copy(
                key=f"{rule.key}#{index}",
                rule_number=rule_number,
                subject=None,
                **{field: value},
            )
        )
    return exploded


def explode_rules(rules: Iterable[NetworkACLRule]) -> List[NetworkACLRule]:
    exploded = []
    for rule in rules:
        exploded.extend(explode_rule(rule))
    return exploded


def check_unique_keys(rules: Iterable[NetworkACLRule]) -> Dict[str, NetworkACLRule]:
    """
    Index rules by key, failing on the first collision.

    Raises:
        DuplicateRuleKeyError: If two rules share a key
    """
    keyed = {}
    for rule in rules:
        existing = keyed.get(rule.key)
        if existing is not None:
            raise DuplicateRuleKeyError(rule.key, existing.origin, rule.origin)
        keyed[rule.key] = rule
    return keyed


def check_unique_rule_numbers(rules: Iterable[NetworkACLRule]) -> None:
    """
    Raises:
        DuplicateRuleNumberError: If two rules in one direction share a rule number
    """
    seen = {}
    for rule in rules:
        slot = (rule.direction, rule.rule_number)
        if slot in seen:
            raise DuplicateRuleNumberError(rule.direction, rule.rule_number, [seen[slot].key, rule.key])
        seen[slot] = rule


def partition_rules(rules: List[NetworkACLRule], inline: bool) -> PartitionedRules:
    """
    Partition canonical rules for inline or resourced use.

    Args:
        rules: Canonical rules from the Normalizer
        inline: True to embed rules in the ACL, False for standalone rule resources

    Returns:
        PartitionedRules with either the inline views or the keyed map populated

    Raises:
        DuplicateRuleKeyError: If two exploded rules share a key
        DuplicateRuleNumberError: If two rules collide within a direction
    """
    exploded = explode_rules(rules)
    keyed = check_unique_keys(exploded)
    check_unique_rule_numbers(exploded)

    if inline:
        ingress = [rule for rule in exploded if not rule.is_egress]
        egress = [rule for rule in exploded if rule.is_egress]
        logger.debug("Partitioned %d inline rules (%d ingress, %d egress)", len(exploded), len(ingress), len(egress))
        return PartitionedRules(inline=True, ingress=ingress, egress=egress)

    logger.debug("Partitioned %d keyed rule resources", len(keyed))
    return PartitionedRules(inline=False, keyed=keyed)
