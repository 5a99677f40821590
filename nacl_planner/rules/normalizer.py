"""
Rule Normalizer

Flattens the three rule inputs into one ordered list of canonical rules:

    rules        - flat list of rule specs
    rules_map    - name -> list of rule specs
    rule_matrix  - list of subjects, each with its own list of rule specs

Keys are derived deterministically so the same configuration always yields the
same rule identities:

    rules_map["web"][2]          -> "web[2]"      (unless the rule sets 'key')
    rules[0]                     -> "_list_[0]"
    rule_matrix[1], rule 0       -> "_m[1]#[0]"   (subject/rule 'key' replace either part)

Re-ordering an unkeyed list changes the key of every rule after the change,
which the reconciler sees as replacing those rules. Set 'key' on rules that
need stable identity.
"""

import logging
from typing import List

from ..config import ModuleConfig
from ..errors import ConfigurationError
from .models import (
    NetworkACLRule,
    MIN_RULE_NUMBER,
    MAX_RULE_NUMBER,
    parse_rule_spec,
    parse_subject,
)

logger = logging.getLogger(__name__)

# Map key the flat `rules` list is merged under. Callers may not use it.
FLAT_LIST_KEY = "_list_"

ALLOW_ALL_EGRESS_KEY = "_allow_all_egress_"


def _rule_key(spec, default: str, where: str) -> str:
    key = spec.get('key') if isinstance(spec, dict) else None
    if key is None:
        return default
    if not isinstance(key, str) or not key:
        raise ConfigurationError(f"{where}.key", f"expected a non-empty string, got {key!r}")
    return key


def normalize_list_rules(config: ModuleConfig) -> List[NetworkACLRule]:
    """Normalize `rules` and `rules_map` into canonical rules, in input order."""
    if FLAT_LIST_KEY in config.rules_map:
        raise ConfigurationError(
            f"rules_map.{FLAT_LIST_KEY}",
            f"'{FLAT_LIST_KEY}' is reserved for the flat 'rules' list; choose another name",
        )

    merged = {FLAT_LIST_KEY: config.rules}
    merged.update(config.rules_map)

    normalized = []
    for list_name, specs in merged.items():
        source = "rules" if list_name == FLAT_LIST_KEY else f"rules_map.{list_name}"
        for index, spec in enumerate(specs):
            where = f"{source}[{index}]"
            fields = parse_rule_spec(spec, where)
            key = _rule_key(spec, f"{list_name}[{index}]", where)
            normalized.append(NetworkACLRule(key=key, **fields))
    return normalized


def normalize_matrix_rules(config: ModuleConfig) -> List[NetworkACLRule]:
    """
    Normalize `rule_matrix` into canonical (not yet exploded) rules.

    Each rule keeps a reference to its subject; the Partitioner turns it into
    one rule per target.
    """
    normalized = []
    for subject_index, subject_spec in enumerate(config.rule_matrix):
        where = f"rule_matrix[{subject_index}]"
        subject = parse_subject(subject_spec, where)
        subject_key = subject.key or f"_m[{subject_index}]"

        specs = subject_spec.get('rules') or []
        if not isinstance(specs, list):
            raise ConfigurationError(f"{where}.rules", "expected a list of rule specs")

        for rule_index, spec in enumerate(specs):
            rule_where = f"{where}.rules[{rule_index}]"
            fields = parse_rule_spec(spec, rule_where, require_cidr=False)
            rule_key = _rule_key(spec, f"[{rule_index}]", rule_where)
            normalized.append(
                NetworkACLRule(key=f"{subject_key}#{rule_key}", subject=subject, **fields)
            )
    return normalized


def allow_all_egress_rule(rule_number: int) -> NetworkACLRule:
    """Build the convenience rule that allows all outbound IPv4 traffic."""
    if not MIN_RULE_NUMBER <= rule_number <= MAX_RULE_NUMBER:
        raise ConfigurationError(
            "allow_all_egress_rule_number",
            f"{rule_number} is outside {MIN_RULE_NUMBER}-{MAX_RULE_NUMBER}",
        )
    return NetworkACLRule(
        key=ALLOW_ALL_EGRESS_KEY,
        rule_number=rule_number,
        direction='egress',
        protocol='-1',
        action='allow',
        cidr_block='0.0.0.0/0',
        from_port=0,
        to_port=0,
        origin="allow_all_egress",
    )


def normalize_rules(config: ModuleConfig) -> List[NetworkACLRule]:
    """
    Produce the canonical rule sequence for a configuration.

    Order: flat list, named lists (in mapping order), matrix rules, then the
    allow-all-egress rule. A disabled module yields no rules.

    Raises:
        ConfigurationError: If any rule spec is invalid
    """
    if not config.enabled:
        return []

    rules = normalize_list_rules(config)
    rules.extend(normalize_matrix_rules(config))
    if config.allow_all_egress:
        rules.append(allow_all_egress_rule(config.allow_all_egress_rule_number))

    logger.debug("Normalized %d rules", len(rules))
    return rules
