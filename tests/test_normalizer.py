"""
Unit Tests for the Rule Normalizer

Verifies that the flat list, the named lists and the rule matrix are flattened
into canonical rules with deterministic keys, and that invalid rule specs are
rejected with a diagnostic naming the offending input.
"""

import sys
from pathlib import Path

import pytest

# Add repository root to Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nacl_planner.config import ModuleConfig
from nacl_planner.errors import ConfigurationError
from nacl_planner.rules.normalizer import normalize_rules, ALLOW_ALL_EGRESS_KEY, FLAT_LIST_KEY


SSH_RULE = {
    "rule_number": 100, "type": "ingress", "protocol": "tcp", "action": "allow",
    "cidr_block": "10.0.0.0/8", "from_port": 22, "to_port": 22,
}
HTTPS_RULE = {
    "rule_number": 110, "type": "ingress", "protocol": "tcp", "action": "allow",
    "cidr_block": "0.0.0.0/0", "from_port": 443, "to_port": 443,
}
EPHEMERAL_RULE = {
    "rule_number": 120, "type": "ingress", "protocol": "tcp", "action": "allow",
    "ipv6_cidr_block": "::/0", "from_port": 1024, "to_port": 65535,
}
DENY_RULE = {
    "rule_number": 90, "type": "ingress", "protocol": "-1", "action": "deny",
    "cidr_block": "192.168.0.0/16",
}


def make_config(**overrides) -> ModuleConfig:
    data = {"vpc_id": "vpc-0abc"}
    data.update(overrides)
    return ModuleConfig.from_dict(data)


def test_output_count_is_sum_of_inputs():
    """
    Verifies:
        - Every input rule produces exactly one canonical rule
        - The allow-all-egress rule adds one more
    """
    config = make_config(
        rules=[SSH_RULE, HTTPS_RULE],
        rules_map={"web": [EPHEMERAL_RULE, DENY_RULE], "db": [dict(SSH_RULE, rule_number=130)]},
        rule_matrix=[{
            "key": "peers",
            "cidr_blocks": ["10.1.0.0/16"],
            "rules": [
                {"rule_number": 300, "type": "ingress", "protocol": "tcp", "action": "allow", "from_port": 5432, "to_port": 5432},
                {"rule_number": 300, "type": "egress", "protocol": "tcp", "action": "allow", "from_port": 1024, "to_port": 65535},
            ],
        }],
    )

    rules = normalize_rules(config)

    assert len(rules) == 2 + 3 + 2 + 1
    assert rules[-1].key == ALLOW_ALL_EGRESS_KEY

    config = make_config(rules=[SSH_RULE], allow_all_egress=False)
    assert len(normalize_rules(config)) == 1

    print("✓ Normalizer output count test passed")


def test_synthesized_keys():
    """Unkeyed rules are keyed by container name and index, keyed rules keep theirs."""
    config = make_config(
        rules=[SSH_RULE, dict(HTTPS_RULE, key="https")],
        rules_map={"web": [EPHEMERAL_RULE, DENY_RULE]},
        rule_matrix=[
            {"self": True, "rules": [{"rule_number": 200, "type": "ingress", "protocol": "-1", "action": "allow"}]},
            {"key": "peers", "cidr_blocks": ["10.1.0.0/16"],
             "rules": [{"key": "pg", "rule_number": 300, "type": "ingress", "protocol": "tcp", "action": "allow"}]},
        ],
        allow_all_egress=False,
    )

    keys = [rule.key for rule in normalize_rules(config)]

    assert keys == [
        f"{FLAT_LIST_KEY}[0]",
        "https",
        "web[0]",
        "web[1]",
        "_m[0]#[0]",
        "peers#pg",
    ]


def test_reordering_unkeyed_list_changes_later_keys():
    first = normalize_rules(make_config(rules=[SSH_RULE, HTTPS_RULE], allow_all_egress=False))
    second = normalize_rules(make_config(rules=[HTTPS_RULE, SSH_RULE], allow_all_egress=False))

    assert first[0].key == second[0].key == "_list_[0]"
    assert first[0].rule_number != second[0].rule_number


def test_reserved_flat_list_key_is_rejected():
    config = make_config(rules_map={FLAT_LIST_KEY: [SSH_RULE]})

    with pytest.raises(ConfigurationError) as excinfo:
        normalize_rules(config)

    assert excinfo.value.field == f"rules_map.{FLAT_LIST_KEY}"
    assert "reserved" in str(excinfo.value)


def test_disabled_module_produces_no_rules():
    config = ModuleConfig(enabled=False, rules=[SSH_RULE], allow_all_egress=True)
    assert normalize_rules(config) == []

    config = ModuleConfig.from_dict({"enabled": False, "rules": [{"bogus": True}]})
    assert normalize_rules(config) == []

    print("✓ Disabled module test passed")


def test_allow_all_egress_rule():
    config = make_config(allow_all_egress_rule_number=250)

    rules = normalize_rules(config)

    assert len(rules) == 1
    rule = rules[0]
    assert rule.to_dict() == {
        "key": "_allow_all_egress_",
        "rule_number": 250,
        "type": "egress",
        "protocol": "-1",
        "action": "allow",
        "cidr_block": "0.0.0.0/0",
        "ipv6_cidr_block": None,
        "from_port": 0,
        "to_port": 0,
    }


def test_aliases_and_protocol_normalization():
    config = make_config(
        rules=[{"key": "all", "number": 100, "direction": "ingress", "protocol": "ALL",
                "rule_action": "Deny", "cidr_block": "10.0.0.0/8"}],
        allow_all_egress=False,
    )

    rule = normalize_rules(config)[0]

    assert rule.rule_number == 100
    assert rule.direction == "ingress"
    assert rule.protocol == "-1"
    assert rule.action == "deny"


def test_icmp_rules_keep_type_and_code():
    config = make_config(
        rules=[
            {"key": "ping", "rule_number": 140, "type": "ingress", "protocol": "icmp", "action": "allow",
             "cidr_block": "10.0.0.0/8", "icmp_type": 8, "icmp_code": 0},
            {"key": "icmp-any", "rule_number": 150, "type": "ingress", "protocol": "1", "action": "allow",
             "cidr_block": "10.0.0.0/8"},
        ],
        allow_all_egress=False,
    )

    ping, icmp_any = normalize_rules(config)

    assert ping.to_resource_args()["icmp_type"] == 8
    assert ping.to_resource_args()["icmp_code"] == 0
    assert icmp_any.icmp_type == -1 and icmp_any.icmp_code == -1
    assert ping.to_entry()["IcmpTypeCode"] == {"Type": 8, "Code": 0}
    assert "PortRange" not in ping.to_entry()


@pytest.mark.parametrize("spec, field", [
    ({k: v for k, v in SSH_RULE.items() if k != "rule_number"}, "rules[0].rule_number"),
    (dict(SSH_RULE, rule_number=40000), "rules[0].rule_number"),
    (dict(SSH_RULE, rule_number=100.7), "rules[0].rule_number"),
    (dict(SSH_RULE, type="sideways"), "rules[0].type"),
    (dict(SSH_RULE, action="permit"), "rules[0].action"),
    (dict(SSH_RULE, protocol=""), "rules[0].protocol"),
    (dict(SSH_RULE, cidr_block="10.0.0.300/8"), "rules[0].cidr_block"),
    (dict(SSH_RULE, cidr_block="::/0"), "rules[0].cidr_block"),
    (dict(SSH_RULE, ipv6_cidr_block="::/0"), "rules[0]"),
    ({k: v for k, v in SSH_RULE.items() if k != "cidr_block"}, "rules[0]"),
    (dict(SSH_RULE, from_port=23, to_port=22), "rules[0].from_port"),
])
def test_invalid_rule_specs(spec, field):
    config = make_config(rules=[spec])

    with pytest.raises(ConfigurationError) as excinfo:
        normalize_rules(config)

    assert excinfo.value.field == field


def test_matrix_rule_with_cidr_is_rejected():
    config = make_config(rule_matrix=[{"self": True, "rules": [dict(SSH_RULE)]}])

    with pytest.raises(ConfigurationError) as excinfo:
        normalize_rules(config)

    assert excinfo.value.field == "rule_matrix[0].rules[0]"


if __name__ == "__main__":
    test_output_count_is_sum_of_inputs()
    test_synthesized_keys()
    test_reordering_unkeyed_list_changes_later_keys()
    test_reserved_flat_list_key_is_rejected()
    test_disabled_module_produces_no_rules()
    test_allow_all_egress_rule()
    test_aliases_and_protocol_normalization()
    test_icmp_rules_keep_type_and_code()
    test_matrix_rule_with_cidr_is_rejected()
    print("\nAll tests passed!")
