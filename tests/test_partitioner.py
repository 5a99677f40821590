"""
Unit Tests for the Rule Partitioner

Verifies matrix explosion, inline/resourced mode exclusivity and the
uniqueness checks on rule keys and rule numbers.
"""

import sys
from pathlib import Path

import pytest

# Add repository root to Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nacl_planner.config import ModuleConfig
from nacl_planner.errors import ConfigurationError, DuplicateRuleKeyError, DuplicateRuleNumberError
from nacl_planner.rules.normalizer import normalize_rules
from nacl_planner.rules.partitioner import partition_rules


POSTGRES_RULE = {
    "rule_number": 200, "type": "ingress", "protocol": "tcp", "action": "allow",
    "from_port": 5432, "to_port": 5432,
}


def partition(inline=False, **inputs):
    data = {"vpc_id": "vpc-0abc", "allow_all_egress": False}
    data.update(inputs)
    config = ModuleConfig.from_dict(data)
    return partition_rules(normalize_rules(config), inline=inline)


def test_self_subject_explodes_to_one_rule():
    """
    Verifies:
        - A self-targeting matrix rule produces exactly one rule
        - Its key ends in '#self' and it carries no CIDR
    """
    result = partition(rule_matrix=[{"self": True, "rules": [POSTGRES_RULE]}])

    assert list(result.keyed) == ["_m[0]#[0]#self"]
    rule = result.keyed["_m[0]#[0]#self"]
    assert rule.self_target is True
    assert rule.cidr_block is None and rule.ipv6_cidr_block is None
    assert rule.to_resource_args()["self"] is True
    assert rule.subject is None

    print("✓ Self subject explosion test passed")


def test_cidr_subject_explodes_per_target():
    """
    Verifies:
        - Three CIDR blocks produce three rules with distinct index suffixes
        - No '#self' rule is emitted
        - Rule numbers stay unique within the direction
    """
    result = partition(rule_matrix=[{
        "key": "app",
        "cidr_blocks": ["10.1.0.0/16", "10.2.0.0/16", "10.3.0.0/16"],
        "rules": [dict(POSTGRES_RULE, key="pg")],
    }])

    assert list(result.keyed) == ["app#pg#0", "app#pg#1", "app#pg#2"]
    assert not any(key.endswith("#self") for key in result.keyed)
    assert [r.cidr_block for r in result.keyed.values()] == ["10.1.0.0/16", "10.2.0.0/16", "10.3.0.0/16"]
    assert [r.rule_number for r in result.keyed.values()] == [200, 201, 202]

    print("✓ CIDR subject explosion test passed")


def test_mixed_targets_are_indexed_in_order():
    result = partition(rule_matrix=[{
        "key": "peers",
        "cidr_blocks": ["10.1.0.0/16"],
        "ipv6_cidr_blocks": ["2001:db8::/32"],
        "prefix_list_ids": ["pl-0123"],
        "rules": [dict(POSTGRES_RULE, key="pg")],
    }])

    first, second, third = result.keyed["peers#pg#0"], result.keyed["peers#pg#1"], result.keyed["peers#pg#2"]
    assert first.cidr_block == "10.1.0.0/16" and first.ipv6_cidr_block is None
    assert second.ipv6_cidr_block == "2001:db8::/32" and second.cidr_block is None
    assert third.prefix_list_id == "pl-0123" and third.cidr_block is None


def test_key_count_matches_rule_target_pairs():
    result = partition(
        rules=[{"key": "ssh", "rule_number": 100, "type": "ingress", "protocol": "tcp", "action": "allow",
                "cidr_block": "10.0.0.0/8", "from_port": 22, "to_port": 22}],
        rule_matrix=[
            {"key": "a", "cidr_blocks": ["10.1.0.0/16", "10.2.0.0/16"],
             "rules": [POSTGRES_RULE, dict(POSTGRES_RULE, rule_number=300, type="egress")]},
            {"key": "b", "self": True, "rules": [dict(POSTGRES_RULE, rule_number=400)]},
        ],
    )

    # 1 list rule + 2 rules x 2 targets + 1 self rule
    assert len(result.keyed) == 1 + 4 + 1


def test_self_with_lists_is_ambiguous():
    with pytest.raises(ConfigurationError) as excinfo:
        partition(rule_matrix=[{"self": True, "cidr_blocks": ["10.1.0.0/16"], "rules": [POSTGRES_RULE]}])

    assert excinfo.value.field == "rule_matrix[0]"
    assert "'self'" in str(excinfo.value)


def test_subject_without_targets_is_rejected():
    with pytest.raises(ConfigurationError):
        partition(rule_matrix=[{"key": "nobody", "rules": [POSTGRES_RULE]}])


@pytest.mark.parametrize("targets, field", [
    ({"prefix_list_ids": "pl-12"}, "rule_matrix[0].prefix_list_ids"),
    ({"cidr_blocks": "10.1.0.0/16"}, "rule_matrix[0].cidr_blocks"),
    ({"ipv6_cidr_blocks": 5}, "rule_matrix[0].ipv6_cidr_blocks"),
    ({"self": "false", "cidr_blocks": ["10.1.0.0/16"]}, "rule_matrix[0].self"),
])
def test_subject_target_fields_are_type_checked(targets, field):
    """
    Verifies:
        - A bare string is not split into one target per character
        - Non-list targets and non-boolean 'self' are configuration errors
    """
    subject = dict(targets, key="p", rules=[dict(POSTGRES_RULE, key="r")])

    with pytest.raises(ConfigurationError) as excinfo:
        partition(rule_matrix=[subject])

    assert excinfo.value.field == field


def test_self_false_with_lists_explodes_per_target():
    result = partition(rule_matrix=[{
        "key": "p", "self": False, "prefix_list_ids": ["pl-12"], "rules": [dict(POSTGRES_RULE, key="r")],
    }])

    assert list(result.keyed) == ["p#r#0"]
    assert result.keyed["p#r#0"].prefix_list_id == "pl-12"


def test_inline_mode_has_no_keyed_rules():
    """
    Verifies:
        - Inline mode fills the ingress/egress views and leaves the keyed map empty
        - Input order is preserved within each direction
    """
    result = partition(
        inline=True,
        rules=[
            {"key": "https", "rule_number": 110, "type": "ingress", "protocol": "tcp", "action": "allow",
             "cidr_block": "0.0.0.0/0", "from_port": 443, "to_port": 443},
            {"key": "out", "rule_number": 100, "type": "egress", "protocol": "-1", "action": "allow",
             "cidr_block": "0.0.0.0/0"},
            {"key": "ssh", "rule_number": 100, "type": "ingress", "protocol": "tcp", "action": "allow",
             "cidr_block": "10.0.0.0/8", "from_port": 22, "to_port": 22},
        ],
    )

    assert result.keyed == {}
    assert [r.key for r in result.ingress] == ["https", "ssh"]
    assert [r.key for r in result.egress] == ["out"]

    print("✓ Inline mode exclusivity test passed")


def test_resourced_mode_has_no_inline_views():
    result = partition(rules=[{"key": "ssh", "rule_number": 100, "type": "ingress", "protocol": "tcp",
                               "action": "allow", "cidr_block": "10.0.0.0/8", "from_port": 22, "to_port": 22}])

    assert result.ingress == [] and result.egress == []
    assert list(result.keyed) == ["ssh"]


def test_duplicate_keys_fail():
    ssh = {"key": "ssh", "rule_number": 100, "type": "ingress", "protocol": "tcp", "action": "allow",
           "cidr_block": "10.0.0.0/8", "from_port": 22, "to_port": 22}

    with pytest.raises(DuplicateRuleKeyError) as excinfo:
        partition(rules=[ssh], rules_map={"admin": [dict(ssh, rule_number=101)]})

    assert excinfo.value.key == "ssh"
    assert "rules[0]" in str(excinfo.value)
    assert "rules_map.admin[0]" in str(excinfo.value)


def test_duplicate_rule_numbers_fail_within_direction_only():
    ingress = {"rule_number": 100, "type": "ingress", "protocol": "-1", "action": "allow", "cidr_block": "10.0.0.0/8"}

    with pytest.raises(DuplicateRuleNumberError) as excinfo:
        partition(rules=[ingress, dict(ingress, cidr_block="10.1.0.0/16")])
    assert excinfo.value.direction == "ingress"
    assert excinfo.value.rule_number == 100

    result = partition(rules=[ingress, dict(ingress, type="egress")])
    assert len(result.keyed) == 2


def test_partitioning_is_idempotent():
    inputs = dict(
        rules=[{"rule_number": 100, "type": "ingress", "protocol": "tcp", "action": "allow",
                "cidr_block": "10.0.0.0/8", "from_port": 22, "to_port": 22}],
        rule_matrix=[{"cidr_blocks": ["10.1.0.0/16", "10.2.0.0/16"], "rules": [POSTGRES_RULE]}],
    )

    assert partition(**inputs).to_dict() == partition(**inputs).to_dict()


if __name__ == "__main__":
    test_self_subject_explodes_to_one_rule()
    test_cidr_subject_explodes_per_target()
    test_mixed_targets_are_indexed_in_order()
    test_key_count_matches_rule_target_pairs()
    test_self_with_lists_is_ambiguous()
    test_subject_without_targets_is_rejected()
    test_self_false_with_lists_explodes_per_target()
    test_inline_mode_has_no_keyed_rules()
    test_resourced_mode_has_no_inline_views()
    test_duplicate_keys_fail()
    test_duplicate_rule_numbers_fail_within_direction_only()
    test_partitioning_is_idempotent()
    print("\nAll tests passed!")
