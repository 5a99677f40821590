"""
Plan builder

Runs Normalizer -> Partitioner -> lifecycle resolution -> ACL selection and
assembles the desired-state graph:

    aws_network_acl.this                      (managed ACL only)
    aws_network_acl_rule.this["<key>"]        (resourced mode, one per keyed rule)
    barrier.rules_ready                       (ACL and all its rules exist)
    aws_network_acl_association.this["<id>"]  (managed ACL only, after the barrier)

In create-before-destroy mode the replaced ACL and its rules are only torn
down after the barrier and the associations of the new one, so subnets are never left without an ACL or with half its rules.
"""

import logging
from typing import Callable, Dict, List, Any, Optional

from ..config import ModuleConfig
from ..rules.normalizer import normalize_rules
from ..rules.partitioner import PartitionedRules, partition_rules
from .graph import ResourceNode, serialize_value
from .identity import (
    LifecycleMode,
    NameSuffixState,
    fingerprint_rules,
    next_suffix_state,
    resolve_lifecycle,
    rules_force_new_acl,
    new_salt,
)
from .selection import ManagedNetworkACL, select_network_acl

logger = logging.getLogger(__name__)

RULE_ADDRESS = 'aws_network_acl_rule.this'
ASSOCIATION_ADDRESS = 'aws_network_acl_association.this'
BARRIER_ADDRESS = 'barrier.rules_ready'


class NetworkACLPlan:
    """
    Desired state for one pass.

    Attributes:
        enabled: False when the module is disabled (empty plan)
        mode: Resolved LifecycleMode, None when disabled
        acl: ManagedNetworkACL or ExternalNetworkACL, None when disabled
        rules: PartitionedRules
        nodes: Resource graph in creation order
        suffix_state: NameSuffixState for create-before-destroy, else None
    """

    def __init__(self, enabled, mode=None, acl=None, rules=None, nodes=None, suffix_state=None):
        self.enabled = enabled
        self.mode = mode
        self.acl = acl
        self.rules = rules or PartitionedRules(inline=False)
        self.nodes: List[ResourceNode] = nodes or []
        self.suffix_state: Optional[NameSuffixState] = suffix_state

    @classmethod
    def disabled(cls) -> 'NetworkACLPlan':
        return cls(enabled=False)

    def node(self, address: str) -> Optional[ResourceNode]:
        for node in self.nodes:
            if node.address == address:
                return node
        return None

    @property
    def rule_nodes(self) -> List[ResourceNode]:
        return [node for node in self.nodes if node.kind == 'aws_network_acl_rule']

    def outputs(self) -> Dict[str, Any]:
        if not self.enabled:
            return {
                'network_acl_id': None,
                'network_acl_arn': None,
                'network_acl_name': None,
                'network_acl_tags': {},
                'rule_ids': [],
                'name_suffix_state': None,
            }
        outputs = self.acl.outputs()
        outputs['rule_ids'] = [str(node.ref('id')) for node in self.rule_nodes]
        outputs['name_suffix_state'] = self.suffix_state.to_dict() if self.suffix_state else None
        return outputs

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'enabled': self.enabled,
            'lifecycle': self.mode.value if self.mode else None,
            'outputs': serialize_value(self.outputs()),
            'resources': [node.to_dict() for node in self.nodes],
        }
        data.update(self.rules.to_dict())
        return data


def _rule_address(key: str) -> str:
    return f'{RULE_ADDRESS}["{key}"]'


def build_plan(config: ModuleConfig, salt_factory: Callable[[], str] = new_salt) -> NetworkACLPlan:
    """
    Compute the desired-state plan for a configuration.

    Args:
        config: Validated module configuration
        salt_factory: Source of new name-suffix salts (injectable for tests)

    Returns:
        NetworkACLPlan

    Raises:
        ConfigurationError: If the configuration or any rule is invalid
    """
    if not config.enabled:
        logger.info("Module disabled; planning no resources")
        return NetworkACLPlan.disabled()

    rules = normalize_rules(config)
    partitioned = partition_rules(rules, inline=config.inline_rules_enabled)

    mode = resolve_lifecycle(
        create_before_destroy=config.create_before_destroy,
        preserve_network_acl_id=config.preserve_network_acl_id,
        external=config.uses_external_acl,
    )

    suffix_state = None
    if rules_force_new_acl(mode):
        digest = fingerprint_rules(partitioned.keyed)
        previous = NameSuffixState.from_dict(config.previous_name_suffix)
        suffix_state = next_suffix_state(previous, digest, salt_factory)

    acl = select_network_acl(config, mode, partitioned, suffix_state)
    managed = isinstance(acl, ManagedNetworkACL)

    nodes = []
    acl_dependency = []
    if managed:
        nodes.append(acl.node)
        acl_dependency = [acl.node.address]

    cbd = mode is LifecycleMode.CREATE_BEFORE_DESTROY
    rule_nodes = []
    for key, rule in partitioned.keyed.items():
        attributes = {'network_acl_id': acl.network_acl_id}
        attributes.update(rule.to_resource_args())
        node = ResourceNode(
            address=_rule_address(key),
            kind='aws_network_acl_rule',
            attributes=attributes,
            depends_on=acl_dependency,
            create_before_destroy=cbd,
        )
        nodes.append(node)
        rule_nodes.append(node)
    rule_addresses = [node.address for node in rule_nodes]

    nodes.append(ResourceNode(
        address=BARRIER_ADDRESS,
        kind='completion_barrier',
        depends_on=acl_dependency + rule_addresses,
    ))

    association_addresses = []
    if managed:
        for subnet_id in config.subnet_ids:
            node = ResourceNode(
                address=f'{ASSOCIATION_ADDRESS}["{subnet_id}"]',
                kind='aws_network_acl_association',
                attributes={'network_acl_id': acl.network_acl_id, 'subnet_id': subnet_id},
                depends_on=[BARRIER_ADDRESS],
                create_before_destroy=cbd,
            )
            nodes.append(node)
            association_addresses.append(node.address)
    elif config.subnet_ids:
        logger.warning(
            "subnet_ids are ignored when attaching rules to existing network ACL %s",
            acl.network_acl_id,
        )

    # Only a create-before-destroy replacement keeps the old ACL and its rules
    # until the new ACL is wired to every subnet
    if cbd:
        if managed:
            acl.node.destroy_after = [BARRIER_ADDRESS] + association_addresses
        for node in rule_nodes:
            node.destroy_after = [BARRIER_ADDRESS] + association_addresses

    logger.info(
        "Planned network ACL %s (%s): %d rule resources, %d inline rules, %d subnet associations",
        acl.name or acl.network_acl_id,
        mode.value,
        len(rule_addresses),
        len(partitioned.ingress) + len(partitioned.egress),
        len(association_addresses),
    )
    return NetworkACLPlan(
        enabled=True,
        mode=mode,
        acl=acl,
        rules=partitioned,
        nodes=nodes,
        suffix_state=suffix_state,
    )
