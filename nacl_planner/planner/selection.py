"""
ACL Selection

Resolves which ACL the rules belong to. `select_network_acl` is the single
factory: it returns a ManagedNetworkACL in one of the two lifecycle flavors,
or an ExternalNetworkACL wrapping the caller's id. Every rule resource reads
its `network_acl_id` from the returned object.
"""

from typing import Dict, Any, Optional

from ..config import ModuleConfig
from ..errors import ConfigurationError
from ..rules.partitioner import PartitionedRules
from .graph import ResourceNode, ResourceRef
from .identity import LifecycleMode, NameSuffixState, rules_force_new_acl

NETWORK_ACL_ADDRESS = "aws_network_acl.this"


class ManagedNetworkACL:
    """An ACL created by the plan."""

    def __init__(self, mode: LifecycleMode, name: str, tags: Dict[str, str], node: ResourceNode):
        self.mode = mode
        self.name = name
        self.tags = tags
        self.node = node

    @property
    def network_acl_id(self) -> ResourceRef:
        return self.node.ref('id')

    @property
    def network_acl_arn(self) -> ResourceRef:
        return self.node.ref('arn')

    def outputs(self) -> Dict[str, Any]:
        return {
            'network_acl_id': str(self.network_acl_id),
            'network_acl_arn': str(self.network_acl_arn),
            'network_acl_name': self.name,
            'network_acl_tags': self.tags,
        }


class ExternalNetworkACL:
    """An existing ACL, referenced by id. The plan never creates or names it."""

    mode = LifecycleMode.EXTERNAL
    node = None
    name = None
    network_acl_arn = None

    def __init__(self, network_acl_id: str):
        self.network_acl_id = network_acl_id
        self.tags = {}

    def outputs(self) -> Dict[str, Any]:
        return {
            'network_acl_id': self.network_acl_id,
            'network_acl_arn': None,
            'network_acl_name': None,
            'network_acl_tags': {},
        }


def network_acl_name(config: ModuleConfig, mode: LifecycleMode, suffix_state: Optional[NameSuffixState]) -> str:
    """
    Name of a managed ACL.

    `network_acl_name` overrides the module name. When rule changes force a new
    ACL, the name is used as a prefix for the content-derived suffix.
    """
    base = config.network_acl_name or config.name
    if rules_force_new_acl(mode):
        if suffix_state is None:
            raise ValueError("create-before-destroy naming needs a suffix state")
        return f"{base}-{suffix_state.suffix}"
    return base


def select_network_acl(
    config: ModuleConfig,
    mode: LifecycleMode,
    partitioned: PartitionedRules,
    suffix_state: Optional[NameSuffixState] = None,
):
    """
    Build the ACL the rules attach to.

    Args:
        config: Module configuration
        mode: Resolved lifecycle mode
        partitioned: Partitioned rules; inline views are embedded in the ACL
        suffix_state: Name suffix state, required for CREATE_BEFORE_DESTROY

    Returns:
        ManagedNetworkACL or ExternalNetworkACL

    Raises:
        ConfigurationError: If inline rules are requested for an existing ACL
    """
    if mode is LifecycleMode.EXTERNAL:
        if partitioned.inline:
            raise ConfigurationError(
                "inline_rules_enabled",
                "rules cannot be embedded in an existing network ACL; disable inline rules to attach them as rule resources",
            )
        return ExternalNetworkACL(config.target_network_acl_id)

    name = network_acl_name(config, mode, suffix_state)
    tags = dict(config.tags)
    tags['Name'] = name

    attributes = {
        'vpc_id': config.vpc_id,
        'tags': tags,
        'timeouts': {
            'create': config.network_acl_create_timeout,
            'delete': config.network_acl_delete_timeout,
        },
    }
    if partitioned.inline:
        attributes['ingress'] = [rule.to_resource_args() for rule in partitioned.ingress]
        attributes['egress'] = [rule.to_resource_args() for rule in partitioned.egress]

    node = ResourceNode(
        address=NETWORK_ACL_ADDRESS,
        kind='aws_network_acl',
        attributes=attributes,
        create_before_destroy=mode is LifecycleMode.CREATE_BEFORE_DESTROY,
    )
    return ManagedNetworkACL(mode=mode, name=name, tags=tags, node=node)
