"""
Lifecycle resolution, ACL selection and plan building

Exports:
    build_plan - Compute the desired-state plan for a configuration
    NetworkACLPlan - Result of build_plan
    LifecycleMode - CREATE_BEFORE_DESTROY, DESTROY_BEFORE_CREATE or EXTERNAL
    NameSuffixState - Content digest and salt behind a managed ACL's name suffix
"""

from .identity import LifecycleMode, NameSuffixState, fingerprint_rules, resolve_lifecycle
from .plan import build_plan, NetworkACLPlan
from .selection import ManagedNetworkACL, ExternalNetworkACL, select_network_acl

__all__ = [
    'build_plan',
    'NetworkACLPlan',
    'LifecycleMode',
    'NameSuffixState',
    'fingerprint_rules',
    'resolve_lifecycle',
    'ManagedNetworkACL',
    'ExternalNetworkACL',
    'select_network_acl',
]
