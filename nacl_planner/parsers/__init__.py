"""
Readers for live Network ACL configuration

Exports:
    AWSNetworkACLParser - Loads Network ACLs from the AWS EC2 API
    NetworkACL - A live Network ACL with its entries
    compare_with_plan - Drift between a live Network ACL and a plan
"""

from .aws_network_acls import (
    AWSNetworkACLParser,
    NetworkACL,
    compare_with_plan,
)

__all__ = [
    'AWSNetworkACLParser',
    'NetworkACL',
    'compare_with_plan',
]
