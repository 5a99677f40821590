"""
Reader for live AWS Network ACLs

Loads existing Network ACLs from the EC2 API and compares their entries with a
plan. This is read-only: nothing here creates, modifies or deletes provider
resources.

Classes:
    NetworkACL: A live Network ACL with its entries as canonical rules
    AWSNetworkACLParser: Loads Network ACLs from AWS

Functions:
    compare_with_plan: Drift between a live Network ACL and a plan
"""

import logging
from typing import Dict, List, Any, Optional

import boto3

from ..config import get_default_region, get_default_profile
from ..rules.models import NetworkACLRule

logger = logging.getLogger(__name__)

# Catch-all deny rule AWS adds to every Network ACL
DEFAULT_RULE_NUMBER = 32767


def parse_entry(entry: Dict[str, Any]) -> NetworkACLRule:
    """
    Build a canonical rule from a `describe_network_acls` entry.

    Live entries have no configured key, so the key is '<direction>#<number>'.
    """
    direction = 'egress' if entry.get('Egress', False) else 'ingress'
    rule_number = entry.get('RuleNumber', 0)
    port_range = entry.get('PortRange') or {}
    icmp = entry.get('IcmpTypeCode') or {}
    return NetworkACLRule(
        key=f"{direction}#{rule_number}",
        rule_number=rule_number,
        direction=direction,
        protocol=str(entry.get('Protocol', '-1')),
        action=entry.get('RuleAction', 'deny'),
        cidr_block=entry.get('CidrBlock') or None,
        ipv6_cidr_block=entry.get('Ipv6CidrBlock') or None,
        from_port=port_range.get('From', 0),
        to_port=port_range.get('To', 0),
        icmp_type=icmp.get('Type'),
        icmp_code=icmp.get('Code'),
        origin='live',
    )


class NetworkACL:
    """
    Represents a live AWS Network ACL.
    """

    def __init__(self, acl_data: Dict[str, Any]):
        """
        Initialize a Network ACL from AWS API response.

        Args:
            acl_data: Dictionary from AWS describe_network_acls API response
        """
        self.acl_id = acl_data['NetworkAclId']
        self.vpc_id = acl_data.get('VpcId', '')
        self.is_default = acl_data.get('IsDefault', False)
        self.subnet_ids = [a['SubnetId'] for a in acl_data.get('Associations', []) if a.get('SubnetId')]
        self.tags = {tag['Key']: tag['Value'] for tag in acl_data.get('Tags', [])}

        entries = [
            parse_entry(entry) for entry in acl_data.get('Entries', [])
            if entry.get('RuleNumber') != DEFAULT_RULE_NUMBER
        ]
        self.ingress_rules = [rule for rule in entries if not rule.is_egress]
        self.egress_rules = [rule for rule in entries if rule.is_egress]

    @property
    def name(self) -> Optional[str]:
        return self.tags.get('Name')

    def get_all_rules(self) -> List[NetworkACLRule]:
        return self.ingress_rules + self.egress_rules

    def to_dict(self) -> Dict[str, Any]:
        return {
            'acl_id': self.acl_id,
            'vpc_id': self.vpc_id,
            'is_default': self.is_default,
            'tags': self.tags,
            'subnet_ids': self.subnet_ids,
            'ingress_rules': [rule.to_entry() for rule in self.ingress_rules],
            'egress_rules': [rule.to_entry() for rule in self.egress_rules],
        }


class AWSNetworkACLParser:
    """
    Loads Network ACLs directly from the AWS EC2 API.
    """

    def __init__(self, aws_region: Optional[str] = None, aws_profile: Optional[str] = None):
        """
        Args:
            aws_region: AWS region (defaults to AWS_DEFAULT_REGION, the profile's region, or us-east-1)
            aws_profile: AWS profile name for credentials (defaults to AWS_PROFILE)
        """
        self.aws_profile = aws_profile or get_default_profile()
        self.aws_region = aws_region or get_default_region(self.aws_profile)
        self.network_acls: Dict[str, NetworkACL] = {}

    def _get_ec2_client(self):
        """Get boto3 EC2 client with configured credentials."""
        session_kwargs = {}
        if self.aws_profile:
            session_kwargs['profile_name'] = self.aws_profile

        session = boto3.Session(**session_kwargs)
        return session.client('ec2', region_name=self.aws_region)

    def load_from_aws(self, vpc_id: Optional[str] = None, network_acl_ids: Optional[List[str]] = None) -> Dict[str, NetworkACL]:
        """
        Load Network ACLs from AWS.

        Args:
            vpc_id: Load all Network ACLs of a VPC
            network_acl_ids: Load specific Network ACLs by id

        Returns:
            Dictionary of Network ACL id to NetworkACL

        Raises:
            NoCredentialsError: If AWS credentials are not configured
            ClientError: If the AWS API call fails (e.g. unknown ACL id)
        """
        ec2_client = self._get_ec2_client()

        if network_acl_ids:
            response = ec2_client.describe_network_acls(NetworkAclIds=network_acl_ids)
        elif vpc_id:
            response = ec2_client.describe_network_acls(Filters=[{'Name': 'vpc-id', 'Values': [vpc_id]}])
        else:
            response = ec2_client.describe_network_acls()

        self.network_acls = {}
        for acl_data in response.get('NetworkAcls', []):
            acl = NetworkACL(acl_data)
            self.network_acls[acl.acl_id] = acl

        logger.info("Loaded %d network ACLs from %s", len(self.network_acls), self.aws_region)
        return self.network_acls

    def get_network_acl(self, network_acl_id: str) -> Optional[NetworkACL]:
        """Load a single Network ACL, or None if AWS returned nothing for it."""
        return self.load_from_aws(network_acl_ids=[network_acl_id]).get(network_acl_id)


def compare_with_plan(acl: NetworkACL, plan) -> Dict[str, Any]:
    """
    Compare a live Network ACL with the rules a plan wants on it.

    Entries are matched by (direction, rule number), which is how AWS
    identifies them. Rules targeting the ACL itself or a prefix list have no
    CIDR in the planned entry, so they are listed as unverified and their
    slots are neither compared nor reported as unexpected.

    Args:
        acl: Live NetworkACL
        plan: NetworkACLPlan

    Returns:
        Dictionary with:
            - missing: planned entries absent from the live ACL
            - unexpected: live entries the plan does not contain
            - changed: entries present on both sides with different content
            - unverified: keys of planned rules whose target cannot be compared
            - in_sync: True when missing, unexpected and changed are empty
    """
    desired = {}
    unverified = []
    reserved = set()
    for rule in plan.rules.all_rules():
        slot = (rule.direction, rule.rule_number)
        if rule.cidr_block or rule.ipv6_cidr_block:
            desired[slot] = rule
        else:
            unverified.append(rule.key)
            reserved.add(slot)
    live = {(rule.direction, rule.rule_number): rule for rule in acl.get_all_rules()}

    missing = []
    changed = []
    for slot, rule in desired.items():
        live_rule = live.get(slot)
        if live_rule is None:
            missing.append({'key': rule.key, 'entry': rule.to_entry()})
        elif live_rule.to_entry() != rule.to_entry():
            changed.append({'key': rule.key, 'planned': rule.to_entry(), 'live': live_rule.to_entry()})

    unexpected = [rule.to_entry() for slot, rule in live.items() if slot not in desired and slot not in reserved]

    return {
        'network_acl_id': acl.acl_id,
        'missing': missing,
        'unexpected': unexpected,
        'changed': changed,
        'unverified': unverified,
        'in_sync': not (missing or unexpected or changed),
    }
