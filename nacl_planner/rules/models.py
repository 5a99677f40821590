"""
Canonical Network ACL rule model

This module defines the canonical rule representation every input shape is
normalized into, plus the matrix subject that groups rules by target.

Classes:
    NetworkACLRule: A single canonical NACL rule (ingress or egress)
    RuleSubject: The target(s) of a group of matrix rules

Rule specs arrive as plain dictionaries (JSON from a client or a config file).
`parse_rule_spec` validates one spec and returns the checked field values;
the Normalizer decides the key and builds the rule.
"""

from typing import Dict, List, Any, Optional, Tuple
from netaddr import IPNetwork, AddrFormatError

from ..errors import ConfigurationError


DIRECTIONS = ('ingress', 'egress')
ACTIONS = ('allow', 'deny')

# AWS reserves 32767 for the default catch-all rule
MIN_RULE_NUMBER = 1
MAX_RULE_NUMBER = 32766

ICMP_PROTOCOLS = ('1', 'icmp', '58', 'icmpv6')

# The EC2 API reports protocols by number
PROTOCOL_NUMBERS = {'icmp': '1', 'tcp': '6', 'udp': '17', 'icmpv6': '58'}


class NetworkACLRule:
    """
    Represents a single canonical Network ACL rule.

    Rules from the flat list and the named lists carry exactly one concrete
    address family. Matrix rules carry a `subject` until the Partitioner
    explodes them into one rule per target.
    """

    def __init__(
        self,
        key: str,
        rule_number: int,
        direction: str,
        protocol: str,
        action: str,
        cidr_block: Optional[str] = None,
        ipv6_cidr_block: Optional[str] = None,
        from_port: int = 0,
        to_port: int = 0,
        icmp_type: Optional[int] = None,
        icmp_code: Optional[int] = None,
        prefix_list_id: Optional[str] = None,
        self_target: bool = False,
        subject: Optional['RuleSubject'] = None,
        origin: str = '',
    ):
        self.key = key
        self.rule_number = rule_number
        self.direction = direction
        self.protocol = protocol
        self.action = action
        self.cidr_block = cidr_block
        self.ipv6_cidr_block = ipv6_cidr_block
        self.from_port = from_port
        self.to_port = to_port
        self.icmp_type = icmp_type
        self.icmp_code = icmp_code
        self.prefix_list_id = prefix_list_id
        self.self_target = self_target
        self.subject = subject
        # Human-readable location of the rule definition, used in diagnostics only
        self.origin = origin

    @property
    def is_egress(self) -> bool:
        return self.direction == 'egress'

    @property
    def is_icmp(self) -> bool:
        return self.protocol in ICMP_PROTOCOLS

    @property
    def is_matrix(self) -> bool:
        """True for a matrix rule that has not been exploded yet."""
        return self.subject is not None

    def copy(self, **changes) -> 'NetworkACLRule':
        """Return a new rule with some fields replaced."""
        fields = {
            'key': self.key,
            'rule_number': self.rule_number,
            'direction': self.direction,
            'protocol': self.protocol,
            'action': self.action,
            'cidr_block': self.cidr_block,
            'ipv6_cidr_block': self.ipv6_cidr_block,
            'from_port': self.from_port,
            'to_port': self.to_port,
            'icmp_type': self.icmp_type,
            'icmp_code': self.icmp_code,
            'prefix_list_id': self.prefix_list_id,
            'self_target': self.self_target,
            'subject': self.subject,
            'origin': self.origin,
        }
        fields.update(changes)
        return NetworkACLRule(**fields)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert rule to dictionary representation.

        The result only contains content fields (no diagnostics), so it is
        also what the content fingerprint is computed over. ICMP type/code are
        only included for ICMP protocols.
        """
        data = {
            'key': self.key,
            'rule_number': self.rule_number,
            'type': self.direction,
            'protocol': self.protocol,
            'action': self.action,
            'cidr_block': self.cidr_block,
            'ipv6_cidr_block': self.ipv6_cidr_block,
            'from_port': self.from_port,
            'to_port': self.to_port,
        }
        if self.prefix_list_id is not None:
            data['prefix_list_id'] = self.prefix_list_id
        if self.self_target:
            data['self'] = True
        if self.is_icmp:
            data['icmp_type'] = self.icmp_type
            data['icmp_code'] = self.icmp_code
        if self.subject is not None:
            data['subject'] = self.subject.to_dict()
        return data

    def to_resource_args(self) -> Dict[str, Any]:
        """Arguments of a standalone rule resource or an inline rule block."""
        args = {
            'rule_number': self.rule_number,
            'egress': self.is_egress,
            'protocol': self.protocol,
            'rule_action': self.action,
            'from_port': self.from_port,
            'to_port': self.to_port,
        }
        if self.cidr_block:
            args['cidr_block'] = self.cidr_block
        if self.ipv6_cidr_block:
            args['ipv6_cidr_block'] = self.ipv6_cidr_block
        if self.prefix_list_id:
            args['prefix_list_id'] = self.prefix_list_id
        if self.self_target:
            args['self'] = True
        if self.is_icmp:
            args['icmp_type'] = self.icmp_type
            args['icmp_code'] = self.icmp_code
        return args

    def to_entry(self) -> Dict[str, Any]:
        """
        Convert rule to the AWS Network ACL entry shape.

        This is the shape `describe_network_acls` returns under 'Entries',
        used for drift comparison against live entries.
        """
        entry = {
            'RuleNumber': self.rule_number,
            'Protocol': PROTOCOL_NUMBERS.get(self.protocol, self.protocol),
            'RuleAction': self.action,
            'Egress': self.is_egress,
        }
        if self.cidr_block:
            entry['CidrBlock'] = self.cidr_block
        if self.ipv6_cidr_block:
            entry['Ipv6CidrBlock'] = self.ipv6_cidr_block
        if self.is_icmp:
            entry['IcmpTypeCode'] = {'Type': self.icmp_type, 'Code': self.icmp_code}
        elif self.protocol != '-1':
            entry['PortRange'] = {'From': self.from_port, 'To': self.to_port}
        return entry

    def __repr__(self) -> str:
        return f"NetworkACLRule(key={self.key!r}, {self.direction} #{self.rule_number} {self.action})"


class RuleSubject:
    """
    The target(s) a group of matrix rules is applied against.

    A subject is either `self` (the managed ACL) or any combination of IPv4
    CIDRs, IPv6 CIDRs and prefix-list (peer ACL) ids, never both.
    """

    def __init__(
        self,
        key: Optional[str] = None,
        self_target: bool = False,
        cidr_blocks: Optional[List[str]] = None,
        ipv6_cidr_blocks: Optional[List[str]] = None,
        prefix_list_ids: Optional[List[str]] = None,
    ):
        self.key = key
        self.self_target = self_target
        self.cidr_blocks = list(cidr_blocks or [])
        self.ipv6_cidr_blocks = list(ipv6_cidr_blocks or [])
        self.prefix_list_ids = list(prefix_list_ids or [])

    def targets(self) -> List[Tuple[str, str]]:
        """
        List the concrete list targets as (field, value) pairs.

        Order is IPv4 CIDRs, then IPv6 CIDRs, then prefix lists; the position
        in this list is the target index used in exploded rule keys.
        """
        return (
            [('cidr_block', cidr) for cidr in self.cidr_blocks]
            + [('ipv6_cidr_block', cidr) for cidr in self.ipv6_cidr_blocks]
            + [('prefix_list_id', pl) for pl in self.prefix_list_ids]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'self': self.self_target,
            'cidr_blocks': self.cidr_blocks,
            'ipv6_cidr_blocks': self.ipv6_cidr_blocks,
            'prefix_list_ids': self.prefix_list_ids,
        }


def validate_cidr(value: Any, version: int, field: str) -> str:
    """Check that `value` is a CIDR block of the given IP version."""
    if not isinstance(value, str) or not value:
        raise ConfigurationError(field, f"expected a CIDR string, got {value!r}")
    try:
        network = IPNetwork(value)
    except (AddrFormatError, ValueError):
        raise ConfigurationError(field, f"'{value}' is not a valid CIDR block")
    if network.version != version:
        raise ConfigurationError(field, f"'{value}' is not an IPv{version} CIDR block")
    return value


def _parse_int(spec: Dict[str, Any], name: str, where: str, default: Optional[int] = None) -> Optional[int]:
    value = spec.get(name, default)
    if value is None:
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(f"{where}.{name}", f"expected an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{where}.{name}", f"expected an integer, got {value!r}")


def normalize_protocol(value: Any) -> str:
    protocol = str(value).strip().lower()
    if protocol == 'all':
        return '-1'
    return protocol


def parse_rule_spec(spec: Dict[str, Any], where: str, require_cidr: bool = True) -> Dict[str, Any]:
    """
    Validate one rule spec and return its checked fields.

    Args:
        spec: Rule spec dictionary from the configuration
        where: Location of the rule definition for diagnostics (e.g. "rules_map.web[2]")
        require_cidr: False for matrix rules, whose targets come from the subject

    Returns:
        Dictionary of NetworkACLRule keyword arguments (without 'key')

    Raises:
        ConfigurationError: If a required field is missing or a value is invalid
    """
    if not isinstance(spec, dict):
        raise ConfigurationError(where, f"rule spec must be an object, got {type(spec).__name__}")

    # 'number' and 'direction' are accepted as aliases
    if 'rule_number' not in spec and 'number' in spec:
        spec = dict(spec, rule_number=spec['number'])
    rule_number = _parse_int(spec, 'rule_number', where)
    if rule_number is None:
        raise ConfigurationError(f"{where}.rule_number", "is required")
    if not MIN_RULE_NUMBER <= rule_number <= MAX_RULE_NUMBER:
        raise ConfigurationError(
            f"{where}.rule_number",
            f"{rule_number} is outside {MIN_RULE_NUMBER}-{MAX_RULE_NUMBER}",
        )

    direction = spec.get('type', spec.get('direction'))
    if direction not in DIRECTIONS:
        raise ConfigurationError(f"{where}.type", f"must be one of {', '.join(DIRECTIONS)}, got {direction!r}")

    if spec.get('protocol') in (None, ''):
        raise ConfigurationError(f"{where}.protocol", "is required")
    protocol = normalize_protocol(spec['protocol'])

    action = spec.get('action', spec.get('rule_action'))
    if isinstance(action, str):
        action = action.lower()
    if action not in ACTIONS:
        raise ConfigurationError(f"{where}.action", f"must be one of {', '.join(ACTIONS)}, got {action!r}")

    fields = {
        'rule_number': rule_number,
        'direction': direction,
        'protocol': protocol,
        'action': action,
        'from_port': _parse_int(spec, 'from_port', where, 0),
        'to_port': _parse_int(spec, 'to_port', where, 0),
        'icmp_type': _parse_int(spec, 'icmp_type', where),
        'icmp_code': _parse_int(spec, 'icmp_code', where),
        'origin': where,
    }

    if fields['protocol'] in ICMP_PROTOCOLS:
        # -1 means "all types/codes" to the provider
        if fields['icmp_type'] is None:
            fields['icmp_type'] = -1
        if fields['icmp_code'] is None:
            fields['icmp_code'] = -1
    elif fields['from_port'] > fields['to_port']:
        raise ConfigurationError(
            f"{where}.from_port",
            f"from_port {fields['from_port']} is greater than to_port {fields['to_port']}",
        )

    cidr_block = spec.get('cidr_block')
    ipv6_cidr_block = spec.get('ipv6_cidr_block')
    if require_cidr:
        if cidr_block and ipv6_cidr_block:
            raise ConfigurationError(
                where, "set either cidr_block or ipv6_cidr_block, not both; split it into two rules"
            )
        if not cidr_block and not ipv6_cidr_block:
            raise ConfigurationError(where, "one of cidr_block or ipv6_cidr_block is required")
        if cidr_block:
            fields['cidr_block'] = validate_cidr(cidr_block, 4, f"{where}.cidr_block")
        else:
            fields['ipv6_cidr_block'] = validate_cidr(ipv6_cidr_block, 6, f"{where}.ipv6_cidr_block")
    elif cidr_block or ipv6_cidr_block:
        raise ConfigurationError(where, "matrix rules take their targets from the subject, not cidr_block")

    return fields


def _target_list(spec: Dict[str, Any], name: str, where: str) -> List[Any]:
    value = spec.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"{where}.{name}", f"expected a list, got {value!r}")
    return list(value)


def parse_subject(spec: Dict[str, Any], where: str) -> RuleSubject:
    """
    Validate one matrix subject.

    Raises:
        ConfigurationError: If the subject targets both itself and lists, or nothing at all
    """
    if not isinstance(spec, dict):
        raise ConfigurationError(where, f"matrix subject must be an object, got {type(spec).__name__}")

    cidr_blocks = [
        validate_cidr(c, 4, f"{where}.cidr_blocks[{i}]")
        for i, c in enumerate(_target_list(spec, 'cidr_blocks', where))
    ]
    ipv6_cidr_blocks = [
        validate_cidr(c, 6, f"{where}.ipv6_cidr_blocks[{i}]")
        for i, c in enumerate(_target_list(spec, 'ipv6_cidr_blocks', where))
    ]
    prefix_list_ids = _target_list(spec, 'prefix_list_ids', where)
    for i, pl in enumerate(prefix_list_ids):
        if not isinstance(pl, str) or not pl:
            raise ConfigurationError(f"{where}.prefix_list_ids[{i}]", f"expected a non-empty id, got {pl!r}")

    self_target = spec.get('self', False)
    if self_target is None:
        self_target = False
    if not isinstance(self_target, bool):
        raise ConfigurationError(f"{where}.self", f"expected true or false, got {self_target!r}")

    has_lists = bool(cidr_blocks or ipv6_cidr_blocks or prefix_list_ids)
    if self_target and has_lists:
        raise ConfigurationError(
            where, "'self' cannot be combined with cidr_blocks, ipv6_cidr_blocks or prefix_list_ids"
        )
    if not self_target and not has_lists:
        raise ConfigurationError(where, "subject has no targets; set 'self' or list at least one target")

    key = spec.get('key')
    if key is not None and (not isinstance(key, str) or not key):
        raise ConfigurationError(f"{where}.key", f"expected a non-empty string, got {key!r}")

    return RuleSubject(
        key=key,
        self_target=self_target,
        cidr_blocks=cidr_blocks,
        ipv6_cidr_blocks=ipv6_cidr_blocks,
        prefix_list_ids=prefix_list_ids,
    )
