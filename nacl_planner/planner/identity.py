"""
Identity & Replacement-Safety Engine

Decides how rule changes reach the provider:

    CREATE_BEFORE_DESTROY  - a new ACL (name suffixed with a content fingerprint)
                             is created with its rules before the old one goes
    DESTROY_BEFORE_CREATE  - the ACL keeps its identity, rules are edited in place
    EXTERNAL               - rules are attached to a caller-supplied ACL

Preserving the ACL id and zero-downtime replacement are mutually exclusive:
one ACL cannot keep its id and be swapped atomically. When the caller asks for
both, the id wins and rules are edited in place.
"""

import enum
import hashlib
import json
import logging
import secrets
from typing import Callable, Dict, Optional

from ..rules.models import NetworkACLRule

logger = logging.getLogger(__name__)

SUFFIX_LENGTH = 8


class LifecycleMode(enum.Enum):
    CREATE_BEFORE_DESTROY = "create_before_destroy"
    DESTROY_BEFORE_CREATE = "destroy_before_create"
    EXTERNAL = "external"


def resolve_lifecycle(create_before_destroy: bool, preserve_network_acl_id: bool, external: bool) -> LifecycleMode:
    """
    Resolve the two configuration intents into one lifecycle mode.

    Args:
        create_before_destroy: Prefer zero-downtime ACL replacement
        preserve_network_acl_id: Keep the ACL id stable across rule edits
        external: Rules attach to a caller-supplied ACL
    """
    if external:
        return LifecycleMode.EXTERNAL
    if preserve_network_acl_id:
        if create_before_destroy:
            logger.info(
                "preserve_network_acl_id is set: rule changes are applied in place "
                "instead of replacing the network ACL"
            )
        return LifecycleMode.DESTROY_BEFORE_CREATE
    if create_before_destroy:
        return LifecycleMode.CREATE_BEFORE_DESTROY
    return LifecycleMode.DESTROY_BEFORE_CREATE


def rules_force_new_acl(mode: LifecycleMode) -> bool:
    """True when any rule change must produce a brand-new ACL."""
    return mode is LifecycleMode.CREATE_BEFORE_DESTROY


def fingerprint_rules(keyed_rules: Dict[str, NetworkACLRule]) -> str:
    """
    Digest of the keyed rule map.

    The serialization sorts keys, so two maps with the same entries give the
    same digest whatever their insertion order.
    """
    payload = {key: rule.to_dict() for key, rule in keyed_rules.items()}
    serialized = json.dumps(payload, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(serialized.encode('utf-8')).hexdigest()


class NameSuffixState:
    """
    Digest of the rules the current name suffix was derived for, and the salt
    drawn when that digest first appeared.

    Callers carry this between passes so an unchanged rule set keeps its name.
    """

    def __init__(self, digest: str, salt: str):
        self.digest = digest
        self.salt = salt

    @property
    def suffix(self) -> str:
        material = f"{self.digest}:{self.salt}".encode('utf-8')
        return hashlib.sha256(material).hexdigest()[:SUFFIX_LENGTH]

    def to_dict(self) -> Dict[str, str]:
        return {'digest': self.digest, 'salt': self.salt}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, str]]) -> Optional['NameSuffixState']:
        if not data:
            return None
        return cls(digest=data['digest'], salt=data['salt'])

    def __eq__(self, other):
        return isinstance(other, NameSuffixState) and self.to_dict() == other.to_dict()


def new_salt() -> str:
    return secrets.token_hex(8)


def next_suffix_state(
    previous: Optional[NameSuffixState],
    digest: str,
    salt_factory: Callable[[], str] = new_salt,
) -> NameSuffixState:
    """
    Keep the previous salt while the digest is unchanged, draw a new one otherwise.
    """
    if previous is not None and previous.digest == digest:
        return previous
    state = NameSuffixState(digest=digest, salt=salt_factory())
    if previous is not None:
        logger.info("Rule content changed; network ACL will be replaced (suffix %s)", state.suffix)
    return state
