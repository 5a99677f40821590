"""
Configuration for the NACL planner.

ModuleConfig holds the module inputs (the declarative configuration surface)
and checks the constraints that can be verified without looking at individual
rules. Provider settings (region, profile) and logging are read from the
environment.
"""

import logging
import os
import sys
from typing import Dict, List, Any, Optional

from .errors import ConfigurationError


DEFAULT_ALLOW_ALL_EGRESS_RULE_NUMBER = 100
DEFAULT_CREATE_TIMEOUT = "10m"
DEFAULT_DELETE_TIMEOUT = "15m"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _bool(data: Dict[str, Any], name: str, default: bool) -> bool:
    value = data.get(name, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(name, f"expected true or false, got {value!r}")
    return value


def _single(data: Dict[str, Any], name: str) -> Optional[str]:
    """Read a 0-or-1 element list input."""
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigurationError(name, f"expected a list with at most one element, got {value!r}")
    if len(value) > 1:
        raise ConfigurationError(name, f"accepts at most one value, got {len(value)}: {value}")
    if not value:
        return None
    if not isinstance(value[0], str) or not value[0].strip():
        raise ConfigurationError(name, "value must be a non-empty string; omit the list to leave it unset")
    return value[0]


class ModuleConfig:
    """
    Module inputs with their defaults.

    Build it with `from_dict`, which validates the scalar inputs. Rule lists
    are kept as raw specs here; the Normalizer validates them.
    """

    def __init__(
        self,
        vpc_id: Optional[str] = None,
        enabled: bool = True,
        name: str = "nacl",
        tags: Optional[Dict[str, str]] = None,
        rules: Optional[List[Dict[str, Any]]] = None,
        rules_map: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        rule_matrix: Optional[List[Dict[str, Any]]] = None,
        target_network_acl_id: Optional[str] = None,
        network_acl_name: Optional[str] = None,
        create_before_destroy: bool = True,
        preserve_network_acl_id: bool = False,
        allow_all_egress: bool = True,
        allow_all_egress_rule_number: int = DEFAULT_ALLOW_ALL_EGRESS_RULE_NUMBER,
        inline_rules_enabled: bool = False,
        subnet_ids: Optional[List[str]] = None,
        network_acl_create_timeout: str = DEFAULT_CREATE_TIMEOUT,
        network_acl_delete_timeout: str = DEFAULT_DELETE_TIMEOUT,
        previous_name_suffix: Optional[Dict[str, str]] = None,
    ):
        self.vpc_id = vpc_id
        self.enabled = enabled
        self.name = name
        self.tags = dict(tags or {})
        self.rules = list(rules or [])
        self.rules_map = dict(rules_map or {})
        self.rule_matrix = list(rule_matrix or [])
        self.target_network_acl_id = target_network_acl_id
        self.network_acl_name = network_acl_name
        self.create_before_destroy = create_before_destroy
        self.preserve_network_acl_id = preserve_network_acl_id
        self.allow_all_egress = allow_all_egress
        self.allow_all_egress_rule_number = allow_all_egress_rule_number
        self.inline_rules_enabled = inline_rules_enabled
        self.subnet_ids = list(subnet_ids or [])
        self.network_acl_create_timeout = network_acl_create_timeout
        self.network_acl_delete_timeout = network_acl_delete_timeout
        self.previous_name_suffix = previous_name_suffix

    @property
    def uses_external_acl(self) -> bool:
        return self.target_network_acl_id is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModuleConfig':
        """
        Build and validate a configuration from a plain dictionary.

        Args:
            data: Module inputs, e.g. parsed from JSON

        Raises:
            ConfigurationError: Naming the offending input and the violated constraint
        """
        if not isinstance(data, dict):
            raise ConfigurationError("config", f"expected an object, got {type(data).__name__}")

        # A disabled module plans nothing, whatever else is set
        if not _bool(data, "enabled", True):
            return cls(enabled=False)

        rules = data.get("rules") or []
        if not isinstance(rules, list):
            raise ConfigurationError("rules", "expected a list of rule specs")
        rules_map = data.get("rules_map") or {}
        if not isinstance(rules_map, dict):
            raise ConfigurationError("rules_map", "expected a mapping of name to a list of rule specs")
        for map_key, map_rules in rules_map.items():
            if not isinstance(map_rules, list):
                raise ConfigurationError(f"rules_map.{map_key}", "expected a list of rule specs")
        rule_matrix = data.get("rule_matrix") or []
        if not isinstance(rule_matrix, list):
            raise ConfigurationError("rule_matrix", "expected a list of subjects")

        tags = data.get("tags") or {}
        if not isinstance(tags, dict):
            raise ConfigurationError("tags", "expected a mapping of tag name to value")

        subnet_ids = data.get("subnet_ids") or []
        if not isinstance(subnet_ids, list):
            raise ConfigurationError("subnet_ids", "expected a list of subnet ids")

        egress_number = data.get("allow_all_egress_rule_number", DEFAULT_ALLOW_ALL_EGRESS_RULE_NUMBER)
        if isinstance(egress_number, bool) or not isinstance(egress_number, int):
            raise ConfigurationError("allow_all_egress_rule_number", f"expected an integer, got {egress_number!r}")

        previous = data.get("previous_name_suffix")
        if previous is not None and not (
            isinstance(previous, dict) and previous.get("digest") and previous.get("salt")
        ):
            raise ConfigurationError("previous_name_suffix", "expected an object with 'digest' and 'salt'")

        config = cls(
            vpc_id=data.get("vpc_id"),
            enabled=True,
            name=data.get("name") or "nacl",
            tags=tags,
            rules=rules,
            rules_map=rules_map,
            rule_matrix=rule_matrix,
            target_network_acl_id=_single(data, "target_network_acl_id"),
            network_acl_name=_single(data, "network_acl_name"),
            create_before_destroy=_bool(data, "create_before_destroy", True),
            preserve_network_acl_id=_bool(data, "preserve_network_acl_id", False),
            allow_all_egress=_bool(data, "allow_all_egress", True),
            allow_all_egress_rule_number=egress_number,
            inline_rules_enabled=_bool(data, "inline_rules_enabled", False),
            subnet_ids=subnet_ids,
            network_acl_create_timeout=data.get("network_acl_create_timeout") or DEFAULT_CREATE_TIMEOUT,
            network_acl_delete_timeout=data.get("network_acl_delete_timeout") or DEFAULT_DELETE_TIMEOUT,
            previous_name_suffix=previous,
        )

        # A new ACL needs a VPC; attaching to an existing one does not
        if not config.uses_external_acl and not config.vpc_id:
            raise ConfigurationError("vpc_id", "is required when creating a new network ACL")

        return config


def get_default_region(aws_profile: Optional[str] = None) -> str:
    """Get default AWS region from environment or config."""
    region = os.getenv('AWS_DEFAULT_REGION') or os.getenv('AWS_REGION')
    if region:
        return region

    import boto3
    from botocore.exceptions import BotoCoreError

    try:
        session = boto3.Session(profile_name=aws_profile) if aws_profile else boto3.Session()
        if session.region_name:
            return session.region_name
    except BotoCoreError as e:
        logging.getLogger(__name__).debug("Could not read region from AWS config: %s", e)

    return 'us-east-1'


def get_default_profile() -> Optional[str]:
    return os.getenv('AWS_PROFILE') or None


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure package logging.

    Logs go to stderr because stdout carries the MCP stdio protocol.
    """
    level_name = level or os.getenv("NACL_PLANNER_LOG_LEVEL", "INFO")
    log_level = getattr(logging, level_name.upper(), logging.INFO)

    logger = logging.getLogger("nacl_planner")
    logger.setLevel(log_level)

    if not any(getattr(h, "_nacl_planner", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._nacl_planner = True
        logger.addHandler(handler)
