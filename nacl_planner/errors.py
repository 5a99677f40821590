"""
Exceptions raised while planning a Network ACL.

All of these are configuration problems detected from the inputs alone, so they
are raised before anything is handed to the provider.
"""

from typing import Optional


class NACLPlannerError(Exception):
    """Base class for planner errors."""


class ConfigurationError(NACLPlannerError):
    """
    Invalid module configuration.

    Attributes:
        field: Name of the offending input (e.g. 'target_network_acl_id')
        message: Which constraint was violated
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class DuplicateRuleKeyError(ConfigurationError):
    """Two rules resolved to the same identity key."""

    def __init__(self, key: str, first_origin: Optional[str] = None, second_origin: Optional[str] = None):
        self.key = key
        detail = f"rule key '{key}' is produced more than once"
        if first_origin and second_origin:
            detail += f" (by {first_origin} and {second_origin})"
        detail += "; give the rules distinct 'key' values"
        super().__init__("key", detail)


class DuplicateRuleNumberError(ConfigurationError):
    """Two rules in the same direction share a rule number."""

    def __init__(self, direction: str, rule_number: int, keys):
        self.direction = direction
        self.rule_number = rule_number
        self.keys = list(keys)
        super().__init__(
            "rule_number",
            f"{direction} rule number {rule_number} is used by rules {', '.join(self.keys)}",
        )
