"""
MCP Tools for Network ACL Planning

This module defines the MCP tools that clients call to plan a Network ACL and
check a live ACL against the plan.

Tools:
    - plan_network_acl: Compute the desired-state plan for a module configuration
    - get_network_acl: Load a live Network ACL from AWS
    - check_drift: Compare a live Network ACL with the plan for a configuration

Planning is a pure function of the configuration; only get_network_acl and
check_drift call AWS, and both are read-only.
"""

import json
import logging
from typing import List, Dict, Any

from botocore.exceptions import ClientError, NoCredentialsError
from mcp.types import Tool, TextContent

from ..config import ModuleConfig
from ..errors import NACLPlannerError
from ..parsers.aws_network_acls import AWSNetworkACLParser, compare_with_plan
from ..planner.plan import build_plan

logger = logging.getLogger(__name__)


_CONFIG_SCHEMA = {
    "type": "object",
    "description": (
        "Module configuration: vpc_id, rules, rules_map, rule_matrix, target_network_acl_id, "
        "network_acl_name, create_before_destroy, preserve_network_acl_id, allow_all_egress, "
        "allow_all_egress_rule_number, inline_rules_enabled, subnet_ids, tags, enabled, "
        "previous_name_suffix"
    ),
}

_AWS_PROPERTIES = {
    "aws_region": {
        "type": "string",
        "description": "AWS region to use (optional - auto-detected from AWS profile/config if not specified, defaults to 'us-east-1')"
    },
    "aws_profile": {
        "type": "string",
        "description": "AWS profile name to use for credentials (defaults to AWS_PROFILE or the default profile)"
    },
}


def get_nacl_tools() -> List[Tool]:
    """
    Get list of MCP tools for Network ACL planning.

    Returns:
        List[Tool]: List of MCP tool definitions
    """
    return [
        Tool(
            name="plan_network_acl",
            description=(
                "Compute the desired state for a Network ACL and its rules from a module configuration. "
                "Returns the resource graph (ACL, keyed rule resources, completion barrier, subnet associations), "
                "the inline or keyed rule views and the outputs (network_acl_id, name, rule_ids). "
                "Pass name_suffix_state from a previous plan as previous_name_suffix to keep the ACL name stable "
                "while rules are unchanged. Makes no AWS calls."
            ),
            inputSchema={
                "type": "object",
                "properties": {"config": _CONFIG_SCHEMA},
                "required": ["config"]
            }
        ),
        Tool(
            name="get_network_acl",
            description=(
                "Load an existing Network ACL from AWS by id and return its entries "
                "(excluding the default catch-all rule), tags and associated subnets. Read-only."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "network_acl_id": {
                        "type": "string",
                        "description": "Network ACL id (e.g., 'acl-0123456789abcdef0')"
                    },
                    **_AWS_PROPERTIES,
                },
                "required": ["network_acl_id"]
            }
        ),
        Tool(
            name="check_drift",
            description=(
                "Plan a configuration and compare the planned rules with a live Network ACL. "
                "Returns missing, unexpected and changed entries matched by direction and rule number. Read-only."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "config": _CONFIG_SCHEMA,
                    "network_acl_id": {
                        "type": "string",
                        "description": "Live Network ACL id to compare against (defaults to target_network_acl_id from the config)"
                    },
                    **_AWS_PROPERTIES,
                },
                "required": ["config"]
            }
        ),
    ]


def _json_response(data: Dict[str, Any]) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(data, indent=2))]


def _error_response(message: str) -> List[TextContent]:
    return _json_response({"error": message})


async def handle_plan_network_acl(arguments: Dict[str, Any]) -> List[TextContent]:
    """
    Handle plan_network_acl tool call.

    Args:
        arguments: Dictionary containing:
            - config (dict): Module configuration

    Returns:
        List[TextContent]: JSON plan, or {"error": ...} for invalid configuration
    """
    try:
        config = ModuleConfig.from_dict(arguments.get("config") or {})
        plan = build_plan(config)
    except NACLPlannerError as e:
        logger.warning("Invalid configuration: %s", e)
        return _error_response(f"Invalid configuration: {e}")

    return _json_response({"status": "success", "plan": plan.to_dict()})


async def handle_get_network_acl(arguments: Dict[str, Any]) -> List[TextContent]:
    """
    Handle get_network_acl tool call.

    Args:
        arguments: Dictionary containing:
            - network_acl_id (str): Network ACL id
            - aws_region (str, optional)
            - aws_profile (str, optional)
    """
    network_acl_id = arguments.get("network_acl_id")
    if not network_acl_id:
        return _error_response("network_acl_id is required")

    try:
        parser = AWSNetworkACLParser(
            aws_region=arguments.get("aws_region"),
            aws_profile=arguments.get("aws_profile"),
        )
        acl = parser.get_network_acl(network_acl_id)
    except NoCredentialsError:
        return _error_response("AWS credentials not found. Please configure AWS credentials.")
    except ClientError as e:
        return _error_response(f"AWS API error: {str(e)}")

    if acl is None:
        return _error_response(f"Network ACL {network_acl_id} not found")

    return _json_response({"status": "success", "network_acl": acl.to_dict()})


async def handle_check_drift(arguments: Dict[str, Any]) -> List[TextContent]:
    """
    Handle check_drift tool call.

    The live ACL id defaults to the configuration's target_network_acl_id, since
    a managed ACL's id is only known after apply.
    """
    try:
        config = ModuleConfig.from_dict(arguments.get("config") or {})
        plan = build_plan(config)
    except NACLPlannerError as e:
        logger.warning("Invalid configuration: %s", e)
        return _error_response(f"Invalid configuration: {e}")

    if not plan.enabled:
        return _error_response("Module is disabled; there is nothing to compare")

    network_acl_id = arguments.get("network_acl_id") or config.target_network_acl_id
    if not network_acl_id:
        return _error_response("network_acl_id is required when the configuration creates its own network ACL")

    try:
        parser = AWSNetworkACLParser(
            aws_region=arguments.get("aws_region"),
            aws_profile=arguments.get("aws_profile"),
        )
        acl = parser.get_network_acl(network_acl_id)
    except NoCredentialsError:
        return _error_response("AWS credentials not found. Please configure AWS credentials.")
    except ClientError as e:
        return _error_response(f"AWS API error: {str(e)}")

    if acl is None:
        return _error_response(f"Network ACL {network_acl_id} not found")

    drift = compare_with_plan(acl, plan)
    logger.info(
        "Drift for %s: %d missing, %d unexpected, %d changed",
        network_acl_id, len(drift['missing']), len(drift['unexpected']), len(drift['changed']),
    )
    return _json_response({"status": "success", "drift": drift})


async def handle_tool_call(tool_name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """
    Route tool calls to appropriate handler functions.

    Args:
        tool_name: Name of the tool to execute (must match tool definitions)
        arguments: Dictionary of arguments for the tool call

    Returns:
        List[TextContent]: Response from the handler function
    """
    handlers = {
        "plan_network_acl": handle_plan_network_acl,
        "get_network_acl": handle_get_network_acl,
        "check_drift": handle_check_drift,
    }

    handler = handlers.get(tool_name)
    if not handler:
        return _error_response(f"Unknown tool: {tool_name}")

    return await handler(arguments or {})
