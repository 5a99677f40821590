"""
MCP Tool Definitions for Network ACL Planning

Tools are defined in nacl_tools.py and handle:
    - Planning a Network ACL and its rules from a module configuration
    - Loading a live Network ACL from AWS
    - Checking a live Network ACL for drift against the plan
"""
