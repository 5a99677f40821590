"""
NACL Planner Package

Declarative planning for an AWS Network ACL and its ordered allow/deny rules.
The planner turns a module configuration into the desired-state resource graph
an external reconciler applies; it never calls the provider to create or
delete anything.

Package Structure:
    rules/   - Rule normalization and partitioning (canonical rule set, keyed rule map)
    planner/ - Lifecycle resolution, content fingerprinting, ACL selection and plan building
    parsers/ - Read-only loading of live Network ACLs from AWS for drift checks
    tools/   - MCP tool definitions and handlers
"""

__version__ = "0.1.0"
