"""
Desired-state graph primitives.

The plan is a list of ResourceNode objects with explicit dependencies. The
reconciler may create independent nodes in any order or in parallel; it must
honour `depends_on` for creation and `destroy_after` for teardown of the
replaced instance.
"""

from typing import Dict, List, Any, Optional


class ResourceRef:
    """Reference to an attribute of a node that is only known after apply."""

    def __init__(self, address: str, attribute: str):
        self.address = address
        self.attribute = attribute

    def __str__(self) -> str:
        return f"{self.address}.{self.attribute}"

    def __eq__(self, other):
        return isinstance(other, ResourceRef) and str(self) == str(other)

    def __hash__(self):
        return hash(str(self))


def serialize_value(value: Any) -> Any:
    """Render refs as strings so the plan can be dumped to JSON."""
    if isinstance(value, ResourceRef):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


class ResourceNode:
    """
    One desired resource (or barrier) in the plan.

    Attributes:
        address: Unique address, e.g. 'aws_network_acl_rule.this["ssh"]'
        kind: Resource type, e.g. 'aws_network_acl_rule'
        attributes: Desired resource arguments
        depends_on: Addresses that must exist before this node is created
        create_before_destroy: Replace by creating the new instance first
        destroy_after: Addresses that must be complete before the replaced
            instance of this node is torn down
    """

    def __init__(
        self,
        address: str,
        kind: str,
        attributes: Optional[Dict[str, Any]] = None,
        depends_on: Optional[List[str]] = None,
        create_before_destroy: bool = False,
        destroy_after: Optional[List[str]] = None,
    ):
        self.address = address
        self.kind = kind
        self.attributes = attributes or {}
        self.depends_on = list(depends_on or [])
        self.create_before_destroy = create_before_destroy
        self.destroy_after = list(destroy_after or [])

    def ref(self, attribute: str) -> ResourceRef:
        return ResourceRef(self.address, attribute)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.address,
            'kind': self.kind,
            'attributes': serialize_value(self.attributes),
            'depends_on': self.depends_on,
            'lifecycle': {
                'create_before_destroy': self.create_before_destroy,
                'destroy_after': self.destroy_after,
            },
        }

    def __repr__(self) -> str:
        return f"ResourceNode({self.address!r})"
