"""
Exception hierarchy for flowview.

Only programmer errors surface as exceptions. Degenerate geometry, stale
node references and exhausted undo stacks are resolved locally and never
raise.
"""


class FlowViewError(Exception):
    """Base class for all flowview errors."""


class UnknownNodeError(FlowViewError, KeyError):
    """Raised when an operation requires a node id that is not in the store."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Unknown node: {self.node_id}"


class InvalidGraphError(FlowViewError, ValueError):
    """Raised when a graph payload is structurally unusable."""
