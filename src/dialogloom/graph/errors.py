"""Graph integrity error types.

These errors are raised when a request references nodes that do not exist
in the active view, or when a node collection would break id uniqueness.

Each error type can format itself as human-readable feedback for the CLI
and the progress channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches


class GraphIntegrityError(Exception):
    """Base class for graph integrity violations.

    Subclasses must implement to_feedback() to explain what went wrong.
    """

    def to_feedback(self) -> str:
        """Format error as actionable feedback.

        Returns:
            Human-readable error message explaining what's wrong and how
            to fix it.
        """
        raise NotImplementedError


@dataclass
class NodeNotFoundError(GraphIntegrityError):
    """Raised when referencing a node that is absent from the active view.

    Attributes:
        node_id: The ID that was referenced but doesn't exist.
        available: List of valid IDs that could be used instead.
        context: Description of where the reference occurred.
    """

    node_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Node '{self.node_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        return msg

    def _get_suggestions(self) -> list[str]:
        """Find similar IDs that might be typos."""
        return get_close_matches(self.node_id, self.available, n=3, cutoff=0.6)

    def to_feedback(self) -> str:
        """Format as actionable feedback."""
        lines = [f"Node `{self.node_id}` does not exist in the active view."]
        if self.context:
            lines.append(f"Context: {self.context}")

        suggestions = self._get_suggestions()
        if suggestions:
            lines.append("Did you mean one of these?")
            lines.extend(f"  - {s}" for s in suggestions)

        return "\n".join(lines)


@dataclass
class DuplicateNodeError(GraphIntegrityError):
    """Raised when a node collection contains the same id twice.

    Attributes:
        node_id: The duplicated ID.
    """

    node_id: str

    def __post_init__(self) -> None:
        super().__init__(f"Node '{self.node_id}' appears more than once")

    def to_feedback(self) -> str:
        """Format as actionable feedback."""
        return (
            f"Node id `{self.node_id}` is used by more than one node.\n"
            "Node ids must be unique within a graph view; rename one of them."
        )
