"""Per-node processing status and bulk-run markers.

Status transitions::

    idle | error | timeout  --start-->    generating
    generating              --success-->  idle      (text replaced)
    generating              --failure-->  error | timeout

``reset`` returns any node to idle. Every transition is written through the
:class:`~dialogloom.graph.views.ActiveView`, so the root graph and an active
subview always agree on a node's status.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from dialogloom.generation.errors import ErrorKind
from dialogloom.graph.errors import NodeNotFoundError
from dialogloom.graph.models import DialogNode, NodeStatus
from dialogloom.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

    from dialogloom.generation.errors import GenerationFailure
    from dialogloom.graph.views import ActiveView

log = get_logger(__name__)

_TRANSITIONS: dict[NodeStatus, frozenset[NodeStatus]] = {
    NodeStatus.IDLE: frozenset({NodeStatus.GENERATING}),
    NodeStatus.ERROR: frozenset({NodeStatus.GENERATING}),
    NodeStatus.TIMEOUT: frozenset({NodeStatus.GENERATING}),
    NodeStatus.GENERATING: frozenset({NodeStatus.IDLE, NodeStatus.ERROR, NodeStatus.TIMEOUT}),
}

_FAILURE_STATUS = {
    ErrorKind.ERROR: NodeStatus.ERROR,
    ErrorKind.TIMEOUT: NodeStatus.TIMEOUT,
}


@dataclass
class InvalidTransitionError(Exception):
    """Raised when a status change skips the defined lifecycle."""

    node_id: str
    current: NodeStatus
    requested: NodeStatus

    def __post_init__(self) -> None:
        super().__init__(
            f"Node '{self.node_id}' cannot go from {self.current} to {self.requested}"
        )


def can_transition(current: NodeStatus, requested: NodeStatus) -> bool:
    return requested in _TRANSITIONS[current]


class NodeProcessingState:
    """Drives node status transitions against the active view."""

    def __init__(self, view: ActiveView) -> None:
        self._view = view

    def _find(self, node_id: str) -> DialogNode:
        node = self._view.get_node(node_id) or self._view.root.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(
                node_id,
                available=[n.id for n in self._view.nodes],
                context="status update",
            )
        return node

    def _transition(self, node_id: str, status: NodeStatus, **updates: Any) -> None:
        node = self._find(node_id)
        if not can_transition(node.status, status):
            raise InvalidTransitionError(node_id, node.status, status)
        self._view.update_node(node_id, status=status, **updates)
        log.debug("node_status_changed", node_id=node_id, old=node.status, new=status)

    def status_of(self, node_id: str) -> NodeStatus:
        return self._find(node_id).status

    def start(self, node_id: str) -> None:
        """Enter ``generating``, clearing any previous error message."""
        self._transition(node_id, NodeStatus.GENERATING, error=None)

    def succeed(self, node_id: str, text: str | None = None) -> None:
        """Return to ``idle``; replace the text unless it is written later."""
        updates: dict[str, Any] = {"error": None}
        if text is not None:
            updates["text"] = text
        self._transition(node_id, NodeStatus.IDLE, **updates)

    def fail(self, node_id: str, failure: GenerationFailure) -> NodeStatus:
        """Move to ``error`` or ``timeout`` according to the failure kind.

        Returns:
            The status the node ended in.
        """
        status = _FAILURE_STATUS[failure.kind]
        self._transition(node_id, status, error=failure.message)
        return status

    def reset(self, node_id: str) -> None:
        """Force a node back to ``idle`` from any state."""
        self._find(node_id)
        self._view.update_node(node_id, status=NodeStatus.IDLE, error=None)

    def apply_texts(self, texts: Mapping[str, str]) -> set[str]:
        """Write generated texts for nodes that already finished.

        Ids no longer present in any view are skipped.

        Returns:
            IDs that were written.
        """
        if not texts:
            return set()
        return self._view.update_nodes({nid: {"text": text} for nid, text in texts.items()})

    def settle(self, node_ids: Collection[str], texts: Mapping[str, str]) -> set[str]:
        """Final pass of a bulk run: put planned nodes at rest.

        Nodes still marked ``generating`` go back to ``idle``; nodes that
        failed keep their ``error``/``timeout`` status and message. Buffered
        texts are applied in the same write.

        Returns:
            IDs that were present in at least one view.
        """
        updates: dict[str, dict[str, Any]] = {}
        for node_id in node_ids:
            node = self._view.get_node(node_id) or self._view.root.get_node(node_id)
            if node is None:
                continue
            update: dict[str, Any] = {}
            if node.status is NodeStatus.GENERATING:
                update["status"] = NodeStatus.IDLE
            if node_id in texts:
                update["text"] = texts[node_id]
            updates[node_id] = update
        return self._view.update_nodes(updates)


@dataclass
class RegenerationState:
    """Markers exposed to the UI while generation is running.

    Attributes:
        is_regenerating: A bulk run is in progress.
        bulk_node_ids: Plan of the running bulk run, for highlighting.
        processing_node_id: Node currently being generated, for focus.
    """

    is_regenerating: bool = False
    bulk_node_ids: tuple[str, ...] | None = None
    processing_node_id: str | None = None

    def begin_bulk(self, node_ids: Collection[str]) -> None:
        self.is_regenerating = True
        self.bulk_node_ids = tuple(node_ids)

    def end_bulk(self) -> None:
        self.is_regenerating = False
        self.bulk_node_ids = None
        self.processing_node_id = None

    def set_processing(self, node_id: str | None) -> None:
        self.processing_node_id = node_id

    def is_in_bulk(self, node_id: str) -> bool:
        return self.bulk_node_ids is not None and node_id in self.bulk_node_ids
