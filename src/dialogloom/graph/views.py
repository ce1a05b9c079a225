"""Graph views: the root graph, scoped subviews and the active view.

A ``GraphView`` is an ordered node collection plus an ordered edge
collection. The root graph is one view; navigating into a container node
pushes a scoped subview built from that node's nested graph.

``ActiveView`` is the single abstraction the generation code reads and
writes through. Reads resolve to the innermost subview when one is active.
Writes land in every store that holds the node, so the root graph and the
subview never diverge while both exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from dialogloom.graph.errors import DuplicateNodeError, NodeNotFoundError
from dialogloom.graph.models import DialogEdge, DialogNode, SubgraphData
from dialogloom.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

log = get_logger(__name__)


def _check_unique(nodes: Iterable[DialogNode]) -> None:
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise DuplicateNodeError(node.id)
        seen.add(node.id)


class GraphView:
    """Ordered nodes and edges of one graph level.

    The node collection is only ever replaced wholesale through
    :meth:`set_nodes`; callers never mutate nodes in place.
    """

    def __init__(
        self,
        nodes: Iterable[DialogNode] | None = None,
        edges: Iterable[DialogEdge] | None = None,
    ) -> None:
        node_list = list(nodes or [])
        _check_unique(node_list)
        self._nodes: list[DialogNode] = node_list
        self._edges: list[DialogEdge] = list(edges or [])

    @property
    def nodes(self) -> list[DialogNode]:
        """Snapshot of the node collection."""
        return list(self._nodes)

    @property
    def edges(self) -> list[DialogEdge]:
        """Snapshot of the edge collection."""
        return list(self._edges)

    def get_node(self, node_id: str) -> DialogNode | None:
        for node in self._nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def node_ids(self) -> list[str]:
        return [n.id for n in self._nodes]

    def require_node(self, node_id: str, context: str = "") -> DialogNode:
        """Get a node or raise NodeNotFoundError with suggestions."""
        node = self.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id, available=self.node_ids(), context=context)
        return node

    def set_nodes(
        self,
        nodes: list[DialogNode] | Callable[[list[DialogNode]], list[DialogNode]],
    ) -> None:
        """Replace the node collection, or apply a transform to it.

        Args:
            nodes: Either the full replacement list or a function taking the
                current list and returning the new one.

        Raises:
            DuplicateNodeError: If the new collection repeats an id.
        """
        new_nodes = list(nodes(self.nodes) if callable(nodes) else nodes)
        _check_unique(new_nodes)
        self._nodes = new_nodes

    def set_edges(self, edges: Iterable[DialogEdge]) -> None:
        self._edges = list(edges)

    def update_nodes(self, updates: Mapping[str, Mapping[str, Any]]) -> list[str]:
        """Apply field updates to several nodes in one replacement.

        Args:
            updates: Mapping of node id to the fields to change.

        Returns:
            IDs that were present and updated. Unknown ids are ignored.
        """
        touched = [nid for nid in updates if self.has_node(nid)]
        if not touched:
            return []
        self.set_nodes(
            lambda current: [
                n.model_copy(update=dict(updates[n.id])) if n.id in updates else n
                for n in current
            ]
        )
        return touched

    def to_subgraph(self, name: str = "") -> SubgraphData:
        return SubgraphData(name=name, nodes=self.nodes, edges=self.edges)

    def __repr__(self) -> str:
        return f"GraphView(nodes={len(self._nodes)}, edges={len(self._edges)})"


@dataclass
class SubgraphContext:
    """One level of subgraph navigation."""

    id: str
    name: str
    view: GraphView
    parent_id: str | None = None


class SubgraphNavigator:
    """Navigation stack of scoped subviews over a root graph.

    Entering a container node builds a subview from its nested graph.
    Leaving a subview saves its nodes and edges back into the container
    node of the enclosing level.
    """

    def __init__(self, root: GraphView) -> None:
        self._root = root
        self._stack: list[SubgraphContext] = []

    @property
    def root(self) -> GraphView:
        return self._root

    @property
    def current(self) -> SubgraphContext | None:
        return self._stack[-1] if self._stack else None

    @property
    def depth(self) -> int:
        return len(self._stack)

    def is_in_subgraph(self) -> bool:
        return bool(self._stack)

    def _enclosing_view(self, level: int) -> GraphView:
        """View containing the container node for stack entry *level*."""
        return self._stack[level - 1].view if level > 0 else self._root

    def enter_subgraph(self, node_id: str) -> SubgraphContext:
        """Push a subview built from container node *node_id*.

        Entering the subgraph that is already current is a no-op.

        Raises:
            NodeNotFoundError: If the container is not in the current view.
        """
        current = self.current
        if current is not None and current.id == node_id:
            log.warning("subgraph_already_entered", subgraph=node_id)
            return current

        parent_view = current.view if current is not None else self._root
        container = parent_view.require_node(node_id, context="enter_subgraph")
        payload = container.subgraph or SubgraphData()

        context = SubgraphContext(
            id=node_id,
            name=payload.name or f"Subgraph {node_id}",
            view=GraphView(payload.nodes, payload.edges),
            parent_id=current.id if current is not None else None,
        )
        self._stack.append(context)
        log.debug("subgraph_entered", subgraph=node_id, depth=self.depth)
        return context

    def exit_subgraph(self) -> None:
        """Pop the current subview, saving it into its container node."""
        if not self._stack:
            log.warning("subgraph_exit_at_root")
            return

        self._save_level(len(self._stack) - 1)
        self._stack.pop()
        log.debug("subgraph_exited", depth=self.depth)

    def exit_to_main(self) -> None:
        """Pop every subview, saving each level on the way out."""
        while self._stack:
            self.exit_subgraph()

    def update_current_context(
        self,
        nodes: Iterable[DialogNode],
        edges: Iterable[DialogEdge],
    ) -> None:
        """Replace nodes and edges of the current subview."""
        current = self.current
        if current is None:
            return
        current.view.set_nodes(list(nodes))
        current.view.set_edges(edges)

    def breadcrumbs(self) -> list[tuple[str, str]]:
        """Return ``(id, name)`` pairs from the main graph down."""
        return [("main", "Main Graph"), *((c.id, c.name) for c in self._stack)]

    def _save_level(self, level: int) -> None:
        context = self._stack[level]
        enclosing = self._enclosing_view(level)
        payload = context.view.to_subgraph(context.name)
        saved = enclosing.update_nodes({context.id: {"subgraph": payload}})
        if not saved:
            log.warning("subgraph_container_missing", subgraph=context.id)
            return
        log.debug(
            "subgraph_saved",
            subgraph=context.id,
            nodes=len(payload.nodes),
            edges=len(payload.edges),
        )


class ActiveView:
    """Read/write facade over the root graph and any active subview.

    Generation code only talks to this object: it reads from whichever view
    is authoritative right now and writes once, with the write mirrored to
    every store that holds the node.
    """

    def __init__(self, root: GraphView, navigator: SubgraphNavigator | None = None) -> None:
        self._root = root
        self._navigator = navigator

    @property
    def root(self) -> GraphView:
        return self._root

    @property
    def navigator(self) -> SubgraphNavigator | None:
        return self._navigator

    @property
    def subview(self) -> GraphView | None:
        if self._navigator is None or self._navigator.current is None:
            return None
        return self._navigator.current.view

    @property
    def view(self) -> GraphView:
        """The authoritative view for reads."""
        return self.subview or self._root

    @property
    def nodes(self) -> list[DialogNode]:
        return self.view.nodes

    @property
    def edges(self) -> list[DialogEdge]:
        return self.view.edges

    def get_node(self, node_id: str) -> DialogNode | None:
        return self.view.get_node(node_id)

    def require_node(self, node_id: str, context: str = "") -> DialogNode:
        return self.view.require_node(node_id, context=context)

    def update_node(self, node_id: str, **updates: Any) -> bool:
        """Write field updates for one node to every store holding it.

        Returns:
            True if at least one store held the node.
        """
        return bool(self.update_nodes({node_id: updates}))

    def update_nodes(self, updates: Mapping[str, Mapping[str, Any]]) -> set[str]:
        """Write field updates for several nodes, one replacement per store.

        Returns:
            IDs written to at least one store.
        """
        written = set(self._root.update_nodes(updates))
        subview = self.subview
        if subview is not None:
            written.update(subview.update_nodes(updates))
        return written
