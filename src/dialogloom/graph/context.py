"""Dialog context derivation for generation prompts.

Pure functions that compute the causally relevant neighbourhood of a focal
node: ancestors along inbound edges, descendants along outbound edges and
same-type siblings under the same parent. Nothing here mutates the nodes or
edges it is given, and nothing is cached: the graph may have changed since
the last request.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dialogloom.graph.models import SUBGRAPH_NODE_TYPE

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence

    from dialogloom.graph.models import DialogEdge, DialogNode

# Budget for the serialized context passed to the backend
MAX_SERIALIZED_CONTEXT_CHARS = 2000


@dataclass(frozen=True)
class ContextEntry:
    """Flattened view of one node as it appears in a dialog context."""

    id: str
    type: str
    text: str
    tags: tuple[str, ...] = ()

    @classmethod
    def from_node(cls, node: DialogNode, *, placeholder: bool = False) -> ContextEntry:
        text = f"[{node.type} - will be regenerated]" if placeholder else node.text
        return cls(id=node.id, type=node.type, text=text, tags=tuple(node.tags))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "text": self.text, "tags": list(self.tags)}


@dataclass(frozen=True)
class DialogContext:
    """Read-only snapshot of a focal node and its surroundings.

    Attributes:
        current: The focal node.
        previous: Ancestors along inbound edges, nearest first.
        next: Descendants along outbound edges, nearest first.
        siblings: Same-type nodes under the same parent (auxiliary only).
        isolated: True when connections were ignored for this request.
        serialized: Truncated deterministic JSON encoding of
            previous/current/next.
    """

    current: ContextEntry
    previous: tuple[ContextEntry, ...] = ()
    next: tuple[ContextEntry, ...] = ()
    siblings: tuple[ContextEntry, ...] = ()
    isolated: bool = False
    serialized: str = field(default="", repr=False)

    @property
    def previous_ids(self) -> list[str]:
        return [e.id for e in self.previous]

    @property
    def next_ids(self) -> list[str]:
        return [e.id for e in self.next]

    @property
    def sibling_ids(self) -> list[str]:
        return [e.id for e in self.siblings]


def build_adjacency(
    edges: Iterable[DialogEdge],
) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    """Index edges by endpoint, preserving edge order.

    Returns:
        Tuple of (outgoing, incoming) maps from node id to neighbour ids.
    """
    outgoing: dict[str, list[str]] = {}
    incoming: dict[str, list[str]] = {}
    for edge in edges:
        outgoing.setdefault(edge.source, []).append(edge.target)
        incoming.setdefault(edge.target, []).append(edge.source)
    return outgoing, incoming


def _walk(
    start_id: str,
    adjacency: dict[str, list[str]],
    known: Collection[str],
    max_depth: int | None,
) -> list[str]:
    """Breadth-first walk from *start_id*, nearest first.

    Each id is visited at most once, so cycles terminate. Ids absent from
    *known* are neither returned nor walked through. The start node is
    never part of the result.
    """
    visited = {start_id}
    order: list[str] = []
    queue: deque[tuple[str, int]] = deque([(start_id, 0)])
    while queue:
        node_id, depth = queue.popleft()
        if max_depth is not None and depth >= max_depth:
            continue
        for neighbour in adjacency.get(node_id, []):
            if neighbour in visited or neighbour not in known:
                continue
            visited.add(neighbour)
            order.append(neighbour)
            queue.append((neighbour, depth + 1))
    return order


def find_dialog_paths(
    focal_id: str,
    nodes: Sequence[DialogNode],
    edges: Sequence[DialogEdge],
    max_depth: int | None = None,
) -> tuple[list[DialogNode], list[DialogNode]]:
    """Find ancestors and descendants of a focal node.

    Args:
        focal_id: Node to compute the neighbourhood for.
        nodes: Nodes of the view.
        edges: Edges of the view.
        max_depth: Optional hop limit for both directions.

    Returns:
        Tuple of (previous, next) node lists, nearest first.
    """
    by_id = {n.id: n for n in nodes}
    outgoing, incoming = build_adjacency(edges)
    previous = _walk(focal_id, incoming, by_id, max_depth)
    following = _walk(focal_id, outgoing, by_id, max_depth)
    return [by_id[i] for i in previous], [by_id[i] for i in following]


def find_siblings(
    node_id: str,
    nodes: Sequence[DialogNode],
    edges: Sequence[DialogEdge],
) -> list[DialogNode]:
    """Find same-type nodes sharing the first direct parent of *node_id*.

    Siblings without text carry no useful signal and are left out.
    """
    by_id = {n.id: n for n in nodes}
    node = by_id.get(node_id)
    if node is None:
        return []

    parent_id = next((e.source for e in edges if e.target == node_id), None)
    if parent_id is None:
        return []

    siblings: list[DialogNode] = []
    seen: set[str] = {node_id}
    for edge in edges:
        if edge.source != parent_id or edge.target in seen:
            continue
        seen.add(edge.target)
        sibling = by_id.get(edge.target)
        if sibling is not None and sibling.type == node.type and sibling.text:
            siblings.append(sibling)
    return siblings


def find_root_nodes(
    nodes: Sequence[DialogNode],
    edges: Sequence[DialogEdge],
) -> list[DialogNode]:
    """Return nodes without inbound edges, excluding subgraph containers."""
    targets = {e.target for e in edges}
    return [n for n in nodes if n.id not in targets and n.type != SUBGRAPH_NODE_TYPE]


def serialize_context(
    previous: Sequence[ContextEntry],
    current: ContextEntry,
    following: Sequence[ContextEntry],
    limit: int = MAX_SERIALIZED_CONTEXT_CHARS,
) -> str:
    """Encode a context as JSON and cut it to *limit* characters."""
    raw = json.dumps(
        {
            "previous": [e.to_dict() for e in previous],
            "current": current.to_dict(),
            "next": [e.to_dict() for e in following],
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    return raw[:limit]


def build_context(
    focal_id: str,
    nodes: Sequence[DialogNode],
    edges: Sequence[DialogEdge],
    isolate: bool = False,
    *,
    custom_next: Sequence[DialogNode] | None = None,
    siblings: Sequence[DialogNode] | None = None,
    placeholder_ids: Collection[str] = (),
    max_depth: int | None = None,
    char_limit: int = MAX_SERIALIZED_CONTEXT_CHARS,
) -> DialogContext | None:
    """Build the dialog context for a focal node.

    Args:
        focal_id: Node the context is built for.
        nodes: Nodes of the active view.
        edges: Edges of the active view.
        isolate: Ignore the graph topology; previous, next and siblings
            come back empty.
        custom_next: Replacement for the computed next list, used when
            alternate nodes must be substituted. Ignored when empty.
        siblings: Auxiliary sibling nodes to include.
        placeholder_ids: Nodes whose text is replaced by a
            ``[type - will be regenerated]`` marker.
        max_depth: Optional hop limit for the ancestor/descendant walks.
        char_limit: Length cap for the serialized form.

    Returns:
        The context, or None when *focal_id* is not in *nodes*.
    """
    focal = next((n for n in nodes if n.id == focal_id), None)
    if focal is None:
        return None

    def entry(node: DialogNode) -> ContextEntry:
        return ContextEntry.from_node(node, placeholder=node.id in placeholder_ids)

    current = ContextEntry.from_node(focal)

    if isolate:
        return DialogContext(
            current=current,
            isolated=True,
            serialized=serialize_context((), current, (), char_limit),
        )

    previous_nodes, next_nodes = find_dialog_paths(focal_id, nodes, edges, max_depth)
    if custom_next:
        next_nodes = list(custom_next)

    previous = tuple(entry(n) for n in previous_nodes)
    following = tuple(entry(n) for n in next_nodes)

    return DialogContext(
        current=current,
        previous=previous,
        next=following,
        siblings=tuple(entry(n) for n in siblings or ()),
        serialized=serialize_context(previous, current, following, char_limit),
    )
