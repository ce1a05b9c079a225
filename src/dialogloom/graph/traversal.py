"""Ordering of nodes for bulk regeneration.

Pure functions over edge lists. The plan is a depth-first postorder from the
start node where each finished node is put in front of the ones finished
before it, so within a branch every node comes before its descendants.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from dialogloom.graph.context import build_adjacency
from dialogloom.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from dialogloom.graph.models import DialogEdge

log = get_logger(__name__)


def reverse_postorder(start_id: str, edges: Sequence[DialogEdge]) -> list[str]:
    """Depth-first postorder from *start_id*, each node prepended on finish.

    Visited ids are marked on entry, so cycles terminate and every
    reachable id appears exactly once. The walk is iterative and safe on
    deep graphs.

    Args:
        start_id: Node to start from.
        edges: Edges to follow (source -> target).

    Returns:
        Reachable node ids, start included.
    """
    outgoing, _ = build_adjacency(edges)
    order: deque[str] = deque()
    visited = {start_id}
    stack: list[tuple[str, Iterator[str]]] = [(start_id, iter(outgoing.get(start_id, [])))]

    while stack:
        node_id, targets = stack[-1]
        for target in targets:
            if target not in visited:
                visited.add(target)
                stack.append((target, iter(outgoing.get(target, []))))
                break
        else:
            stack.pop()
            order.appendleft(node_id)

    return list(order)


def dedupe(ids: Iterable[str]) -> list[str]:
    """Drop repeated ids, keeping first occurrence order."""
    return list(dict.fromkeys(ids))


def regeneration_plan(start_id: str, edges: Sequence[DialogEdge]) -> list[str]:
    """Compute the ordered, duplicate-free list of nodes to regenerate.

    The start node is always first. Relative order of separate branches
    below it follows edge order as the walk meets them.

    Args:
        start_id: Node the bulk run starts from.
        edges: Edges of the active view.

    Returns:
        Node ids in regeneration order.
    """
    order = reverse_postorder(start_id, edges)
    # Stable sort only moves the start node; cycles back into start cannot
    # displace it.
    order.sort(key=lambda node_id: node_id != start_id)
    plan = dedupe(order)
    log.debug("regeneration_plan_built", start=start_id, size=len(plan))
    return plan
