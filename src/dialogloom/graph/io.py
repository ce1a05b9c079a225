"""Reading and writing dialog graph files.

Graph files are JSON documents with ``nodes`` and ``edges`` arrays. Extra
top-level keys are preserved on write so files from other tools survive a
round trip through the CLI.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from dialogloom.graph.models import DialogEdge, DialogNode
from dialogloom.graph.views import GraphView
from dialogloom.observability.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger(__name__)

_NODES = TypeAdapter(list[DialogNode])
_EDGES = TypeAdapter(list[DialogEdge])


class GraphFileError(Exception):
    """Raised when a graph file cannot be read or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load graph file {path}: {reason}")


def graph_from_dict(data: dict[str, Any]) -> GraphView:
    """Build a GraphView from a parsed graph document.

    Edges may use either ``source``/``target`` or the ``sourceId``/``targetId``
    spelling.
    """
    raw_edges = data.get("edges") or data.get("connections") or []
    edges = [_normalize_edge(e) for e in raw_edges] if isinstance(raw_edges, list) else raw_edges
    return GraphView(
        _NODES.validate_python(data.get("nodes") or []),
        _EDGES.validate_python(edges),
    )


def _normalize_edge(edge: Any) -> Any:
    # Anything that is not an object is left for validation to reject
    if not isinstance(edge, dict) or "source" in edge:
        return edge
    return {
        "source": edge.get("sourceId"),
        "target": edge.get("targetId"),
        "id": edge.get("id"),
    }


def graph_to_dict(view: GraphView) -> dict[str, Any]:
    return {
        "nodes": _NODES.dump_python(view.nodes, mode="json", exclude_none=True),
        "edges": _EDGES.dump_python(view.edges, mode="json", exclude_none=True),
    }


def load_graph(path: Path) -> GraphView:
    """Load a graph file.

    Raises:
        GraphFileError: If the file is missing or malformed.
    """
    if not path.exists():
        raise GraphFileError(path, "File not found")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise GraphFileError(path, f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise GraphFileError(path, "Expected a JSON object with 'nodes' and 'edges'")
    try:
        return graph_from_dict(data)
    except ValidationError as e:
        raise GraphFileError(path, str(e)) from e


def save_graph(view: GraphView, path: Path) -> None:
    """Write a graph file atomically, keeping unknown top-level keys."""
    document: dict[str, Any] = {}
    if path.exists():
        try:
            existing = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(existing, dict):
                document.update(existing)
        except json.JSONDecodeError as e:
            log.warning("graph_file_overwritten", path=str(path), error=str(e))
    document.pop("connections", None)
    document.update(graph_to_dict(view))

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    tmp_path.replace(path)
