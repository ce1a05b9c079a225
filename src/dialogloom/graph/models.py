"""Dialog graph data models.

Nodes and edges are pydantic models so graph files can be validated on load
and dumped back without losing unknown metadata. Node ``type`` is an opaque
tag; behaviour keyed on it lives in the node-type registry.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Container node type: holds a nested graph, never generated directly
SUBGRAPH_NODE_TYPE = "subgraphNode"


class NodeStatus(StrEnum):
    """Processing status of a dialog node."""

    IDLE = "idle"
    GENERATING = "generating"
    ERROR = "error"
    TIMEOUT = "timeout"


class DialogEdge(BaseModel):
    """Directed dialog transition from ``source`` to ``target``."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    id: str | None = None


class SubgraphData(BaseModel):
    """Nested graph payload carried by a container node."""

    name: str = ""
    nodes: list[DialogNode] = Field(default_factory=list)
    edges: list[DialogEdge] = Field(default_factory=list)


class DialogNode(BaseModel):
    """A single dialog node.

    Instances are treated as immutable by the generation code: updates go
    through ``model_copy(update=...)`` and a full replacement of the node
    collection.
    """

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    text: str = ""
    status: NodeStatus = NodeStatus.IDLE
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    subgraph: SubgraphData | None = None

    @property
    def tags(self) -> list[str]:
        """Tags used for context serialization.

        Graph files written by older editors nest tags under
        ``metadata.nodeData.tags``; those take precedence when present.
        """
        node_data = self.metadata.get("nodeData")
        if isinstance(node_data, dict) and node_data.get("tags"):
            return [_tag_label(t) for t in node_data["tags"]]
        return [_tag_label(t) for t in self.metadata.get("tags") or []]

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


def _tag_label(tag: Any) -> str:
    if isinstance(tag, dict):
        return str(tag.get("label") or tag.get("id") or "")
    return str(tag)


SubgraphData.model_rebuild()
DialogNode.model_rebuild()
