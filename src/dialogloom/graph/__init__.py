"""Dialog graph model, views and context derivation."""

from dialogloom.graph.context import (
    MAX_SERIALIZED_CONTEXT_CHARS,
    ContextEntry,
    DialogContext,
    build_context,
    find_dialog_paths,
    find_root_nodes,
    find_siblings,
)
from dialogloom.graph.errors import (
    DuplicateNodeError,
    GraphIntegrityError,
    NodeNotFoundError,
)
from dialogloom.graph.io import GraphFileError, load_graph, save_graph
from dialogloom.graph.models import DialogEdge, DialogNode, NodeStatus, SubgraphData
from dialogloom.graph.traversal import regeneration_plan
from dialogloom.graph.views import ActiveView, GraphView, SubgraphNavigator

__all__ = [
    "MAX_SERIALIZED_CONTEXT_CHARS",
    "ActiveView",
    "ContextEntry",
    "DialogContext",
    "DialogEdge",
    "DialogNode",
    "DuplicateNodeError",
    "GraphFileError",
    "GraphIntegrityError",
    "GraphView",
    "NodeNotFoundError",
    "NodeStatus",
    "SubgraphData",
    "SubgraphNavigator",
    "build_context",
    "find_dialog_paths",
    "find_root_nodes",
    "find_siblings",
    "load_graph",
    "regeneration_plan",
    "save_graph",
]
