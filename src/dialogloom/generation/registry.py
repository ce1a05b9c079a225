"""Node-type registry.

An explicitly constructed service that knows which node types exist and how
the generation code treats them. Registration is idempotent: registering a
type that is already known keeps the first registration and returns it.

Usage::

    registry = NodeTypeRegistry()
    registry.register(NodeTypeConfig(name="npcDialog", label="NPC Dialog"))
    registry.is_container("subgraphNode")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dialogloom.graph.models import SUBGRAPH_NODE_TYPE
from dialogloom.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

log = get_logger(__name__)


@dataclass(frozen=True)
class NodeTypeConfig:
    """How one node type participates in generation.

    Attributes:
        name: Type tag as stored on nodes.
        label: Human-readable name.
        ai_enabled: Whether text for this type can be generated.
        is_container: Container types hold a nested graph and are skipped
            by bulk regeneration.
        prompt_key: Key into the system prompt table; defaults to ``name``.
    """

    name: str
    label: str = ""
    ai_enabled: bool = True
    is_container: bool = False
    prompt_key: str | None = None

    @property
    def effective_prompt_key(self) -> str:
        return self.prompt_key or self.name


DEFAULT_NODE_TYPES: tuple[NodeTypeConfig, ...] = (
    NodeTypeConfig("npcDialog", "NPC Dialog"),
    NodeTypeConfig("playerResponse", "Player Response"),
    NodeTypeConfig("narratorNode", "Narrator"),
    NodeTypeConfig("characterDialogNode", "Character Dialog", prompt_key="npcDialog"),
    NodeTypeConfig("enemyDialog", "Enemy Dialog"),
    NodeTypeConfig("choiceNode", "Choice"),
    NodeTypeConfig("branchingNode", "Branching", prompt_key="playerResponse"),
    NodeTypeConfig("sceneDescriptionNode", "Scene Description", prompt_key="narratorNode"),
    NodeTypeConfig("customNode", "Custom", prompt_key="general"),
    NodeTypeConfig(SUBGRAPH_NODE_TYPE, "Subgraph", ai_enabled=False, is_container=True),
)


class NodeTypeRegistry:
    """Registry of node types known to the generation code.

    Unknown types are not an error anywhere: the core treats node types as
    opaque, and lookups for unregistered types fall back to a generic
    AI-enabled config.
    """

    def __init__(self, configs: Iterable[NodeTypeConfig] | None = None) -> None:
        self._configs: dict[str, NodeTypeConfig] = {}
        for config in DEFAULT_NODE_TYPES if configs is None else configs:
            self.register(config)

    def register(self, config: NodeTypeConfig) -> NodeTypeConfig:
        """Register a node type. Re-registering a known type is a no-op.

        Returns:
            The config now registered for ``config.name``.
        """
        existing = self._configs.get(config.name)
        if existing is not None:
            if existing != config:
                log.debug("node_type_already_registered", node_type=config.name)
            return existing
        self._configs[config.name] = config
        log.debug("node_type_registered", node_type=config.name)
        return config

    def unregister(self, name: str) -> None:
        """Remove a node type. Unknown names are ignored."""
        if self._configs.pop(name, None) is not None:
            log.debug("node_type_unregistered", node_type=name)

    def get(self, name: str) -> NodeTypeConfig:
        """Get the config for *name*, or a generic one if unregistered."""
        return self._configs.get(name) or NodeTypeConfig(name=name, prompt_key="general")

    def is_registered(self, name: str) -> bool:
        return name in self._configs

    def is_container(self, name: str) -> bool:
        return self.get(name).is_container

    def names(self) -> list[str]:
        return list(self._configs)

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __len__(self) -> int:
        return len(self._configs)
