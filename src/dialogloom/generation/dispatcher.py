"""Generation dispatcher.

Routes a request to the backend method for its mode and converts any
failure exactly once into a classified :class:`GenerationFailure`. There is
no retry: a failed request is reported and left to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from dialogloom.generation.errors import GenerationError, GenerationFailure
from dialogloom.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

    from dialogloom.graph.context import DialogContext
    from dialogloom.providers.base import GenerationService

log = get_logger(__name__)


class GenerateMode(StrEnum):
    """What kind of generation a request asks for."""

    RECREATE = "recreate"
    IMPROVE = "improve"
    CUSTOM = "custom"
    REGENERATE_FROM_HERE = "regenerate_from_here"


@dataclass
class DispatchStats:
    """Running request counters."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    timeout: int = 0

    def record_success(self) -> None:
        self.total += 1
        self.successful += 1

    def record_failure(self, failure: GenerationFailure) -> None:
        self.total += 1
        self.failed += 1
        if failure.is_timeout:
            self.timeout += 1


class GenerationDispatcher:
    """Sends generation requests to a :class:`GenerationService`.

    Args:
        service: Backend performing the actual generation.
    """

    def __init__(self, service: GenerationService) -> None:
        self._service = service
        self.stats = DispatchStats()

    async def generate(
        self,
        node_type: str,
        context: DialogContext,
        mode: GenerateMode | str = GenerateMode.RECREATE,
        extra: Mapping[str, Any] | None = None,
        *,
        ignore_connections: bool = False,
        model_override: str | None = None,
    ) -> str:
        """Generate text for the focal node of *context*.

        Args:
            node_type: Type of the focal node.
            context: Freshly built dialog context.
            mode: ``recreate``, ``improve`` or ``custom``.
            extra: Mode parameters: ``current_text`` for improve, ``prompt``
                and optional ``system_prompt`` for custom.
            ignore_connections: Forwarded to the backend.
            model_override: Model name forwarded to the backend on recreate.

        Returns:
            The generated text.

        Raises:
            ValueError: For ``regenerate_from_here`` (handled by the
                orchestrator) or missing mode parameters.
            GenerationError: If the backend call fails or returns no text.
        """
        mode = GenerateMode(mode)
        extra = extra or {}

        if mode is GenerateMode.REGENERATE_FROM_HERE:
            raise ValueError("regenerate_from_here is a bulk operation; use the orchestrator")
        if mode is GenerateMode.IMPROVE and "current_text" not in extra:
            raise ValueError("improve mode requires 'current_text'")
        if mode is GenerateMode.CUSTOM and not extra.get("prompt"):
            raise ValueError("custom mode requires 'prompt'")

        log.debug("dispatch_started", node_id=context.current.id, node_type=node_type, mode=mode)

        try:
            if mode is GenerateMode.IMPROVE:
                text = await self._service.improve_dialog(
                    node_type,
                    context,
                    extra["current_text"],
                    ignore_connections=ignore_connections,
                )
            elif mode is GenerateMode.CUSTOM:
                text = await self._service.generate_with_custom_prompt(
                    node_type,
                    context,
                    extra["prompt"],
                    system_prompt=extra.get("system_prompt"),
                    ignore_connections=ignore_connections,
                )
            else:
                text = await self._service.generate_dialog(
                    node_type,
                    context,
                    model_override=model_override,
                    ignore_connections=ignore_connections,
                )
        except Exception as e:
            failure = GenerationFailure.from_exception(e)
            self.stats.record_failure(failure)
            log.warning(
                "dispatch_failed",
                node_id=context.current.id,
                kind=failure.kind,
                error=failure.message,
            )
            raise GenerationError(node_type, failure) from e

        if not text or not text.strip():
            failure = GenerationFailure.from_exception(
                ValueError(f"empty text generated for {node_type}")
            )
            self.stats.record_failure(failure)
            log.warning("dispatch_empty_text", node_id=context.current.id)
            raise GenerationError(node_type, failure)

        self.stats.record_success()
        return text
