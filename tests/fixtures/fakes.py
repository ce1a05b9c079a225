"""Graph builders and fake collaborators shared by the unit tests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dialogloom.graph.context import DialogContext
from dialogloom.graph.models import DialogEdge, DialogNode


def node(
    node_id: str,
    node_type: str = "npcDialog",
    text: str | None = None,
    **kwargs: Any,
) -> DialogNode:
    """Build a node; text defaults to ``"text <id>"``."""
    if text is None:
        text = f"text {node_id}"
    return DialogNode(id=node_id, type=node_type, text=text, **kwargs)


def edges(*pairs: str) -> list[DialogEdge]:
    """Edges from ``"A>B"`` shorthand."""
    result = []
    for pair in pairs:
        source, target = pair.split(">")
        result.append(DialogEdge(source=source, target=target))
    return result


@dataclass
class ServiceCall:
    method: str
    node_id: str
    node_type: str
    context: DialogContext
    kwargs: dict[str, Any] = field(default_factory=dict)


class FakeGenerationService:
    """In-memory GenerationService.

    Responses are looked up by focal node id; an exception instance is
    raised instead of returned. Unlisted nodes get ``"new <id>"``.
    """

    def __init__(self, responses: dict[str, str | BaseException] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[ServiceCall] = []
        self.on_call: Callable[[ServiceCall], None] | None = None

    async def _respond(
        self, method: str, node_type: str, context: DialogContext, **kwargs: Any
    ) -> str:
        call = ServiceCall(method, context.current.id, node_type, context, kwargs)
        self.calls.append(call)
        if self.on_call is not None:
            self.on_call(call)
        outcome = self.responses.get(context.current.id, f"new {context.current.id}")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def generate_dialog(
        self,
        node_type: str,
        context: DialogContext,
        model_override: str | None = None,
        ignore_connections: bool = False,
    ) -> str:
        return await self._respond(
            "generate",
            node_type,
            context,
            model_override=model_override,
            ignore_connections=ignore_connections,
        )

    async def improve_dialog(
        self,
        node_type: str,
        context: DialogContext,
        current_text: str,
        ignore_connections: bool = False,
    ) -> str:
        return await self._respond(
            "improve",
            node_type,
            context,
            current_text=current_text,
            ignore_connections=ignore_connections,
        )

    async def generate_with_custom_prompt(
        self,
        node_type: str,
        context: DialogContext,
        user_prompt: str,
        system_prompt: str | None = None,
        ignore_connections: bool = False,
    ) -> str:
        return await self._respond(
            "custom",
            node_type,
            context,
            user_prompt=user_prompt,
            system_prompt=system_prompt,
            ignore_connections=ignore_connections,
        )

    @property
    def node_ids(self) -> list[str]:
        return [c.node_id for c in self.calls]


class RecordingProgressReporter:
    """Progress reporter that keeps everything it is told."""

    def __init__(self) -> None:
        self.percents: list[int] = []
        self.messages: list[str] = []
        self.successes: list[str] = []
        self.failures: list[str] = []

    def progress(self, percent: int) -> None:
        self.percents.append(percent)

    def message(self, text: str) -> None:
        self.messages.append(text)

    def success(self, text: str) -> None:
        self.successes.append(text)

    def failure(self, text: str) -> None:
        self.failures.append(text)
