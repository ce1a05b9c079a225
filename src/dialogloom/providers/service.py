"""Generation service backed by a LangChain chat model."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from dialogloom.generation.registry import NodeTypeRegistry
from dialogloom.observability.logging import get_logger
from dialogloom.prompts import (
    build_custom_prompt,
    build_generation_prompt,
    build_improve_prompt,
    get_system_prompt,
)
from dialogloom.providers.base import (
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from langchain_core.language_models import BaseChatModel

    from dialogloom.graph.context import DialogContext

log = get_logger(__name__)

PROVIDER_NAME = "langchain"


def message_text(content: str | list[Any]) -> str:
    """Plain text of an AI message's content.

    Some providers answer with a list of content blocks instead of a string;
    text blocks are joined with newlines and anything else is ignored.
    """
    if isinstance(content, str):
        return content
    parts = [
        block["text"]
        for block in content
        if isinstance(block, dict)
        and block.get("type") == "text"
        and isinstance(block.get("text"), str)
    ]
    return "\n".join(parts)


class LangChainGenerationService:
    """GenerationService implementation over a LangChain ``BaseChatModel``.

    Args:
        model: Chat model used for every request.
        registry: Node-type registry mapping node types to system prompts.
        request_timeout: Per-request limit in seconds; None disables it.
        model_factory: Builds a chat model for a ``model_override`` name.
            Without one, overrides are ignored with a warning.
    """

    def __init__(
        self,
        model: BaseChatModel,
        *,
        registry: NodeTypeRegistry | None = None,
        request_timeout: float | None = None,
        model_factory: Callable[[str], BaseChatModel] | None = None,
    ) -> None:
        self._model = model
        self._registry = registry if registry is not None else NodeTypeRegistry()
        self._request_timeout = request_timeout
        self._model_factory = model_factory
        self._override_models: dict[str, BaseChatModel] = {}

    def _system_prompt(self, node_type: str, override: str | None = None) -> str:
        return get_system_prompt(self._registry.get(node_type).effective_prompt_key, override)

    def _model_for(self, model_override: str | None) -> BaseChatModel:
        if not model_override:
            return self._model
        if self._model_factory is None:
            log.warning("model_override_ignored", model=model_override)
            return self._model
        if model_override not in self._override_models:
            self._override_models[model_override] = self._model_factory(model_override)
        return self._override_models[model_override]

    async def _invoke(
        self,
        node_type: str,
        system_prompt: str,
        user_prompt: str,
        model: BaseChatModel | None = None,
    ) -> str:
        messages: list[BaseMessage] = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ]
        chat_model = model or self._model
        log.debug("llm_request", node_type=node_type, prompt_chars=len(user_prompt))

        try:
            response = await asyncio.wait_for(
                chat_model.ainvoke(messages), timeout=self._request_timeout
            )
        except (TimeoutError, httpx.TimeoutException) as e:
            log.warning("llm_request_timeout", node_type=node_type, timeout=self._request_timeout)
            raise ProviderTimeoutError(
                PROVIDER_NAME, f"request timed out after {self._request_timeout}s"
            ) from e
        except ProviderError:
            raise
        except Exception as e:
            log.warning("llm_request_failed", node_type=node_type, error=str(e))
            raise ProviderError(PROVIDER_NAME, str(e) or type(e).__name__) from e

        text = message_text(response.content).strip()
        if not text:
            log.warning("llm_empty_response", node_type=node_type)
            raise ProviderResponseError(PROVIDER_NAME, f"empty response for {node_type}")

        log.debug("llm_response", node_type=node_type, chars=len(text))
        return text

    async def generate_dialog(
        self,
        node_type: str,
        context: DialogContext,
        model_override: str | None = None,
        ignore_connections: bool = False,
    ) -> str:
        return await self._invoke(
            node_type,
            self._system_prompt(node_type),
            build_generation_prompt(context, ignore_connections),
            self._model_for(model_override),
        )

    async def improve_dialog(
        self,
        node_type: str,
        context: DialogContext,
        current_text: str,
        ignore_connections: bool = False,
    ) -> str:
        return await self._invoke(
            node_type,
            self._system_prompt(node_type),
            build_improve_prompt(context, current_text, ignore_connections),
        )

    async def generate_with_custom_prompt(
        self,
        node_type: str,
        context: DialogContext,
        user_prompt: str,
        system_prompt: str | None = None,
        ignore_connections: bool = False,
    ) -> str:
        return await self._invoke(
            node_type,
            self._system_prompt(node_type, system_prompt),
            build_custom_prompt(context, user_prompt, ignore_connections),
        )
