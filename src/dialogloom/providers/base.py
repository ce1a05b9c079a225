"""Generation service protocol and provider error types."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from dialogloom.graph.context import DialogContext


class GenerationService(Protocol):
    """Text-generation backend consumed by the dispatcher.

    Every method may raise; a message containing ``timeout`` or
    ``timed out`` signals a time-limit condition.
    """

    async def generate_dialog(
        self,
        node_type: str,
        context: DialogContext,
        model_override: str | None = None,
        ignore_connections: bool = False,
    ) -> str:
        """Generate a fresh alternative text for the focal node."""
        ...

    async def improve_dialog(
        self,
        node_type: str,
        context: DialogContext,
        current_text: str,
        ignore_connections: bool = False,
    ) -> str:
        """Refine *current_text* while keeping its meaning."""
        ...

    async def generate_with_custom_prompt(
        self,
        node_type: str,
        context: DialogContext,
        user_prompt: str,
        system_prompt: str | None = None,
        ignore_connections: bool = False,
    ) -> str:
        """Generate text from a free-form user prompt."""
        ...


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class ProviderConnectionError(ProviderError):
    """Raised when connection to the provider fails."""

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when a request exceeds its time limit.

    The message always contains "timed out" so downstream classification
    treats it as a timeout.
    """

    pass


class ProviderResponseError(ProviderError):
    """Raised when the provider answers with unusable content."""

    pass
