"""Text-generation backends."""

from dialogloom.providers.base import (
    GenerationService,
    ProviderConnectionError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from dialogloom.providers.factory import (
    create_chat_model,
    get_default_model,
    list_ollama_models,
    parse_provider_string,
)
from dialogloom.providers.service import LangChainGenerationService

__all__ = [
    "GenerationService",
    "LangChainGenerationService",
    "ProviderConnectionError",
    "ProviderError",
    "ProviderResponseError",
    "ProviderTimeoutError",
    "create_chat_model",
    "get_default_model",
    "list_ollama_models",
    "parse_provider_string",
]
