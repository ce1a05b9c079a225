"""Factory for creating chat models.

Uses LangChain's init_chat_model abstraction for unified provider
instantiation. Provider credentials and hosts are resolved from the
environment before the unified call.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import httpx

from dialogloom.observability.logging import get_logger
from dialogloom.providers.base import ProviderConnectionError, ProviderError

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

log = get_logger(__name__)

# Provider default models - None means model must be explicitly specified
PROVIDER_DEFAULTS: dict[str, str | None] = {
    "ollama": None,
    "openai": "gpt-5-mini",
    "anthropic": "claude-sonnet-4-20250514",
    "google": "gemini-2.5-flash",
}

_KNOWN_PROVIDERS = frozenset(PROVIDER_DEFAULTS)

# Environment variable holding the API key for each hosted provider
_API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
}

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


def get_default_model(provider_name: str) -> str | None:
    """Get default model for a provider, or None if it must be explicit."""
    return PROVIDER_DEFAULTS.get(_normalize_provider(provider_name))


def parse_provider_string(provider_string: str) -> tuple[str, str]:
    """Split ``"provider/model"`` into its parts.

    A bare provider name resolves to that provider's default model.

    Raises:
        ProviderError: If no model is given and the provider has no default.
    """
    if "/" in provider_string:
        provider, model = provider_string.split("/", 1)
        return _normalize_provider(provider), model

    provider = _normalize_provider(provider_string)
    model = get_default_model(provider)
    if model is None:
        raise ProviderError(
            provider,
            f"Provider '{provider}' requires explicit model. "
            f"Use --provider {provider}/<model-name>",
        )
    return provider, model


def create_chat_model(
    provider_name: str,
    model: str,
    **kwargs: Any,
) -> BaseChatModel:
    """Create a LangChain BaseChatModel.

    Args:
        provider_name: Provider identifier (ollama, openai, anthropic, google).
        model: Model name/identifier.
        **kwargs: Additional provider-specific options.

    Raises:
        ProviderError: If provider unavailable or misconfigured.
    """
    provider = _normalize_provider(provider_name)

    if provider not in _KNOWN_PROVIDERS:
        log.error("provider_unknown", provider=provider)
        raise ProviderError(provider, f"Unknown provider: {provider}")

    kwargs = _preprocess_provider_kwargs(provider, kwargs)

    try:
        chat_model = _init_chat_model_safe(_map_provider_for_init(provider), model, **kwargs)
    except ImportError as e:
        package = _get_package_for_provider(provider)
        log.error("provider_import_error", provider=provider, package=package)
        raise ProviderError(provider, f"{package} not installed. Run: pip install {package}") from e

    log.info("chat_model_created", provider=provider, model=model)
    return chat_model


def _init_chat_model_safe(provider: str, model: str, **kwargs: Any) -> BaseChatModel:
    from langchain.chat_models import init_chat_model

    result: BaseChatModel = init_chat_model(model=model, model_provider=provider, **kwargs)
    return result


def _preprocess_provider_kwargs(provider: str, kwargs: dict[str, Any]) -> dict[str, Any]:
    """Resolve host and API key settings from kwargs or the environment.

    Raises:
        ProviderError: If a hosted provider has no API key configured.
    """
    kwargs = dict(kwargs)

    if provider == "ollama":
        kwargs["base_url"] = kwargs.pop("host", None) or ollama_host()
        return kwargs

    env_var = _API_KEY_ENV[provider]
    api_key = kwargs.pop("google_api_key", None) if provider == "google" else None
    api_key = api_key or kwargs.get("api_key") or os.getenv(env_var)
    if not api_key:
        log.error("provider_config_error", provider=provider, missing=env_var)
        raise ProviderError(provider, f"API key required. Set {env_var} environment variable.")
    kwargs["api_key"] = api_key
    return kwargs


def ollama_host() -> str:
    return os.getenv("OLLAMA_HOST") or DEFAULT_OLLAMA_HOST


def _normalize_provider(provider_name: str) -> str:
    """Normalize provider name, resolving the "gemini" alias."""
    name = provider_name.lower()
    if name == "gemini":
        return "google"
    return name


def _map_provider_for_init(provider: str) -> str:
    # init_chat_model expects 'google_genai' not 'google'
    if provider == "google":
        return "google_genai"
    return provider


def _get_package_for_provider(provider: str) -> str:
    packages = {
        "ollama": "langchain-ollama",
        "openai": "langchain-openai",
        "anthropic": "langchain-anthropic",
        "google": "langchain-google-genai",
    }
    return packages.get(provider, f"langchain-{provider}")


async def list_ollama_models(host: str | None = None, timeout: float = 10.0) -> list[str]:
    """List model names installed on an Ollama server.

    Raises:
        ProviderConnectionError: If the server cannot be reached or answers
            with an error status.
    """
    base_url = host or ollama_host()
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(f"{base_url}/api/tags")
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as e:
        log.warning("ollama_list_models_failed", host=base_url, error=str(e))
        raise ProviderConnectionError("ollama", f"Cannot list models at {base_url}: {e}") from e

    models = data.get("models") if isinstance(data, dict) else None
    if not isinstance(models, list):
        return []
    return [m["name"] for m in models if isinstance(m, dict) and m.get("name")]
