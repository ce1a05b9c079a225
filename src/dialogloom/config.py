"""Project configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

CONFIG_FILENAME = "dialogloom.yaml"

# Default configuration values
DEFAULT_PROVIDER = "ollama"
DEFAULT_MODEL = "qwen3:8b"

PROVIDER_ENV_VAR = "DLOOM_PROVIDER"


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


@dataclass
class GenerationConfig:
    """Tuning of the generation lifecycle.

    Attributes:
        flush_interval: Buffered texts that trigger a graph write during a
            bulk run.
        inter_node_delay: Seconds to wait after each node of a bulk run.
        context_char_limit: Length cap of the serialized dialog context.
        context_max_depth: Optional hop limit for ancestor/descendant walks.
        request_timeout: Per-request backend limit in seconds; None disables it.
    """

    flush_interval: int = 3
    inter_node_delay: float = 0.05
    context_char_limit: int = 2000
    context_max_depth: int | None = None
    request_timeout: float | None = 120.0

    def validate(self) -> list[str]:
        """Return a list of problems; empty when the config is usable."""
        problems: list[str] = []
        if self.flush_interval < 1:
            problems.append("generation.flush_interval must be at least 1")
        if self.inter_node_delay < 0:
            problems.append("generation.inter_node_delay must not be negative")
        if self.context_char_limit < 1:
            problems.append("generation.context_char_limit must be positive")
        if self.context_max_depth is not None and self.context_max_depth < 1:
            problems.append("generation.context_max_depth must be positive when set")
        if self.request_timeout is not None and self.request_timeout <= 0:
            problems.append("generation.request_timeout must be positive when set")
        return problems

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GenerationConfig:
        defaults = cls()
        return cls(
            flush_interval=int(data.get("flush_interval", defaults.flush_interval)),
            inter_node_delay=float(data.get("inter_node_delay", defaults.inter_node_delay)),
            context_char_limit=int(data.get("context_char_limit", defaults.context_char_limit)),
            context_max_depth=_optional(data, "context_max_depth", int, defaults.context_max_depth),
            request_timeout=_optional(data, "request_timeout", float, defaults.request_timeout),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "flush_interval": self.flush_interval,
            "inter_node_delay": self.inter_node_delay,
            "context_char_limit": self.context_char_limit,
            "context_max_depth": self.context_max_depth,
            "request_timeout": self.request_timeout,
        }


def _optional(data: dict[str, Any], key: str, cast: Any, default: Any) -> Any:
    if key not in data:
        return default
    value = data[key]
    return None if value is None else cast(value)


@dataclass
class ProjectConfig:
    """Configuration for a DialogLoom project.

    Attributes:
        name: Project name, shown in CLI output.
        provider: Provider string ``"<provider>/<model>"``; a bare provider
            name uses that provider's default model.
        generation: Generation lifecycle settings.
    """

    name: str = "unnamed"
    provider: str = f"{DEFAULT_PROVIDER}/{DEFAULT_MODEL}"
    generation: GenerationConfig = field(default_factory=GenerationConfig)

    def get_provider(self, override: str | None = None) -> str:
        """Effective provider string.

        Resolution order: explicit override (CLI flag), ``DLOOM_PROVIDER``,
        then the config file.
        """
        return override or os.getenv(PROVIDER_ENV_VAR) or self.provider

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectConfig:
        generation_data = data.get("generation") or {}
        if not isinstance(generation_data, dict):
            raise TypeError("'generation' must be a mapping")
        return cls(
            name=data.get("name", "unnamed"),
            provider=data.get("provider", f"{DEFAULT_PROVIDER}/{DEFAULT_MODEL}"),
            generation=GenerationConfig.from_dict(dict(generation_data)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "provider": self.provider,
            "generation": self.generation.to_dict(),
        }


def _resolve_config_path(path: Path) -> Path:
    return path / CONFIG_FILENAME if path.is_dir() else path


def load_config(path: Path | None = None) -> ProjectConfig:
    """Load configuration from a ``dialogloom.yaml`` file or its directory.

    A directory without a config file yields the defaults; an explicitly
    named file must exist.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    base = path or Path()
    config_path = _resolve_config_path(base)

    if not config_path.exists():
        if base.is_dir():
            return ProjectConfig()
        raise ConfigError(config_path, "File not found")

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
        if data is None:
            raise ConfigError(config_path, "Empty file")
        if not isinstance(data, dict):
            raise ConfigError(config_path, "Top level must be a mapping")
        config = ProjectConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(config_path, str(e)) from e

    problems = config.generation.validate()
    if problems:
        raise ConfigError(config_path, "; ".join(problems))
    return config


def write_default_config(
    directory: Path,
    name: str,
    provider: str | None = None,
) -> Path:
    """Write a default ``dialogloom.yaml`` into *directory*.

    Raises:
        ConfigError: If a config file already exists there.
    """
    config_path = directory / CONFIG_FILENAME
    if config_path.exists():
        raise ConfigError(config_path, "File already exists")

    config = ProjectConfig(name=name, provider=provider or f"{DEFAULT_PROVIDER}/{DEFAULT_MODEL}")
    directory.mkdir(parents=True, exist_ok=True)
    yaml = YAML()
    yaml.default_flow_style = False
    with config_path.open("w", encoding="utf-8") as f:
        yaml.dump(config.to_dict(), f)
    return config_path
