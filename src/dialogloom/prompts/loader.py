"""Loading of YAML prompt templates shipped with the package."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

TEMPLATES_PATH = Path(__file__).parent / "templates"

_RESERVED_KEYS = frozenset({"name", "description", "system", "user"})


@dataclass
class PromptTemplate:
    """A loaded prompt template.

    Attributes:
        name: Template name, usually the file stem.
        description: Free-form note on what the template is for.
        system: System message text (may be empty).
        user: User message text with ``{placeholders}``.
        sections: Any further string fields, keyed by field name. Builders
            pick the sections they need and splice them into ``user``.
    """

    name: str
    description: str
    system: str
    user: str
    sections: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any], name: str) -> PromptTemplate:
        sections = {
            str(key): str(value)
            for key, value in data.items()
            if key not in _RESERVED_KEYS and isinstance(value, str)
        }
        return cls(
            name=data.get("name", name),
            description=data.get("description", ""),
            system=data.get("system", ""),
            user=data.get("user", ""),
            sections=sections,
        )

    def section(self, key: str) -> str:
        """Return a named section, or an empty string when absent."""
        return self.sections.get(key, "")


class TemplateNotFoundError(Exception):
    """Raised when a template file cannot be found."""

    def __init__(self, template_name: str, path: Path) -> None:
        self.template_name = template_name
        self.path = path
        super().__init__(f"Template not found: {template_name} at {path}")


class TemplateParseError(Exception):
    """Raised when a template file cannot be parsed."""

    def __init__(self, template_name: str, reason: str) -> None:
        self.template_name = template_name
        self.reason = reason
        super().__init__(f"Failed to parse template '{template_name}': {reason}")


class PromptLoader:
    """Load and cache prompt templates from a directory of YAML files."""

    def __init__(self, templates_path: Path = TEMPLATES_PATH) -> None:
        self.templates_path = templates_path
        self._yaml = YAML(typ="safe")
        self._cache: dict[str, PromptTemplate] = {}

    def _path_for(self, template_name: str) -> Path:
        return self.templates_path / f"{template_name}.yaml"

    def load(self, template_name: str) -> PromptTemplate:
        """Load a template by name (without the ``.yaml`` extension).

        Raises:
            TemplateNotFoundError: If the template file doesn't exist.
            TemplateParseError: If the file is empty or not a mapping.
        """
        if template_name in self._cache:
            return self._cache[template_name]

        data = self.load_raw(template_name)
        template = PromptTemplate.from_dict(data, template_name)
        self._cache[template_name] = template
        return template

    def load_raw(self, template_name: str) -> dict[str, Any]:
        """Load a template file as a plain mapping.

        Raises:
            TemplateNotFoundError: If the template file doesn't exist.
            TemplateParseError: If the file is empty or not a mapping.
        """
        path = self._path_for(template_name)
        if not path.exists():
            raise TemplateNotFoundError(template_name, path)

        try:
            with path.open("r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except Exception as e:
            raise TemplateParseError(template_name, str(e)) from e

        if data is None:
            raise TemplateParseError(template_name, "Empty file")
        if not isinstance(data, dict):
            raise TemplateParseError(template_name, "Top level must be a mapping")
        return dict(data)

    def exists(self, template_name: str) -> bool:
        return self._path_for(template_name).exists()

    def list_templates(self) -> list[str]:
        if not self.templates_path.exists():
            return []
        return sorted(p.stem for p in self.templates_path.glob("*.yaml") if p.is_file())

    def clear_cache(self) -> None:
        self._cache.clear()
