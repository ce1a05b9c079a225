"""Prompt templates and builders for node text generation."""

from dialogloom.prompts.builders import (
    build_custom_prompt,
    build_generation_prompt,
    build_improve_prompt,
    context_section,
    get_system_prompt,
    sibling_awareness,
)
from dialogloom.prompts.loader import (
    PromptLoader,
    PromptTemplate,
    TemplateNotFoundError,
    TemplateParseError,
)

__all__ = [
    "PromptLoader",
    "PromptTemplate",
    "TemplateNotFoundError",
    "TemplateParseError",
    "build_custom_prompt",
    "build_generation_prompt",
    "build_improve_prompt",
    "context_section",
    "get_system_prompt",
    "sibling_awareness",
]
