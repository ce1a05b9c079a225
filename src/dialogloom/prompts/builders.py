"""Prompt construction from dialog contexts.

Templates are stored as YAML under ``prompts/templates/`` and rendered with
LangChain's ``PromptTemplate``. The builders here decide which sections of a
template apply to a given :class:`~dialogloom.graph.context.DialogContext`:

- isolated (or connections ignored): standalone opening line
- no previous nodes: dialog start, steered toward the next nodes
- otherwise: continuation of the conversation so far
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Any

from langchain_core.prompts import PromptTemplate as LCPromptTemplate

from dialogloom.prompts.loader import PromptLoader

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dialogloom.graph.context import ContextEntry, DialogContext

DEFAULT_PROMPT_KEY = "general"

# Previous messages shown in continuation prompts, oldest first
PREVIOUS_WINDOW = 5
# Previous messages shown when improving existing text
IMPROVE_PREVIOUS_WINDOW = 3

OPEN_ENDED = "[Open ended response]"


@lru_cache(maxsize=1)
def get_loader() -> PromptLoader:
    return PromptLoader()


def render(template: str, **values: Any) -> str:
    """Render a ``{placeholder}`` template string."""
    return LCPromptTemplate.from_template(template).format(**values)


def get_system_prompt(prompt_key: str, override: str | None = None) -> str:
    """System prompt for a node type's prompt key.

    An explicit *override* wins; unknown keys fall back to the general prompt.
    """
    if override:
        return override
    prompts = get_loader().load("node_types").sections
    return prompts.get(prompt_key) or prompts[DEFAULT_PROMPT_KEY]


def _previous_messages(context: DialogContext, window: int) -> str:
    # previous is nearest first; prompts read oldest first
    recent = list(reversed(context.previous[:window]))
    return "\n".join(f"[{entry.type.upper()}]: {entry.text}" for entry in recent)


def _next_messages(entries: Sequence[ContextEntry], empty: str = OPEN_ENDED) -> str:
    if not entries:
        return empty
    return "\n".join(f"-> {entry.text}" for entry in entries)


def sibling_awareness(siblings: Sequence[ContextEntry]) -> str:
    """Section asking for text that differs from the sibling nodes."""
    if not siblings:
        return ""
    texts = "\n".join(f'- "{entry.text}"' for entry in siblings)
    return render(get_loader().load("generate").section("siblings"), sibling_texts=texts)


def context_section(context: DialogContext, ignore_connections: bool = False) -> str:
    """Describe where the focal node sits in the conversation."""
    template = get_loader().load("generate")
    if context.isolated or ignore_connections:
        return template.section("isolated")
    if not context.previous:
        return render(
            template.section("dialog_start"),
            next_messages=_next_messages(context.next),
        )
    return render(
        template.section("continuation"),
        previous_messages=_previous_messages(context, PREVIOUS_WINDOW),
        last_message=context.previous[0].text,
        node_type=context.current.type,
        next_messages=_next_messages(context.next),
    )


def build_generation_prompt(context: DialogContext, ignore_connections: bool = False) -> str:
    """User prompt for generating a fresh alternative text."""
    template = get_loader().load("generate")
    tags = context.current.tags
    tag_section = render(template.section("tags"), tags=", ".join(tags)) if tags else ""
    siblings = () if ignore_connections else context.siblings
    return render(
        template.user,
        context_section=context_section(context, ignore_connections),
        tag_section=tag_section,
        sibling_section=sibling_awareness(siblings),
    ).strip()


def build_improve_prompt(
    context: DialogContext,
    current_text: str,
    ignore_connections: bool = False,
) -> str:
    """User prompt for refining *current_text* in place."""
    template = get_loader().load("improve")
    connected = not (context.isolated or ignore_connections)
    previous = _previous_messages(context, IMPROVE_PREVIOUS_WINDOW) if connected else ""
    following = context.next if connected else ()
    return render(
        template.user,
        previous_messages=previous or "No previous messages",
        node_type=context.current.type.upper(),
        current_text=current_text,
        next_messages=_next_messages(following, empty="No next messages"),
    ).strip()


def build_custom_prompt(
    context: DialogContext,
    user_prompt: str,
    ignore_connections: bool = False,
) -> str:
    """User prompt wrapping a free-form instruction with conversation context."""
    template = get_loader().load("custom")
    return render(
        template.user,
        context_section=context_section(context, ignore_connections),
        user_prompt=user_prompt,
        node_type=context.current.type,
    ).strip()
