"""Tests for prompt templates and builders."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from dialogloom.graph.context import DialogContext, build_context
from dialogloom.graph.models import DialogEdge, DialogNode
from dialogloom.prompts.builders import (
    OPEN_ENDED,
    build_custom_prompt,
    build_generation_prompt,
    build_improve_prompt,
    context_section,
    get_system_prompt,
)
from dialogloom.prompts.loader import PromptLoader, TemplateNotFoundError, TemplateParseError
from tests.fixtures.fakes import edges, node


def _context(
    focal: str, nodes: list[DialogNode], graph_edges: list[DialogEdge], **kwargs: Any
) -> DialogContext:
    context = build_context(focal, nodes, graph_edges, **kwargs)
    assert context is not None
    return context


def _chain(length: int) -> tuple[list[DialogNode], list[DialogEdge]]:
    ids = [f"n{i}" for i in range(length)]
    return [node(i) for i in ids], edges(*(f"{a}>{b}" for a, b in zip(ids, ids[1:])))


class TestPromptLoader:
    def test_packaged_templates(self) -> None:
        loader = PromptLoader()
        assert loader.list_templates() == ["custom", "generate", "improve", "node_types"]

    def test_sections_collected(self) -> None:
        template = PromptLoader().load("generate")

        assert template.name == "generate"
        assert "{context_section}" in template.user
        assert {"isolated", "dialog_start", "continuation", "siblings", "tags"} <= set(
            template.sections
        )
        assert template.section("nope") == ""

    def test_cached(self) -> None:
        loader = PromptLoader()
        assert loader.load("improve") is loader.load("improve")

    def test_missing_template(self, tmp_path: Path) -> None:
        loader = PromptLoader(tmp_path)

        with pytest.raises(TemplateNotFoundError):
            loader.load("absent")
        assert not loader.exists("absent")

    def test_malformed_templates(self, tmp_path: Path) -> None:
        (tmp_path / "empty.yaml").write_text("", encoding="utf-8")
        (tmp_path / "listy.yaml").write_text("- one\n- two\n", encoding="utf-8")
        (tmp_path / "broken.yaml").write_text("user: [unclosed\n", encoding="utf-8")
        loader = PromptLoader(tmp_path)

        for name in ("empty", "listy", "broken"):
            with pytest.raises(TemplateParseError):
                loader.load(name)


class TestSystemPrompt:
    def test_known_key(self) -> None:
        assert "NPC" in get_system_prompt("npcDialog")

    def test_unknown_key_falls_back_to_general(self) -> None:
        assert get_system_prompt("mysteryNode") == get_system_prompt("general")

    def test_override_wins(self) -> None:
        assert get_system_prompt("npcDialog", override="Be brief.") == "Be brief."


class TestContextSection:
    def test_isolated(self) -> None:
        context = _context("A", [node("A"), node("B")], edges("A>B"), isolate=True)

        section = context_section(context)

        assert "STANDALONE NODE" in section
        assert "text B" not in section

    def test_ignore_connections_treated_as_isolated(self) -> None:
        context = _context("B", [node("A"), node("B")], edges("A>B"))
        assert "STANDALONE NODE" in context_section(context, ignore_connections=True)

    def test_dialog_start_lists_next(self) -> None:
        context = _context("A", [node("A"), node("B"), node("C")], edges("A>B", "A>C"))

        section = context_section(context)

        assert "DIALOG START" in section
        assert "-> text B\n-> text C" in section

    def test_dialog_start_open_ended(self) -> None:
        context = _context("A", [node("A")], [])
        assert OPEN_ENDED in context_section(context)

    def test_continuation_oldest_first(self) -> None:
        nodes, graph_edges = _chain(4)
        context = _context("n3", nodes, graph_edges)

        section = context_section(context)

        assert section.index("text n0") < section.index("text n1") < section.index("text n2")
        assert "LAST MESSAGE: text n2" in section
        assert "[NPCDIALOG]: text n0" in section
        assert "RESPONSE (npcDialog)" in section
        assert OPEN_ENDED in section

    def test_continuation_window(self) -> None:
        nodes, graph_edges = _chain(8)
        context = _context("n7", nodes, graph_edges)

        section = context_section(context)

        assert "text n1" not in section
        assert "text n2" in section


class TestGenerationPrompt:
    def test_siblings_section(self) -> None:
        nodes = [node("P"), node("A", "playerResponse"), node("B", "playerResponse")]
        context = _context("A", nodes, edges("P>A", "P>B"), siblings=[nodes[2]])

        prompt = build_generation_prompt(context)

        assert "SIGNIFICANTLY DIFFERENT" in prompt
        assert '- "text B"' in prompt
        assert prompt.endswith("RESPONSE:")

    def test_ignore_connections_drops_siblings(self) -> None:
        nodes = [node("P"), node("A", "playerResponse"), node("B", "playerResponse")]
        context = _context("A", nodes, edges("P>A", "P>B"), siblings=[nodes[2]])

        prompt = build_generation_prompt(context, ignore_connections=True)

        assert "SIGNIFICANTLY DIFFERENT" not in prompt
        assert "STANDALONE NODE" in prompt

    def test_tags(self) -> None:
        tagged = node("A", metadata={"tags": ["quest", "tavern"]})
        prompt = build_generation_prompt(_context("A", [tagged], []))
        assert "TAG CONTEXT (OPTIONAL): quest, tavern" in prompt

    def test_no_tag_section_without_tags(self) -> None:
        assert "TAG CONTEXT" not in build_generation_prompt(_context("A", [node("A")], []))


class TestImprovePrompt:
    def test_includes_current_text_and_neighbours(self) -> None:
        context = _context("B", [node("A"), node("B"), node("C")], edges("A>B", "B>C"))

        prompt = build_improve_prompt(context, "Hello there")

        assert 'CURRENT NODE (NPCDIALOG): "Hello there"' in prompt
        assert "[NPCDIALOG]: text A" in prompt
        assert "-> text C" in prompt

    def test_isolated_has_placeholders(self) -> None:
        context = _context("B", [node("A"), node("B")], edges("A>B"))

        prompt = build_improve_prompt(context, "Hello", ignore_connections=True)

        assert "No previous messages" in prompt
        assert "No next messages" in prompt

    def test_window_of_three(self) -> None:
        nodes, graph_edges = _chain(6)
        prompt = build_improve_prompt(_context("n5", nodes, graph_edges), "x")

        assert "text n1" not in prompt
        assert "text n2" in prompt


def test_custom_prompt() -> None:
    context = _context("A", [node("A", "narratorNode")], [])

    prompt = build_custom_prompt(context, "Describe the rain")

    assert "USER INSTRUCTION:\nDescribe the rain" in prompt
    assert "current node (narratorNode)" in prompt
    assert "DIALOG START" in prompt
