"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable

import pytest

from dialogloom.graph.models import DialogEdge, DialogNode
from dialogloom.graph.views import ActiveView, GraphView
from tests.fixtures.fakes import FakeGenerationService, RecordingProgressReporter, edges, node


@pytest.fixture(autouse=True, scope="session")
def disable_langsmith_tracing() -> None:
    """Keep LangChain from tracing test runs to LangSmith."""
    if os.environ.get("LANGSMITH_TEST_TRACING", "").lower() != "true":
        os.environ["LANGSMITH_TRACING"] = "false"


@pytest.fixture(autouse=True)
def isolate_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests never pick up a provider from the developer's shell."""
    monkeypatch.delenv("DLOOM_PROVIDER", raising=False)
    monkeypatch.delenv("DLOOM_CONFIG", raising=False)


@pytest.fixture
def make_view() -> Callable[..., ActiveView]:
    def _make(nodes: Iterable[DialogNode], graph_edges: Iterable[DialogEdge] = ()) -> ActiveView:
        return ActiveView(GraphView(nodes, graph_edges))

    return _make


@pytest.fixture
def chain_view() -> ActiveView:
    """A -> B -> C, all npcDialog."""
    return ActiveView(GraphView([node("A"), node("B"), node("C")], edges("A>B", "B>C")))


@pytest.fixture
def service() -> FakeGenerationService:
    return FakeGenerationService()


@pytest.fixture
def reporter() -> RecordingProgressReporter:
    return RecordingProgressReporter()
