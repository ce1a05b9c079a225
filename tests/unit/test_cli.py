"""Test CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from typer.testing import CliRunner

from dialogloom import __version__
from dialogloom.cli import app
from dialogloom.config import CONFIG_FILENAME
from dialogloom.providers import ProviderConnectionError
from tests.fixtures.fakes import FakeGenerationService

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project directory with a fast config and a three-node chain graph."""
    (tmp_path / CONFIG_FILENAME).write_text(
        "name: test\nprovider: ollama/test-model\ngeneration:\n  inter_node_delay: 0\n",
        encoding="utf-8",
    )
    graph = {
        "nodes": [
            {"id": "A", "type": "npcDialog", "text": "Hello, stranger."},
            {"id": "B", "type": "playerResponse", "text": "Who are you?"},
            {"id": "C", "type": "npcDialog", "text": ""},
        ],
        "edges": [{"source": "A", "target": "B"}, {"source": "B", "target": "C"}],
    }
    (tmp_path / "graph.json").write_text(json.dumps(graph), encoding="utf-8")
    return tmp_path


@pytest.fixture
def fake_service(monkeypatch: pytest.MonkeyPatch) -> FakeGenerationService:
    service = FakeGenerationService()
    monkeypatch.setattr("dialogloom.cli._create_service", lambda config, provider: service)
    return service


def invoke(project: Path, *args: str) -> Any:
    return runner.invoke(app, ["--config", str(project), *args])


def saved_nodes(path: Path) -> dict[str, dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    return {n["id"]: n for n in data["nodes"]}


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert f"v{__version__}" in result.stdout


# --- Init Command Tests ---


def test_init_writes_config(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", str(tmp_path), "--name", "tavern"])

    assert result.exit_code == 0
    assert "Created" in result.stdout
    assert "name: tavern" in (tmp_path / CONFIG_FILENAME).read_text(encoding="utf-8")


def test_init_refuses_existing(project: Path) -> None:
    result = runner.invoke(app, ["init", str(project)])

    assert result.exit_code == 1
    assert "already exists" in result.stdout


# --- Inspection Command Tests ---


def test_context_table(project: Path) -> None:
    result = invoke(project, "context", str(project / "graph.json"), "B")

    assert result.exit_code == 0
    assert "previous" in result.stdout
    assert "Hello, stranger." in result.stdout
    assert "next" in result.stdout


def test_context_serialized(project: Path) -> None:
    result = invoke(project, "context", str(project / "graph.json"), "B", "--serialized")

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["current"]["id"] == "B"
    assert [e["id"] for e in data["previous"]] == ["A"]


def test_context_isolated(project: Path) -> None:
    result = invoke(
        project, "context", str(project / "graph.json"), "B", "--serialized", "--isolate"
    )

    data = json.loads(result.stdout)
    assert data["previous"] == []
    assert data["next"] == []


def test_context_unknown_node(project: Path) -> None:
    result = invoke(project, "context", str(project / "graph.json"), "Z")

    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_plan(project: Path) -> None:
    result = invoke(project, "plan", str(project / "graph.json"), "B")

    assert result.exit_code == 0
    assert "B" in result.stdout
    assert "C" in result.stdout
    assert "idle" in result.stdout


def test_plan_without_node_lists_start_nodes(project: Path) -> None:
    result = invoke(project, "plan", str(project / "graph.json"))

    assert result.exit_code == 0
    assert "Start nodes" in result.stdout
    assert "Hello, stranger." in result.stdout
    assert "Who are you?" not in result.stdout


def test_plan_without_start_nodes(tmp_path: Path) -> None:
    graph = tmp_path / "loop.json"
    graph.write_text(
        json.dumps(
            {
                "nodes": [{"id": "A", "type": "npcDialog"}, {"id": "B", "type": "npcDialog"}],
                "edges": [{"source": "A", "target": "B"}, {"source": "B", "target": "A"}],
            }
        ),
        encoding="utf-8",
    )

    result = invoke(tmp_path, "plan", str(graph))

    assert result.exit_code == 0
    assert "No start nodes" in result.stdout


def test_invalid_graph_file(project: Path) -> None:
    (project / "broken.json").write_text("{nope", encoding="utf-8")

    result = invoke(project, "plan", str(project / "broken.json"), "A")

    assert result.exit_code == 1
    assert "Invalid JSON" in result.stdout


def test_invalid_config(project: Path) -> None:
    (project / CONFIG_FILENAME).write_text("generation:\n  flush_interval: 0\n", encoding="utf-8")

    result = invoke(project, "context", str(project / "graph.json"), "A")

    assert result.exit_code == 1
    assert "flush_interval" in result.stdout


# --- Generation Command Tests ---


def test_regenerate_in_place(project: Path, fake_service: FakeGenerationService) -> None:
    graph = project / "graph.json"

    result = invoke(project, "regenerate", str(graph), "A")

    assert result.exit_code == 0
    assert fake_service.node_ids == ["A", "B", "C"]
    assert "Regenerated: 3" in result.stdout
    nodes = saved_nodes(graph)
    assert [nodes[i]["text"] for i in "ABC"] == ["new A", "new B", "new C"]
    assert {n["status"] for n in nodes.values()} == {"idle"}


def test_regenerate_to_output(project: Path, fake_service: FakeGenerationService) -> None:
    graph = project / "graph.json"
    output = project / "out.json"

    result = invoke(project, "regenerate", str(graph), "B", "-o", str(output))

    assert result.exit_code == 0
    assert saved_nodes(graph)["B"]["text"] == "Who are you?"
    assert saved_nodes(output)["B"]["text"] == "new B"
    assert saved_nodes(output)["A"]["text"] == "Hello, stranger."


def test_regenerate_with_failure(project: Path, fake_service: FakeGenerationService) -> None:
    fake_service.responses["B"] = RuntimeError("request timed out")
    graph = project / "graph.json"

    result = invoke(project, "regenerate", str(graph), "A")

    assert result.exit_code == 1
    assert "Failed: 1" in result.stdout
    nodes = saved_nodes(graph)
    assert nodes["B"]["status"] == "timeout"
    assert nodes["C"]["text"] == "new C"


def test_regenerate_unknown_node(project: Path, fake_service: FakeGenerationService) -> None:
    result = invoke(project, "regenerate", str(project / "graph.json"), "Z")

    assert result.exit_code == 1
    assert fake_service.calls == []


def test_regenerate_inside_subgraph(tmp_path: Path, fake_service: FakeGenerationService) -> None:
    graph = tmp_path / "graph.json"
    graph.write_text(
        json.dumps(
            {
                "nodes": [
                    {
                        "id": "S",
                        "type": "subgraphNode",
                        "subgraph": {
                            "name": "Tavern",
                            "nodes": [
                                {"id": "in1", "type": "npcDialog", "text": "a"},
                                {"id": "in2", "type": "npcDialog", "text": "b"},
                            ],
                            "edges": [{"source": "in1", "target": "in2"}],
                        },
                    }
                ],
                "edges": [],
            }
        ),
        encoding="utf-8",
    )

    result = invoke(tmp_path, "regenerate", str(graph), "in1", "--subgraph", "S")

    assert result.exit_code == 0
    inner = saved_nodes(graph)["S"]["subgraph"]["nodes"]
    assert [n["text"] for n in inner] == ["new in1", "new in2"]


def test_generate_single_node(project: Path, fake_service: FakeGenerationService) -> None:
    graph = project / "graph.json"

    result = invoke(project, "generate", str(graph), "B")

    assert result.exit_code == 0
    assert "new B" in result.stdout
    nodes = saved_nodes(graph)
    assert nodes["B"]["text"] == "new B"
    assert nodes["C"]["text"] == ""


def test_generate_improve(project: Path, fake_service: FakeGenerationService) -> None:
    result = invoke(project, "generate", str(project / "graph.json"), "B", "--mode", "improve")

    assert result.exit_code == 0
    assert fake_service.calls[0].method == "improve"
    assert fake_service.calls[0].kwargs["current_text"] == "Who are you?"


def test_generate_custom_requires_prompt(
    project: Path, fake_service: FakeGenerationService
) -> None:
    result = invoke(project, "generate", str(project / "graph.json"), "B", "-m", "custom")

    assert result.exit_code == 1
    assert "--prompt is required" in result.stdout
    assert fake_service.calls == []


def test_generate_custom(project: Path, fake_service: FakeGenerationService) -> None:
    result = invoke(
        project,
        "generate",
        str(project / "graph.json"),
        "B",
        "-m",
        "custom",
        "--prompt",
        "Sound suspicious",
        "--isolate",
    )

    assert result.exit_code == 0
    call = fake_service.calls[0]
    assert call.kwargs["user_prompt"] == "Sound suspicious"
    assert call.context.isolated


def test_generate_failure_exit_code(project: Path, fake_service: FakeGenerationService) -> None:
    fake_service.responses["A"] = RuntimeError("model exploded")
    graph = project / "graph.json"

    result = invoke(project, "generate", str(graph), "A")

    assert result.exit_code == 1
    assert saved_nodes(graph)["A"]["status"] == "error"
    assert saved_nodes(graph)["A"]["error"] == "model exploded"


def test_fill_empty(project: Path, fake_service: FakeGenerationService) -> None:
    graph = project / "graph.json"

    result = invoke(project, "fill-empty", str(graph))

    assert result.exit_code == 0
    assert fake_service.node_ids == ["C"]
    assert saved_nodes(graph)["C"]["text"] == "new C"
    assert saved_nodes(graph)["A"]["text"] == "Hello, stranger."


# --- Models Command Tests ---


def test_models_lists_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "dialogloom.providers.list_ollama_models",
        AsyncMock(return_value=["qwen3:8b", "llama3:8b"]),
    )

    result = runner.invoke(app, ["models", "--host", "http://gpu-box:11434"])

    assert result.exit_code == 0
    assert "qwen3:8b" in result.stdout
    assert "llama3:8b" in result.stdout


def test_models_unreachable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "dialogloom.providers.list_ollama_models",
        AsyncMock(side_effect=ProviderConnectionError("ollama", "Cannot list models")),
    )

    result = runner.invoke(app, ["models"])

    assert result.exit_code == 1
    assert "Cannot list models" in result.stdout
