"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

import dialogloom.observability.logging as log_module
from dialogloom.observability import (
    close_file_logging,
    configure_logging,
    generate_run_id,
    get_logger,
    get_logs_dir,
    run_context,
)

if TYPE_CHECKING:
    from pathlib import Path


def _read_entries(tmp_path: Path) -> list[dict]:
    log_file = tmp_path / "logs" / "debug.jsonl"
    return [json.loads(line) for line in log_file.read_text().splitlines() if line]


def test_configure_logging_default_level() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)

    assert logging.getLogger().level == logging.WARNING


@pytest.mark.parametrize("verbosity", [1, 2])
def test_configure_logging_verbose_levels(verbosity: int) -> None:
    """Root level is DEBUG once verbose; the console handler does the filtering."""
    configure_logging(verbosity=verbosity)

    assert logging.getLogger().level == logging.DEBUG


def test_get_logger_auto_configures() -> None:
    log_module._configured = False

    logger = get_logger("test")

    assert log_module._configured is True
    assert hasattr(logger, "info")


def test_configure_logging_suppresses_dependency_loggers() -> None:
    configure_logging(verbosity=2)

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("langchain_core").level == logging.WARNING


def test_file_logging_requires_project_path() -> None:
    with pytest.raises(ValueError, match="project_path is required"):
        configure_logging(verbosity=0, log_to_file=True, project_path=None)


def test_file_logging_directory(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)

    assert get_logs_dir() == tmp_path / "logs"
    assert (tmp_path / "logs").exists()

    close_file_logging()
    assert log_module._file_handler is None


def test_no_logs_directory_without_flag(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_to_file=False, project_path=tmp_path)

    assert not (tmp_path / "logs").exists()


def test_reconfiguration_closes_previous_handler(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)
    first_handler = log_module._file_handler

    configure_logging(verbosity=0, log_to_file=True, project_path=tmp_path)

    assert first_handler is not None
    assert first_handler.stream is None or first_handler.stream.closed
    assert log_module._file_handler is not None
    close_file_logging()


def test_jsonl_entries_carry_event_fields(tmp_path: Path) -> None:
    configure_logging(verbosity=2, log_to_file=True, project_path=tmp_path)

    get_logger("test.jsonl").info("node_generated", node_id="A", chars=42)
    close_file_logging()

    entry = next(e for e in _read_entries(tmp_path) if e["message"] == "node_generated")
    assert entry["node_id"] == "A"
    assert entry["chars"] == 42
    assert entry["level"] == "INFO"
    assert entry["logger"] == "test.jsonl"


def test_run_context_binds_run_id(tmp_path: Path) -> None:
    """Events inside a run carry its id; events after it do not."""
    configure_logging(verbosity=2, log_to_file=True, project_path=tmp_path)
    logger = get_logger("test.run_context")

    with run_context("run123", start="A") as run_id:
        logger.info("inside_run")
    logger.info("after_run")
    close_file_logging()

    entries = {e["message"]: e for e in _read_entries(tmp_path)}
    assert run_id == "run123"
    assert entries["inside_run"]["run_id"] == "run123"
    assert entries["inside_run"]["start"] == "A"
    assert "run_id" not in entries["after_run"]


def test_generate_run_id() -> None:
    first = generate_run_id()

    assert len(first) == 12
    assert first != generate_run_id()
