"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from convoflow.graph.graph import FlowGraph
from tests.fixtures.flow_fixtures import make_start_only_graph, make_support_graph


@pytest.fixture(autouse=True)
def clear_preset_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's CONVOFLOW_PRESET from leaking into tests."""
    monkeypatch.delenv("CONVOFLOW_PRESET", raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def support_graph() -> FlowGraph:
    """A small valid flow with a main menu, a condition and terminals."""
    return make_support_graph()


@pytest.fixture
def start_only_graph() -> FlowGraph:
    return make_start_only_graph()
