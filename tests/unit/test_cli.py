"""Test CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
from typer.testing import CliRunner

from convoflow import __version__
from convoflow.cli import app
from tests.fixtures.flow_fixtures import support_flow_document

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every command from an empty directory so no stray convoflow.yaml is picked up."""
    monkeypatch.chdir(tmp_path)


def _write_flow(path: Path, document: dict[str, Any]) -> Path:
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.fixture
def support_flow(tmp_path: Path) -> Path:
    return _write_flow(tmp_path / "support.json", support_flow_document())


@pytest.fixture
def broken_flow(tmp_path: Path) -> Path:
    """Two starts and a dangling edge."""
    document = {
        "vertices": [
            {"id": "start", "kind": "start"},
            {"id": "start-2", "kind": "start"},
        ],
        "edges": [{"id": "e1", "sourceVertexId": "start", "targetVertexId": "ghost"}],
    }
    return _write_flow(tmp_path / "broken.json", document)


def test_version_command() -> None:
    """Test convoflow version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in result.stdout


def test_no_args_shows_help() -> None:
    """Test that no arguments shows help."""
    result = runner.invoke(app, [])
    assert result.exit_code == 2
    assert "convoflow" in result.stdout


# --- Validate Command Tests ---


def test_validate_valid_flow(support_flow: Path) -> None:
    """A clean flow exits 0 and says so."""
    result = runner.invoke(app, ["validate", str(support_flow)])

    assert result.exit_code == 0
    assert "Flow is valid" in result.stdout


def test_validate_invalid_flow_exits_1(broken_flow: Path) -> None:
    """A flow with errors exits 1."""
    result = runner.invoke(app, ["validate", str(broken_flow)])

    assert result.exit_code == 1
    assert "Flow is invalid" in result.stdout


def test_validate_json_output(broken_flow: Path) -> None:
    """--json prints the editor report shape."""
    result = runner.invoke(app, ["validate", str(broken_flow), "--json"])

    assert result.exit_code == 1
    report = json.loads(result.stdout)
    assert report["isValid"] is False
    ids = [f["id"] for f in report["errors"]]
    assert "multiple-starts" in ids
    assert "dangling-edge-e1" in ids
    assert report["summary"]["canSave"] is False
    assert report["summary"]["criticalIssues"] == len(report["errors"])


def test_validate_development_preset_does_not_fail(broken_flow: Path) -> None:
    """The development preset reports errors without failing the command."""
    result = runner.invoke(app, ["validate", str(broken_flow), "--preset", "development"])

    assert result.exit_code == 0
    assert "Flow is invalid" in result.stdout


def test_validate_uses_config_in_cwd(tmp_path: Path) -> None:
    """./convoflow.yaml is read when --config is not given."""
    document = support_flow_document()
    flow = _write_flow(tmp_path / "flow.json", document)
    (tmp_path / "convoflow.yaml").write_text(
        "validation:\n  max_menu_options: 1\n", encoding="utf-8"
    )

    result = runner.invoke(app, ["validate", str(flow), "--json"])

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert "too-many-options-menu-main" in [f["id"] for f in report["warnings"]]


def test_validate_bad_config_exits_2(support_flow: Path, tmp_path: Path) -> None:
    config = tmp_path / "bad.yaml"
    config.write_text("validation:\n  nope: 1\n", encoding="utf-8")

    result = runner.invoke(app, ["validate", str(support_flow), "--config", config.name])

    assert result.exit_code == 2
    assert "nope" in result.stdout


def test_validate_missing_file_exits_2() -> None:
    result = runner.invoke(app, ["validate", "missing.json"])

    assert result.exit_code == 2
    assert "not found" in result.stdout


def test_validate_not_json_exits_2(tmp_path: Path) -> None:
    path = tmp_path / "flow.json"
    path.write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, ["validate", "flow.json"])

    assert result.exit_code == 2
    assert "not valid JSON" in result.stdout


def test_validate_not_a_flow_exits_2(tmp_path: Path) -> None:
    """A document failing the wire schema reports the field location."""
    _write_flow(tmp_path / "flow.json", {"vertices": [{"kind": "start"}], "edges": []})

    result = runner.invoke(app, ["validate", "flow.json"])

    assert result.exit_code == 2
    assert "not a flow document" in result.stdout


# --- Resolve Command Tests ---


def test_resolve_shows_transition(support_flow: Path) -> None:
    """The stored auto_menu continuation targets the main menu."""
    result = runner.invoke(app, ["resolve", str(support_flow), "transfer-1"])

    assert result.exit_code == 0
    assert "auto_menu" in result.stdout
    assert "menu-main" in result.stdout


def test_resolve_notes_eligible_edge(support_flow: Path) -> None:
    """A vertex with a default edge gets a note that the policy is not consulted."""
    result = runner.invoke(app, ["resolve", str(support_flow), "msg-sales"])

    assert result.exit_code == 0
    assert "eligible edge" in result.stdout


def test_resolve_unknown_vertex_exits_2(support_flow: Path) -> None:
    result = runner.invoke(app, ["resolve", str(support_flow), "ghost"])

    assert result.exit_code == 2
    assert "not found" in result.stdout


# --- Presets Command Tests ---


def test_presets_lists_all() -> None:
    result = runner.invoke(app, ["presets"])

    assert result.exit_code == 0
    assert "customer_service" in result.stdout
    assert "max_menu_options=4" in result.stdout
