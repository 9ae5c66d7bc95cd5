"""Tests for validation profile loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from convoflow.config import (
    PRESET_ENV_VAR,
    PRESETS,
    ValidationConfig,
    ValidationConfigError,
    get_preset,
    load_validation_config,
)

if TYPE_CHECKING:
    from pathlib import Path


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestValidationConfig:
    """Tests for the ValidationConfig dataclass."""

    def test_defaults(self) -> None:
        """Defaults match the default preset."""
        config = ValidationConfig()

        assert config.check_variable_usage is True
        assert config.require_end_vertex is False
        assert config.max_flow_length == 15
        assert config.max_menu_options == 9
        assert config.block_save_on_errors is True
        assert PRESETS["default"] == config

    def test_from_dict_layers_over_base(self) -> None:
        """Overrides replace only the named fields."""
        base = get_preset("customer_service")
        config = ValidationConfig.from_dict({"max_menu_options": 6}, base=base)

        assert config.max_menu_options == 6
        assert config.max_message_length == 500

    def test_from_dict_rejects_unknown_keys(self) -> None:
        with pytest.raises(ValueError, match="max_vibes"):
            ValidationConfig.from_dict({"max_vibes": 3})

    def test_to_dict_round_trip(self) -> None:
        config = get_preset("sales_marketing")
        assert ValidationConfig.from_dict(config.to_dict()) == config


class TestPresets:
    """Tests for the built-in presets."""

    def test_known_presets(self) -> None:
        assert set(PRESETS) == {
            "default",
            "customer_service",
            "survey_form",
            "sales_marketing",
            "development",
        }

    def test_survey_requires_end(self) -> None:
        assert get_preset("survey_form").require_end_vertex is True

    def test_development_is_lenient(self) -> None:
        preset = get_preset("development")
        assert preset.check_variable_usage is False
        assert preset.block_save_on_errors is False

    def test_unknown_preset(self) -> None:
        with pytest.raises(ValidationConfigError, match="Unknown preset 'nope'"):
            get_preset("nope")


class TestLoadValidationConfig:
    """Tests for load_validation_config."""

    def test_no_file_no_preset(self) -> None:
        """Without any input the default preset is returned."""
        assert load_validation_config() == PRESETS["default"]

    def test_preset_and_overrides_from_file(self, tmp_path: Path) -> None:
        """The file picks a preset and overrides individual settings."""
        path = _write(
            tmp_path / "convoflow.yaml",
            "preset: customer_service\nvalidation:\n  max_menu_options: 5\n  require_end_vertex: true\n",
        )

        config = load_validation_config(path)

        assert config.max_menu_options == 5
        assert config.require_end_vertex is True
        assert config.max_message_length == 500

    def test_argument_beats_env_and_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An explicit preset wins over the environment and the file."""
        path = _write(tmp_path / "convoflow.yaml", "preset: customer_service\n")
        monkeypatch.setenv(PRESET_ENV_VAR, "survey_form")

        config = load_validation_config(path, preset="sales_marketing")

        assert config == PRESETS["sales_marketing"]

    def test_env_beats_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """CONVOFLOW_PRESET wins over the file's preset key."""
        path = _write(tmp_path / "convoflow.yaml", "preset: customer_service\n")
        monkeypatch.setenv(PRESET_ENV_VAR, "survey_form")

        assert load_validation_config(path) == PRESETS["survey_form"]

    def test_empty_file(self, tmp_path: Path) -> None:
        """An empty file means the default preset."""
        path = _write(tmp_path / "convoflow.yaml", "")
        assert load_validation_config(path) == PRESETS["default"]

    def test_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "missing.yaml"
        with pytest.raises(ValidationConfigError, match="File not found") as exc_info:
            load_validation_config(path)
        assert exc_info.value.path == path

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "convoflow.yaml", "validation: [unclosed\n")
        with pytest.raises(ValidationConfigError):
            load_validation_config(path)

    def test_top_level_not_mapping(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "convoflow.yaml", "- a\n- b\n")
        with pytest.raises(ValidationConfigError, match="mapping"):
            load_validation_config(path)

    def test_unknown_setting(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "convoflow.yaml", "validation:\n  max_vibes: 3\n")
        with pytest.raises(ValidationConfigError, match="max_vibes"):
            load_validation_config(path)

    def test_unknown_preset_in_file(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "convoflow.yaml", "preset: nope\n")
        with pytest.raises(ValidationConfigError, match="Unknown preset"):
            load_validation_config(path)
