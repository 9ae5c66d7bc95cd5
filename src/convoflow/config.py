"""Validation profile loading.

A validation profile holds the thresholds used by the quality checks of the
flow validator (message length, menu size, flow length, ...). Profiles start
from a named preset and may override individual fields:

    # convoflow.yaml
    preset: customer_service
    validation:
      max_menu_options: 5
      require_end_vertex: true

Resolution order for the preset:
1. Explicit argument (e.g. the CLI ``--preset`` flag)
2. Environment variable ``CONVOFLOW_PRESET``
3. ``preset`` key of the YAML file
4. ``default``
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

DEFAULT_CONFIG_FILENAME = "convoflow.yaml"
PRESET_ENV_VAR = "CONVOFLOW_PRESET"


@dataclass(frozen=True)
class ValidationConfig:
    """Thresholds and switches for the validator's quality checks.

    Structural checks (start cardinality, reachability, dangling edges,
    guard/edge consistency, main-menu uniqueness) always run; this profile
    only tunes the supplementary checks and how the CLI treats errors.

    Attributes:
        require_end_vertex: Warn when the flow has no ``end`` vertex.
        check_variable_usage: Warn about session variables that are read
            but never written.
        allow_dead_ends: Skip the dead-end check.
        validate_urls: Check webhook URLs for an http(s) scheme and host.
        max_flow_length: Longest path from start before warning.
        max_vertices: Vertex count before warning.
        max_edges: Edge count before warning.
        max_message_length: Message text length before warning.
        max_menu_options: Options per menu before warning.
        block_save_on_errors: Whether the CLI fails on a report with errors.
    """

    require_end_vertex: bool = False
    check_variable_usage: bool = True
    allow_dead_ends: bool = False
    validate_urls: bool = True
    max_flow_length: int = 15
    max_vertices: int = 50
    max_edges: int = 100
    max_message_length: int = 1000
    max_menu_options: int = 9
    block_save_on_errors: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], base: ValidationConfig | None = None) -> ValidationConfig:
        """Create config from dictionary, layered over *base*.

        Args:
            data: Field overrides. Unknown keys are rejected.
            base: Starting point (defaults to the ``default`` preset).

        Returns:
            ValidationConfig instance.

        Raises:
            ValueError: If *data* contains a key that is not a config field.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown validation settings: {', '.join(unknown)}")
        return replace(base or cls(), **data)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_VALIDATION_CONFIG = ValidationConfig()

PRESETS: dict[str, ValidationConfig] = {
    "default": DEFAULT_VALIDATION_CONFIG,
    # Short, direct conversations.
    "customer_service": replace(
        DEFAULT_VALIDATION_CONFIG,
        max_message_length=500,
        max_menu_options=4,
        max_flow_length=10,
    ),
    # Surveys must have a defined end.
    "survey_form": replace(DEFAULT_VALIDATION_CONFIG, require_end_vertex=True),
    "sales_marketing": replace(
        DEFAULT_VALIDATION_CONFIG,
        max_message_length=600,
        max_menu_options=8,
        max_flow_length=20,
    ),
    # Lenient profile for flows under construction.
    "development": replace(
        DEFAULT_VALIDATION_CONFIG,
        check_variable_usage=False,
        block_save_on_errors=False,
    ),
}


class ValidationConfigError(Exception):
    """Raised when a validation profile cannot be loaded."""

    def __init__(self, path: Path | None, reason: str) -> None:
        self.path = path
        self.reason = reason
        where = f" at {path}" if path is not None else ""
        super().__init__(f"Failed to load validation config{where}: {reason}")


def get_preset(name: str) -> ValidationConfig:
    """Look up a preset by name.

    Raises:
        ValidationConfigError: If the preset is unknown.
    """
    try:
        return PRESETS[name]
    except KeyError:
        available = ", ".join(sorted(PRESETS))
        raise ValidationConfigError(None, f"Unknown preset '{name}' (available: {available})") from None


def load_validation_config(
    path: Path | None = None,
    preset: str | None = None,
) -> ValidationConfig:
    """Load a validation profile.

    Args:
        path: YAML file to read. None means preset-only.
        preset: Preset name overriding both the environment and the file.

    Returns:
        ValidationConfig instance.

    Raises:
        ValidationConfigError: If the file cannot be read or parsed, or names
            an unknown preset or setting.
    """
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ValidationConfigError(path, "File not found")
        yaml = YAML(typ="safe")
        try:
            with path.open("r", encoding="utf-8") as f:
                loaded = yaml.load(f)
        except Exception as e:
            raise ValidationConfigError(path, str(e)) from e
        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ValidationConfigError(path, "Top level must be a mapping")
            data = dict(loaded)

    preset_name = preset or os.getenv(PRESET_ENV_VAR) or data.get("preset") or "default"
    base = get_preset(str(preset_name))

    overrides = data.get("validation") or {}
    if not isinstance(overrides, dict):
        raise ValidationConfigError(path, "'validation' must be a mapping")
    try:
        return ValidationConfig.from_dict(dict(overrides), base=base)
    except (TypeError, ValueError) as e:
        raise ValidationConfigError(path, str(e)) from e
