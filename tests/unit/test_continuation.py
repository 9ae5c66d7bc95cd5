"""Tests for the continuation policy decision table."""

from __future__ import annotations

import pytest

from convoflow.graph.graph import FlowGraph
from convoflow.models.continuation import DEFAULT_MESSAGES, ContinuationConfig
from convoflow.runtime.continuation import ContinuationPolicy, Transition, resolve
from tests.fixtures.flow_fixtures import vertex


class TestDecisionTable:
    """One test per strategy."""

    def test_manual_finish_halts_silently(self, support_graph: FlowGraph) -> None:
        """manual_finish never transitions and emits nothing."""
        transition = resolve(support_graph, ContinuationConfig(), "msg-sales")

        assert transition.strategy == "manual_finish"
        assert transition.halted
        assert transition.message == ""
        assert transition.fallback_reason is None

    def test_default_config_is_manual_finish(self, support_graph: FlowGraph) -> None:
        """No config at all behaves as manual_finish."""
        assert resolve(support_graph, None, "msg-sales").halted

    def test_auto_menu_goes_to_main_menu(self, support_graph: FlowGraph) -> None:
        """auto_menu targets the main menu immediately with the default prompt."""
        transition = resolve(support_graph, ContinuationConfig(type="auto_menu"), "msg-sales")

        assert transition.target_vertex_id == "menu-main"
        assert transition.message == DEFAULT_MESSAGES["auto_menu"]
        assert not transition.is_delayed
        assert not transition.reset_session

    def test_delay_menu_defaults_to_five_seconds(self, support_graph: FlowGraph) -> None:
        """delay_menu waits delay_seconds (default 5) before returning to the menu."""
        transition = resolve(support_graph, ContinuationConfig(type="delay_menu"), "msg-sales")

        assert transition.target_vertex_id == "menu-main"
        assert transition.delay_seconds == 5.0
        assert transition.is_delayed
        assert transition.message == "Please wait a moment..."

    def test_delay_menu_custom_delay_and_message(self, support_graph: FlowGraph) -> None:
        """Configured delay and message win over the defaults."""
        config = ContinuationConfig(type="delay_menu", delay_seconds=2.5, message="Back soon")
        transition = resolve(support_graph, config, "msg-sales")

        assert transition.delay_seconds == 2.5
        assert transition.message == "Back soon"

    def test_auto_start_resets_session(self, support_graph: FlowGraph) -> None:
        """auto_start returns to the start vertex and discards session state."""
        transition = resolve(support_graph, ContinuationConfig(type="auto_start"), "msg-sales")

        assert transition.target_vertex_id == "start"
        assert transition.reset_session
        assert transition.message == "Let's start over!"

    @pytest.mark.parametrize("strategy", ["auto_menu", "delay_menu", "auto_start"])
    def test_disabled_overrides_type(self, support_graph: FlowGraph, strategy: str) -> None:
        """enabled=False behaves as manual_finish but keeps the configured type."""
        config = ContinuationConfig(enabled=False, type=strategy)  # type: ignore[arg-type]
        transition = resolve(support_graph, config, "msg-sales")

        assert transition.strategy == "manual_finish"
        assert transition.requested == strategy
        assert transition.halted
        assert config.type == strategy


class TestFallbacks:
    """Strategies whose target is missing degrade to manual_finish."""

    @pytest.mark.parametrize("strategy", ["auto_menu", "delay_menu"])
    def test_no_main_menu(self, support_graph: FlowGraph, strategy: str) -> None:
        """Without a main menu the menu strategies halt and say why."""
        support_graph.update_vertex("menu-main", is_main_menu=False)
        transition = resolve(support_graph, ContinuationConfig(type=strategy), "msg-sales")  # type: ignore[arg-type]

        assert transition.strategy == "manual_finish"
        assert transition.requested == strategy
        assert transition.halted
        assert transition.degraded
        assert transition.fallback_reason == "no main menu vertex"

    def test_ambiguous_main_menu(self, support_graph: FlowGraph) -> None:
        """Two main menus are ambiguous; the policy refuses to guess."""
        support_graph.add_vertex(vertex("menu-2", "menu", text="Other", is_main_menu=True))
        transition = resolve(support_graph, ContinuationConfig(type="auto_menu"), "msg-sales")

        assert transition.halted
        assert transition.fallback_reason == "2 main menu vertices"

    def test_auto_start_without_start(self) -> None:
        """auto_start without a unique start halts."""
        graph = FlowGraph()
        graph.add_vertex(vertex("msg", "message", text="hi"))
        transition = resolve(graph, ContinuationConfig(type="auto_start"), "msg")

        assert transition.halted
        assert transition.fallback_reason == "no start vertex"


class TestDeterminism:
    """Same config and vertex always give the same transition."""

    @pytest.mark.parametrize("strategy", ["manual_finish", "auto_menu", "delay_menu", "auto_start"])
    def test_resolve_is_deterministic(self, support_graph: FlowGraph, strategy: str) -> None:
        """Repeated resolution yields equal transitions."""
        policy = ContinuationPolicy(support_graph, ContinuationConfig(type=strategy))  # type: ignore[arg-type]
        vertex_obj = support_graph.get_vertex("msg-sales")
        assert vertex_obj is not None

        results = {policy.resolve(vertex_obj, "opt-x") for _ in range(5)}

        assert len(results) == 1

    def test_transition_carries_context(self, support_graph: FlowGraph) -> None:
        """The transition records the vertex and matched guard."""
        transition = resolve(support_graph, ContinuationConfig(type="auto_menu"), "cond-age", "rule-x")
        assert transition == Transition(
            strategy="auto_menu",
            requested="auto_menu",
            vertex_id="cond-age",
            matched_guard_id="rule-x",
            target_vertex_id="menu-main",
            message="How else can I help you?",
        )


class TestContinuationConfig:
    """Wire format of the continuation config."""

    def test_camel_case_wire_names(self) -> None:
        """delaySeconds is accepted and emitted on the wire."""
        config = ContinuationConfig.model_validate(
            {"enabled": True, "type": "delay_menu", "delaySeconds": 3}
        )
        assert config.delay_seconds == 3
        assert config.model_dump(by_alias=True)["delaySeconds"] == 3

    def test_unknown_type_rejected(self) -> None:
        """The strategy type is a closed enumeration."""
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            ContinuationConfig.model_validate({"type": "teleport"})

    def test_effective_message_falls_back_to_default(self) -> None:
        """An empty message uses the strategy's default."""
        assert ContinuationConfig(type="auto_menu", message="").effective_message() == (
            "How else can I help you?"
        )
