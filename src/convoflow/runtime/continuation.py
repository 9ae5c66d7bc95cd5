"""Continuation policy.

Decides what happens when a conversation reaches a vertex with no eligible
outgoing edge for the current input. The decision depends only on the
continuation config and on which start / main-menu vertices the graph holds,
so the same inputs always produce the same ``Transition``.

Decision table:

==============  =====================================  =======================
strategy        target                                 timing
==============  =====================================  =======================
manual_finish   none (conversation halts)              -
auto_menu       the main-menu vertex                   immediate
delay_menu      the main-menu vertex                   after ``delay_seconds``
auto_start      the start vertex, session reset        immediate
==============  =====================================  =======================

``enabled = False`` forces ``manual_finish``. A strategy whose target is
missing (or ambiguous) degrades to ``manual_finish`` and says why in
``fallback_reason``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from convoflow.models.continuation import MENU_STRATEGIES, ContinuationConfig
from convoflow.observability.logging import get_logger

if TYPE_CHECKING:
    from convoflow.graph.graph import FlowGraph
    from convoflow.models.continuation import ContinuationStrategy
    from convoflow.models.flow import Vertex

log = get_logger(__name__)


@dataclass(frozen=True)
class Transition:
    """Outcome of the continuation policy for one vertex.

    Attributes:
        strategy: Strategy actually applied (after overrides and fallbacks).
        requested: Strategy configured by the flow author.
        vertex_id: Vertex that had no eligible edge.
        matched_guard_id: Guard matched by the input, if any.
        target_vertex_id: Vertex to enter next; None when halting.
        message: Text to emit before transitioning; empty for none.
        delay_seconds: Wait before transitioning; 0 for immediate.
        reset_session: Whether session variables must be discarded.
        fallback_reason: Why the requested strategy was not applied, if so.
    """

    strategy: ContinuationStrategy
    requested: ContinuationStrategy
    vertex_id: str
    matched_guard_id: str | None = None
    target_vertex_id: str | None = None
    message: str = ""
    delay_seconds: float = 0.0
    reset_session: bool = False
    fallback_reason: str | None = None

    @property
    def halted(self) -> bool:
        """True when the conversation stalls pending manual wiring."""
        return self.target_vertex_id is None

    @property
    def is_delayed(self) -> bool:
        return not self.halted and self.delay_seconds > 0

    @property
    def degraded(self) -> bool:
        return self.fallback_reason is not None


class ContinuationPolicy:
    """Resolve transitions for one graph under one continuation config."""

    def __init__(self, graph: FlowGraph, config: ContinuationConfig | None = None) -> None:
        self._graph = graph
        self._config = config or ContinuationConfig()

    @property
    def config(self) -> ContinuationConfig:
        return self._config

    def resolve(self, vertex: Vertex | str, matched_guard_id: str | None = None) -> Transition:
        """Decide the transition out of *vertex* (a Vertex or its id).

        The vertex itself is not inspected beyond its id: callers consult the
        policy only after finding no eligible edge.
        """
        vertex_id = vertex if isinstance(vertex, str) else vertex.id
        config = self._config
        requested = config.type

        if not config.enabled:
            return self._halt(vertex_id, matched_guard_id, requested)

        if requested == "manual_finish":
            return self._halt(vertex_id, matched_guard_id, requested)

        if requested in MENU_STRATEGIES:
            main_menus = self._graph.main_menu_vertices()
            if len(main_menus) != 1:
                reason = (
                    "no main menu vertex"
                    if not main_menus
                    else f"{len(main_menus)} main menu vertices"
                )
                return self._degrade(vertex_id, matched_guard_id, requested, reason)
            delayed = requested == "delay_menu"
            return Transition(
                strategy=requested,
                requested=requested,
                vertex_id=vertex_id,
                matched_guard_id=matched_guard_id,
                target_vertex_id=main_menus[0].id,
                message=config.effective_message(),
                delay_seconds=config.effective_delay if delayed else 0.0,
            )

        # auto_start
        starts = self._graph.start_vertices()
        if len(starts) != 1:
            reason = "no start vertex" if not starts else f"{len(starts)} start vertices"
            return self._degrade(vertex_id, matched_guard_id, requested, reason)
        return Transition(
            strategy="auto_start",
            requested=requested,
            vertex_id=vertex_id,
            matched_guard_id=matched_guard_id,
            target_vertex_id=starts[0].id,
            message=config.effective_message(),
            reset_session=True,
        )

    def _halt(
        self,
        vertex_id: str,
        matched_guard_id: str | None,
        requested: ContinuationStrategy,
        fallback_reason: str | None = None,
    ) -> Transition:
        return Transition(
            strategy="manual_finish",
            requested=requested,
            vertex_id=vertex_id,
            matched_guard_id=matched_guard_id,
            fallback_reason=fallback_reason,
        )

    def _degrade(
        self,
        vertex_id: str,
        matched_guard_id: str | None,
        requested: ContinuationStrategy,
        reason: str,
    ) -> Transition:
        log.warning(
            "continuation_degraded",
            requested=requested,
            vertex_id=vertex_id,
            reason=reason,
        )
        return self._halt(vertex_id, matched_guard_id, requested, fallback_reason=reason)


def resolve(
    graph: FlowGraph,
    config: ContinuationConfig | None,
    vertex: Vertex | str,
    matched_guard_id: str | None = None,
) -> Transition:
    """Shorthand for ``ContinuationPolicy(graph, config).resolve(vertex, matched_guard_id)``."""
    return ContinuationPolicy(graph, config).resolve(vertex, matched_guard_id)
