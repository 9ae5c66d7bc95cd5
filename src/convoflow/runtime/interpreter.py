"""Minimal in-memory flow interpreter.

Walks a ``FlowGraph`` for any number of sessions, one ``SessionState`` each.
Vertices that need user input (menus, conditions, messages awaiting a reply)
park the session; everything else auto-advances along its default edge.
Whenever a vertex has no eligible edge the continuation policy decides what
happens next, and delayed transitions are armed on a
``DelayedTransitionScheduler`` so that new input can cancel them.

Only conversational kinds are executed here. Side-effecting kinds (webhook,
email, database, ...) are passed through to their default edge.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from convoflow.models.flow import (
    LAST_MESSAGE_VARIABLE,
    ConditionPayload,
    EndPayload,
    MenuPayload,
    MessagePayload,
    StartPayload,
    TicketPayload,
    TransferPayload,
)
from convoflow.observability.logging import get_logger
from convoflow.runtime.conditions import first_matching_rule, match_option
from convoflow.runtime.continuation import ContinuationPolicy
from convoflow.runtime.scheduler import DelayedTransitionScheduler

if TYPE_CHECKING:
    from convoflow.graph.graph import FlowGraph
    from convoflow.models.continuation import ContinuationConfig
    from convoflow.models.flow import Vertex
    from convoflow.runtime.continuation import Transition

log = get_logger(__name__)

# Upper bound on vertices entered for one input; stops unguarded auto-advance loops.
MAX_AUTO_STEPS = 50

DEFAULT_TERMINAL_MESSAGES: dict[str, str] = {
    "transfer": "Please hold on, transferring you to an agent.",
    "ticket": "Ticket created! We will get back to you soon.",
    "end": "Conversation finished.",
}


class FlowExecutionError(Exception):
    """Raised when a session cannot be started or continued."""


@dataclass
class Reply:
    """One outbound message produced by the interpreter."""

    session_id: str
    vertex_id: str
    text: str
    options: list[str] = field(default_factory=list)


@dataclass
class SessionState:
    """Per-conversation interpreter state.

    Attributes:
        session_id: Conversation identifier.
        current_vertex_id: Vertex the session is parked on, if any.
        variables: Session-scoped values (user name, answers, ...).
        awaiting_input: Whether the next input is handled at the current vertex.
        finished: Whether the conversation has ended or stalled.
        history: Vertex ids entered, in order.
    """

    session_id: str
    current_vertex_id: str | None = None
    variables: dict[str, Any] = field(default_factory=dict)
    awaiting_input: bool = False
    finished: bool = False
    history: list[str] = field(default_factory=list)


ReplySender = Callable[[str, list[Reply]], Awaitable[None] | None]


class FlowInterpreter:
    """Execute a flow graph for many sessions.

    Args:
        graph: Flow to execute.
        config: Continuation config persisted with the flow.
        scheduler: Scheduler for delayed transitions (one is created if None).
        sender: Called with replies produced outside a request, i.e. when a
            delayed transition fires.
    """

    def __init__(
        self,
        graph: FlowGraph,
        config: ContinuationConfig | None = None,
        scheduler: DelayedTransitionScheduler | None = None,
        sender: ReplySender | None = None,
    ) -> None:
        self._graph = graph
        self._policy = ContinuationPolicy(graph, config)
        self._scheduler = scheduler or DelayedTransitionScheduler()
        self._sender = sender
        self._sessions: dict[str, SessionState] = {}

    @property
    def scheduler(self) -> DelayedTransitionScheduler:
        return self._scheduler

    @property
    def policy(self) -> ContinuationPolicy:
        return self._policy

    def session(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def start(self, session_id: str, variables: dict[str, Any] | None = None) -> list[Reply]:
        """Start (or restart) a conversation at the start vertex.

        Raises:
            FlowExecutionError: If the flow does not have exactly one start vertex.
        """
        starts = self._graph.start_vertices()
        if len(starts) != 1:
            raise FlowExecutionError(
                f"Cannot start session {session_id}: flow has {len(starts)} start vertices"
            )
        self._scheduler.cancel(session_id)
        state = SessionState(session_id=session_id, variables=dict(variables or {}))
        self._sessions[session_id] = state
        log.debug("session_started", session_id=session_id)

        replies: list[Reply] = []
        self._run(state, starts[0].id, replies)
        return replies

    async def handle_input(self, session_id: str, text: str) -> list[Reply]:
        """Handle one user message.

        A delayed transition pending for the session is cancelled first, so
        the delay behaves as a debounce.

        Raises:
            FlowExecutionError: If the session was never started.
        """
        state = self._sessions.get(session_id)
        if state is None:
            raise FlowExecutionError(f"Unknown session: {session_id}")

        if self._scheduler.cancel(session_id):
            log.debug("delayed_transition_superseded_by_input", session_id=session_id)

        if state.finished or not state.awaiting_input or state.current_vertex_id is None:
            log.debug("input_ignored", session_id=session_id, finished=state.finished)
            return []

        state.variables[LAST_MESSAGE_VARIABLE] = text
        vertex = self._graph.get_vertex(state.current_vertex_id)
        if vertex is None:
            log.error("session_vertex_missing", session_id=session_id, vertex_id=state.current_vertex_id)
            state.finished = True
            return []

        state.awaiting_input = False
        replies: list[Reply] = []
        next_id = self._route_input(state, vertex, text, replies)
        if next_id is not None:
            self._run(state, next_id, replies)
        return replies

    async def apply_transition(self, session_id: str, transition: Transition) -> list[Reply]:
        """Apply a continuation transition to a session and run from its target."""
        state = self._sessions.get(session_id)
        if state is None:
            raise FlowExecutionError(f"Unknown session: {session_id}")
        self._scheduler.cancel(session_id)
        replies: list[Reply] = []
        next_id = self._apply(state, transition, replies)
        if next_id is not None:
            self._run(state, next_id, replies)
        return replies

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _run(self, state: SessionState, vertex_id: str, replies: list[Reply]) -> None:
        """Enter *vertex_id* and keep auto-advancing until the session parks."""
        current: str | None = vertex_id
        steps = 0
        while current is not None:
            steps += 1
            if steps > MAX_AUTO_STEPS:
                log.warning("auto_step_limit_reached", session_id=state.session_id, vertex_id=current)
                state.finished = True
                return
            vertex = self._graph.get_vertex(current)
            if vertex is None:
                log.error("vertex_missing", session_id=state.session_id, vertex_id=current)
                state.finished = True
                return
            state.current_vertex_id = vertex.id
            state.history.append(vertex.id)
            current = self._execute(state, vertex, replies)

    def _execute(self, state: SessionState, vertex: Vertex, replies: list[Reply]) -> str | None:
        """Run one vertex. Returns the next vertex to enter, or None to park."""
        payload = vertex.payload
        say = self._say(state, vertex, replies)

        if isinstance(payload, StartPayload):
            say(payload.message)
            return self._follow(state, vertex, None, replies)

        if isinstance(payload, MessagePayload):
            say(payload.text)
            edge = self._graph.eligible_edge(vertex.id)
            if edge is None:
                return self._continue(state, vertex, None, replies)
            if payload.await_input:
                state.awaiting_input = True
                return None
            return edge.target_vertex_id

        if isinstance(payload, MenuPayload):
            say(payload.text, options=[self._option_line(o.key, o.text) for o in payload.options])
            state.awaiting_input = True
            return None

        if isinstance(payload, ConditionPayload):
            say(payload.text)
            state.awaiting_input = True
            return None

        if isinstance(payload, TransferPayload | TicketPayload | EndPayload):
            say(payload.message or DEFAULT_TERMINAL_MESSAGES[vertex.kind])
            self._finish(state)
            return None

        log.info("vertex_passed_through", session_id=state.session_id, vertex_id=vertex.id, kind=vertex.kind)
        return self._follow(state, vertex, None, replies)

    def _route_input(
        self, state: SessionState, vertex: Vertex, text: str, replies: list[Reply]
    ) -> str | None:
        """Pick the next vertex for input received while parked on *vertex*."""
        payload = vertex.payload
        matched: str | None = None
        if isinstance(payload, MenuPayload):
            option = match_option(payload.options, text)
            if option is not None:
                matched = option.id
                state.variables[f"{vertex.id}.choice"] = option.value or option.key
            elif not payload.allow_free_text:
                log.debug("menu_option_unmatched", session_id=state.session_id, vertex_id=vertex.id)
        elif isinstance(payload, ConditionPayload):
            rule = first_matching_rule(payload.rules, text, state.variables)
            if rule is not None:
                matched = rule.id
        log.debug(
            "input_routed",
            session_id=state.session_id,
            vertex_id=vertex.id,
            matched_guard_id=matched,
        )
        return self._follow(state, vertex, matched, replies)

    def _follow(
        self, state: SessionState, vertex: Vertex, matched_guard_id: str | None, replies: list[Reply]
    ) -> str | None:
        edge = self._graph.eligible_edge(vertex.id, matched_guard_id)
        if edge is not None:
            return edge.target_vertex_id
        return self._continue(state, vertex, matched_guard_id, replies)

    def _continue(
        self, state: SessionState, vertex: Vertex, matched_guard_id: str | None, replies: list[Reply]
    ) -> str | None:
        transition = self._policy.resolve(vertex, matched_guard_id)
        return self._apply(state, transition, replies)

    def _apply(self, state: SessionState, transition: Transition, replies: list[Reply]) -> str | None:
        """Apply *transition*; return the vertex to enter now, if any."""
        log.debug(
            "transition_applied",
            session_id=state.session_id,
            strategy=transition.strategy,
            target=transition.target_vertex_id,
            delayed=transition.is_delayed,
        )
        if transition.halted:
            self._finish(state)
            return None

        if transition.is_delayed:
            state.awaiting_input = True
            self._scheduler.schedule(state.session_id, transition, self._on_delayed_transition)
            return None

        if transition.message:
            replies.append(Reply(state.session_id, transition.vertex_id, transition.message))
        if transition.reset_session:
            state.variables.clear()
        state.awaiting_input = False
        return transition.target_vertex_id

    async def _on_delayed_transition(self, session_id: str, transition: Transition) -> None:
        state = self._sessions.get(session_id)
        if state is None or state.finished:
            return
        # Input handled after the timer fired but before this ran supersedes it.
        if (
            state.current_vertex_id != transition.vertex_id
            or not state.awaiting_input
            or self._scheduler.pending(session_id) is not None
        ):
            log.debug(
                "delayed_transition_stale", session_id=session_id, vertex_id=transition.vertex_id
            )
            return
        replies: list[Reply] = []
        if transition.message:
            replies.append(Reply(session_id, transition.vertex_id, transition.message))
        state.awaiting_input = False
        self._run(state, transition.target_vertex_id or "", replies)
        await self._send(session_id, replies)

    async def _send(self, session_id: str, replies: list[Reply]) -> None:
        if self._sender is None or not replies:
            return
        result = self._sender(session_id, replies)
        if inspect.isawaitable(result):
            await result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _finish(self, state: SessionState) -> None:
        state.finished = True
        state.awaiting_input = False
        self._scheduler.cancel(state.session_id)
        log.debug("session_finished", session_id=state.session_id, vertex_id=state.current_vertex_id)

    @staticmethod
    def _say(
        state: SessionState, vertex: Vertex, replies: list[Reply]
    ) -> Callable[..., None]:
        def say(text: str, options: list[str] | None = None) -> None:
            if text.strip() or options:
                replies.append(Reply(state.session_id, vertex.id, text, options or []))

        return say

    @staticmethod
    def _option_line(key: str, text: str) -> str:
        if key and text:
            return f"{key} - {text}"
        return key or text
