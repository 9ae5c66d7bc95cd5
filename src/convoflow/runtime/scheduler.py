"""Cancellable delayed transitions, one timer per session.

``delay_menu`` transitions are a debounce, not a commitment: new input from
the user before the timer fires must cancel it. Each session owns at most one
timer handle. Re-arming cancels and replaces the previous handle instead of
stacking a second one, so two schedules in a row yield exactly one fire.

All methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from convoflow.observability.logging import get_logger

if TYPE_CHECKING:
    from convoflow.runtime.continuation import Transition

log = get_logger(__name__)

TransitionCallback = Callable[[str, "Transition"], Awaitable[None] | None]


@dataclass
class _PendingTransition:
    transition: Transition
    handle: asyncio.TimerHandle


class DelayedTransitionScheduler:
    """Arms, replaces and cancels per-session delayed transitions.

    Args:
        loop: Event loop to schedule on. Defaults to the running loop at the
            time of the first ``schedule`` call.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._pending: dict[str, _PendingTransition] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(
        self,
        session_id: str,
        transition: Transition,
        callback: TransitionCallback,
        delay: float | None = None,
    ) -> None:
        """Arm a timer that calls ``callback(session_id, transition)``.

        Any timer already armed for the session is cancelled first.

        Args:
            session_id: Conversation the timer belongs to.
            transition: The delayed transition to apply when the timer fires.
            callback: Plain function or coroutine function.
            delay: Seconds to wait; defaults to ``transition.delay_seconds``.
        """
        seconds = transition.delay_seconds if delay is None else delay
        replaced = self._pending.pop(session_id, None)
        if replaced is not None:
            replaced.handle.cancel()
            log.debug("delayed_transition_replaced", session_id=session_id)

        handle = self._get_loop().call_later(
            seconds, self._fire, session_id, transition, callback
        )
        self._pending[session_id] = _PendingTransition(transition=transition, handle=handle)
        log.debug(
            "delayed_transition_armed",
            session_id=session_id,
            target=transition.target_vertex_id,
            delay=seconds,
        )

    def cancel(self, session_id: str) -> bool:
        """Cancel the session's pending timer.

        Returns:
            True if a timer was cancelled; False if none was pending (already
            fired, already cancelled, or never armed).
        """
        pending = self._pending.pop(session_id, None)
        if pending is None:
            return False
        pending.handle.cancel()
        log.debug("delayed_transition_cancelled", session_id=session_id)
        return True

    def cancel_all(self) -> int:
        """Cancel every pending timer and return how many were cancelled."""
        count = 0
        for session_id in list(self._pending):
            if self.cancel(session_id):
                count += 1
        return count

    def pending(self, session_id: str) -> Transition | None:
        """The transition armed for *session_id*, if any."""
        entry = self._pending.get(session_id)
        return entry.transition if entry is not None else None

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._pending

    async def drain(self) -> None:
        """Wait for callbacks already started by fired timers to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self, session_id: str, transition: Transition, callback: TransitionCallback) -> None:
        pending = self._pending.get(session_id)
        if pending is None or pending.transition is not transition:
            return
        del self._pending[session_id]
        log.debug("delayed_transition_fired", session_id=session_id)

        result = callback(session_id, transition)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result, loop=self._get_loop())
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                "delayed_transition_callback_failed",
                error=str(exc),
                exc_info=exc,
            )
