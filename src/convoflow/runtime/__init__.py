"""Runtime: continuation policy, delayed transitions, rule evaluation, interpreter."""

from convoflow.runtime.conditions import evaluate_rule, first_matching_rule, match_option
from convoflow.runtime.continuation import ContinuationPolicy, Transition, resolve
from convoflow.runtime.interpreter import (
    FlowExecutionError,
    FlowInterpreter,
    Reply,
    SessionState,
)
from convoflow.runtime.scheduler import DelayedTransitionScheduler

__all__ = [
    "ContinuationPolicy",
    "DelayedTransitionScheduler",
    "FlowExecutionError",
    "FlowInterpreter",
    "Reply",
    "SessionState",
    "Transition",
    "evaluate_rule",
    "first_matching_rule",
    "match_option",
    "resolve",
]
