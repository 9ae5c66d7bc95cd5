"""Evaluate condition rules and menu options against user input."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from convoflow.observability.logging import get_logger

if TYPE_CHECKING:
    from convoflow.models.flow import Option, Rule

log = get_logger(__name__)

# Rule fields read from session variables under the same name.
_VARIABLE_FIELDS = frozenset({"user_name", "phone", "last_message_at", "conversation_count"})

_NUMERIC_OPERATORS = frozenset({"equals", "greater", "less"})


def _to_float(value: Any) -> float | None:
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def resolve_field(rule: Rule, message: str, variables: Mapping[str, Any]) -> str:
    """The text a rule compares against.

    ``message`` is the trimmed input; well-known fields come from session
    variables; ``custom`` reads ``variables[rule.custom_field]``. Any other
    field is looked up in variables and falls back to the input.
    """
    if rule.field == "message":
        return message.strip()
    if rule.field in _VARIABLE_FIELDS:
        value = variables.get(rule.field)
        return "" if value is None else str(value)
    if rule.field == "custom":
        value = variables.get(rule.custom_field or "")
        return "" if value is None else str(value)
    value = variables.get(rule.field)
    return str(value) if value not in (None, "") else message.strip()


def evaluate_rule(rule: Rule, message: str, variables: Mapping[str, Any] | None = None) -> bool:
    """Return True if *rule* matches.

    ``equals``, ``greater`` and ``less`` compare numerically when the rule
    value is a number; everything else compares case-insensitively as text.
    An invalid regex or an unknown operator never matches.
    """
    actual = resolve_field(rule, message, variables or {})
    expected = rule.value
    operator = rule.operator

    expected_number = _to_float(expected) if operator in _NUMERIC_OPERATORS else None
    if expected_number is not None:
        actual_number = _to_float(actual)
        if operator == "equals":
            if actual_number is None:
                return actual.strip() == expected.strip()
            return actual_number == expected_number
        if actual_number is None:
            return False
        if operator == "greater":
            return actual_number > expected_number
        return actual_number < expected_number

    if operator == "equals":
        return actual.lower() == expected.lower()
    if operator == "contains":
        return expected.lower() in actual.lower()
    if operator in ("greater", "less"):
        return False
    if operator == "exists":
        return bool(actual.strip())
    if operator == "regex":
        try:
            return re.search(expected, actual) is not None
        except re.error as e:
            log.warning("rule_regex_invalid", rule_id=rule.id, pattern=expected, error=str(e))
            return False

    log.warning("rule_operator_unknown", rule_id=rule.id, operator=operator)
    return False


def first_matching_rule(
    rules: Iterable[Rule],
    message: str,
    variables: Mapping[str, Any] | None = None,
) -> Rule | None:
    """First rule, in order, that matches the input."""
    for rule in rules:
        if evaluate_rule(rule, message, variables):
            return rule
    return None


def match_option(options: Iterable[Option], message: str) -> Option | None:
    """Find the option the user picked.

    Matches case-insensitively on ``key`` first, then ``value``, then
    ``text``, so that "1", "sales" and "Talk to sales" all work.
    """
    choice = message.strip().lower()
    if not choice:
        return None
    options = list(options)
    for attr in ("key", "value", "text"):
        for option in options:
            candidate = getattr(option, attr).strip().lower()
            if candidate and candidate == choice:
                return option
    return None
