"""Pydantic models for flow documents and continuation configuration."""

from convoflow.models.continuation import (
    DEFAULT_DELAY_SECONDS,
    DEFAULT_MESSAGES,
    MENU_STRATEGIES,
    ContinuationConfig,
    ContinuationStrategy,
)
from convoflow.models.flow import (
    LAST_MESSAGE_VARIABLE,
    PAYLOAD_MODELS,
    RULE_FIELDS,
    RULE_OPERATORS,
    TERMINAL_KINDS,
    VERTEX_KINDS,
    ConditionPayload,
    Edge,
    EndPayload,
    FlowDocument,
    Guard,
    MenuPayload,
    MessagePayload,
    Option,
    Position,
    Rule,
    StartPayload,
    UnknownPayload,
    Vertex,
    WebhookPayload,
    payload_model_for,
)

__all__ = [
    "DEFAULT_DELAY_SECONDS",
    "DEFAULT_MESSAGES",
    "LAST_MESSAGE_VARIABLE",
    "MENU_STRATEGIES",
    "PAYLOAD_MODELS",
    "RULE_FIELDS",
    "RULE_OPERATORS",
    "TERMINAL_KINDS",
    "VERTEX_KINDS",
    "ConditionPayload",
    "ContinuationConfig",
    "ContinuationStrategy",
    "Edge",
    "EndPayload",
    "FlowDocument",
    "Guard",
    "MenuPayload",
    "MessagePayload",
    "Option",
    "Position",
    "Rule",
    "StartPayload",
    "UnknownPayload",
    "Vertex",
    "WebhookPayload",
    "payload_model_for",
]
