"""Flow graph wire models.

These models define the JSON contract shared with the authoring surface:
vertices (typed conversational steps), their kind-specific payloads, the
guards a payload may own (menu Options, condition Rules) and the edges
between vertices.

Python attributes are snake_case; the wire uses camelCase
(``isMainMenu``, ``targetVertexId``, ``guardId``). Both spellings are
accepted on input and ``model_dump(by_alias=True)`` produces the wire shape.

Payloads are a tagged union keyed by ``Vertex.kind``: only ``menu`` payloads
carry options and only ``condition`` payloads carry rules. A vertex whose kind
is outside the closed set still loads, with an ``UnknownPayload`` that keeps
whatever fields it was given.
"""

from __future__ import annotations

from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from convoflow.models.continuation import ContinuationConfig

VertexKind = Literal[
    "start",
    "message",
    "menu",
    "condition",
    "action",
    "delay",
    "image",
    "file",
    "webhook",
    "database",
    "calculation",
    "email",
    "phone",
    "automation",
    "segment",
    "tag",
    "transfer",
    "ticket",
    "end",
]
VERTEX_KINDS: frozenset[str] = frozenset(get_args(VertexKind))

# Kinds that finish a conversation on their own; never flagged as dead ends.
TERMINAL_KINDS: frozenset[str] = frozenset({"end", "transfer", "ticket"})

# Session variable holding the latest user input; always defined while a session runs.
LAST_MESSAGE_VARIABLE = "last_user_message"

RuleField = Literal[
    "message",
    "user_name",
    "phone",
    "last_message_at",
    "conversation_count",
    "custom",
]
RULE_FIELDS: frozenset[str] = frozenset(get_args(RuleField))

RuleOperator = Literal["equals", "contains", "greater", "less", "exists", "regex"]
RULE_OPERATORS: frozenset[str] = frozenset(get_args(RuleOperator))

WebhookMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]


class WireModel(BaseModel):
    """Base for all flow models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(WireModel):
    """Authoring-only canvas coordinate. Ignored by validation and execution."""

    x: float = 0.0
    y: float = 0.0


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


class Option(WireModel):
    """A menu choice. ``key`` is what the user types, ``value`` the machine token."""

    id: str = Field(min_length=1)
    key: str = ""
    value: str = ""
    text: str = ""
    target_vertex_id: str | None = None


class Rule(WireModel):
    """A condition rule evaluated against the incoming message or session variables.

    ``field`` and ``operator`` are plain strings so that documents written by
    newer or older editors still load; the validator flags values outside
    ``RULE_FIELDS`` / ``RULE_OPERATORS``.
    """

    id: str = Field(min_length=1)
    field: str = "message"
    operator: str = "equals"
    value: str = ""
    label: str = ""
    target_vertex_id: str | None = None
    custom_field: str | None = None


Guard = Option | Rule


# ---------------------------------------------------------------------------
# Payloads (one per vertex kind)
# ---------------------------------------------------------------------------


class PayloadBase(WireModel):
    """Common payload fields. Extra fields are kept for round-tripping."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    label: str = ""


class StartPayload(PayloadBase):
    message: str = ""


class MessagePayload(PayloadBase):
    text: str = ""
    await_input: bool = True


class MenuPayload(PayloadBase):
    text: str = ""
    options: list[Option] = Field(default_factory=list)
    allow_free_text: bool = False


class ConditionPayload(PayloadBase):
    text: str = ""
    rules: list[Rule] = Field(default_factory=list)


class ActionPayload(PayloadBase):
    action: str = ""
    params: dict[str, Any] = Field(default_factory=dict)


class DelayPayload(PayloadBase):
    seconds: float = 0.0


class ImagePayload(PayloadBase):
    url: str = ""
    caption: str = ""


class FilePayload(PayloadBase):
    url: str = ""
    filename: str = ""
    caption: str = ""


class WebhookPayload(PayloadBase):
    url: str = ""
    method: WebhookMethod = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""
    response_variable: str | None = None


class DatabasePayload(PayloadBase):
    operation: str = ""
    collection: str = ""
    query: dict[str, Any] = Field(default_factory=dict)


class CalculationPayload(PayloadBase):
    expression: str = ""
    result_variable: str = ""


class EmailPayload(PayloadBase):
    to: str = ""
    subject: str = ""
    body: str = ""


class PhonePayload(PayloadBase):
    number: str = ""
    message: str = ""


class AutomationPayload(PayloadBase):
    automation_id: str = ""


class SegmentPayload(PayloadBase):
    segment: str = ""


class TagPayload(PayloadBase):
    tags: list[str] = Field(default_factory=list)
    remove: bool = False


class TransferPayload(PayloadBase):
    queue: str = ""
    message: str = ""


class TicketPayload(PayloadBase):
    title: str = ""
    priority: str = "normal"
    message: str = ""


class EndPayload(PayloadBase):
    message: str = ""


class UnknownPayload(PayloadBase):
    """Payload of a vertex whose kind this version does not know."""


VertexPayload = (
    StartPayload
    | MessagePayload
    | MenuPayload
    | ConditionPayload
    | ActionPayload
    | DelayPayload
    | ImagePayload
    | FilePayload
    | WebhookPayload
    | DatabasePayload
    | CalculationPayload
    | EmailPayload
    | PhonePayload
    | AutomationPayload
    | SegmentPayload
    | TagPayload
    | TransferPayload
    | TicketPayload
    | EndPayload
    | UnknownPayload
)

PAYLOAD_MODELS: dict[str, type[PayloadBase]] = {
    "start": StartPayload,
    "message": MessagePayload,
    "menu": MenuPayload,
    "condition": ConditionPayload,
    "action": ActionPayload,
    "delay": DelayPayload,
    "image": ImagePayload,
    "file": FilePayload,
    "webhook": WebhookPayload,
    "database": DatabasePayload,
    "calculation": CalculationPayload,
    "email": EmailPayload,
    "phone": PhonePayload,
    "automation": AutomationPayload,
    "segment": SegmentPayload,
    "tag": TagPayload,
    "transfer": TransferPayload,
    "ticket": TicketPayload,
    "end": EndPayload,
}


def payload_model_for(kind: str) -> type[PayloadBase]:
    """Return the payload model for *kind* (``UnknownPayload`` if not in the closed set)."""
    return PAYLOAD_MODELS.get(kind, UnknownPayload)


# ---------------------------------------------------------------------------
# Vertex / Edge / Document
# ---------------------------------------------------------------------------


class Vertex(WireModel):
    """A typed step in a conversation flow.

    ``is_main_menu`` is only meaningful on ``menu`` vertices; uniqueness
    across the graph is a validator invariant, not enforced here.
    """

    id: str = Field(min_length=1)
    kind: str = Field(min_length=1)
    position: Position = Field(default_factory=Position)
    payload: VertexPayload = Field(default_factory=UnknownPayload)
    is_main_menu: bool = False

    @model_validator(mode="before")
    @classmethod
    def _payload_for_kind(cls, data: Any) -> Any:
        """Parse a raw payload dict with the model selected by ``kind``."""
        if not isinstance(data, dict):
            return data
        payload = data.get("payload")
        if payload is None:
            payload = {}
        if isinstance(payload, dict):
            model = payload_model_for(str(data.get("kind", "")))
            return {**data, "payload": model.model_validate(payload)}
        return data

    @model_validator(mode="after")
    def _payload_matches_kind(self) -> Vertex:
        """Reject a payload model that belongs to a different kind."""
        expected = payload_model_for(self.kind)
        if type(self.payload) is not expected:
            msg = (
                f"payload {type(self.payload).__name__} does not match kind "
                f"'{self.kind}' (expected {expected.__name__})"
            )
            raise ValueError(msg)
        return self

    @property
    def known_kind(self) -> bool:
        return self.kind in VERTEX_KINDS

    @property
    def guards(self) -> list[Guard]:
        """Options of a menu or rules of a condition; empty for other kinds."""
        if isinstance(self.payload, MenuPayload):
            return list(self.payload.options)
        if isinstance(self.payload, ConditionPayload):
            return list(self.payload.rules)
        return []

    @property
    def display_name(self) -> str:
        return self.payload.label or self.kind


class Edge(WireModel):
    """A directed transition. A ``guard_id`` makes it eligible only when that guard matches."""

    id: str = Field(min_length=1)
    source_vertex_id: str = Field(min_length=1)
    target_vertex_id: str = Field(min_length=1)
    label: str | None = None
    guard_id: str | None = None


class FlowDocument(WireModel):
    """The document exchanged with the authoring surface."""

    vertices: list[Vertex] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    continuation: ContinuationConfig | None = None
