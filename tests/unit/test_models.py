"""Tests for the flow wire models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from convoflow.models.flow import (
    ConditionPayload,
    Edge,
    FlowDocument,
    MenuPayload,
    MessagePayload,
    UnknownPayload,
    Vertex,
    WebhookPayload,
    payload_model_for,
)


class TestVertexPayload:
    """The payload model is chosen by the vertex kind."""

    def test_menu_payload_parsed_with_options(self) -> None:
        """A menu payload dict becomes a MenuPayload with Option guards."""
        vertex = Vertex.model_validate(
            {
                "id": "menu-main",
                "kind": "menu",
                "isMainMenu": True,
                "payload": {
                    "text": "Pick one",
                    "options": [{"id": "o1", "key": "1", "text": "Sales", "targetVertexId": "v2"}],
                },
            }
        )

        assert isinstance(vertex.payload, MenuPayload)
        assert vertex.is_main_menu
        assert [g.id for g in vertex.guards] == ["o1"]
        assert vertex.payload.options[0].target_vertex_id == "v2"

    def test_condition_payload_parsed_with_rules(self) -> None:
        vertex = Vertex.model_validate(
            {
                "id": "cond",
                "kind": "condition",
                "payload": {"rules": [{"id": "r1", "operator": "contains", "value": "help"}]},
            }
        )

        assert isinstance(vertex.payload, ConditionPayload)
        assert vertex.guards[0].id == "r1"

    def test_non_guarded_kind_has_no_guards(self) -> None:
        """Options only live on menus; a message ignores them as extra data."""
        vertex = Vertex.model_validate(
            {"id": "m", "kind": "message", "payload": {"text": "hi", "options": [{"id": "x"}]}}
        )

        assert isinstance(vertex.payload, MessagePayload)
        assert vertex.guards == []

    def test_missing_payload_defaults(self) -> None:
        """A vertex without a payload gets the kind's empty payload."""
        vertex = Vertex.model_validate({"id": "w", "kind": "webhook"})

        assert isinstance(vertex.payload, WebhookPayload)
        assert vertex.payload.method == "POST"

    def test_unknown_kind_keeps_fields(self) -> None:
        """Unknown kinds load with an UnknownPayload preserving extra fields."""
        vertex = Vertex.model_validate(
            {"id": "x", "kind": "hologram", "payload": {"label": "Beam", "intensity": 3}}
        )

        assert isinstance(vertex.payload, UnknownPayload)
        assert not vertex.known_kind
        assert vertex.display_name == "Beam"
        assert vertex.payload.model_dump()["intensity"] == 3

    def test_mismatched_payload_rejected(self) -> None:
        """A payload built for another kind is rejected."""
        with pytest.raises(ValidationError, match="does not match kind"):
            Vertex(id="v", kind="menu", payload=MessagePayload(text="hi"))

    def test_payload_model_for(self) -> None:
        assert payload_model_for("menu") is MenuPayload
        assert payload_model_for("nope") is UnknownPayload

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Vertex.model_validate({"id": "", "kind": "start"})


class TestWireFormat:
    """camelCase on the wire, snake_case in Python."""

    def test_edge_accepts_both_spellings(self) -> None:
        camel = Edge.model_validate(
            {"id": "e", "sourceVertexId": "a", "targetVertexId": "b", "guardId": "g"}
        )
        snake = Edge(id="e", source_vertex_id="a", target_vertex_id="b", guard_id="g")

        assert camel == snake

    def test_dump_uses_camel_case(self) -> None:
        vertex = Vertex.model_validate(
            {"id": "m", "kind": "message", "payload": {"text": "hi", "awaitInput": False}}
        )
        dumped = vertex.model_dump(by_alias=True)

        assert dumped["isMainMenu"] is False
        assert dumped["payload"]["awaitInput"] is False

    def test_document_with_continuation(self) -> None:
        document = FlowDocument.model_validate(
            {
                "vertices": [{"id": "start", "kind": "start"}],
                "edges": [],
                "continuation": {"enabled": True, "type": "delay_menu", "delaySeconds": 2},
            }
        )

        assert document.continuation is not None
        assert document.continuation.type == "delay_menu"
        assert document.continuation.delay_seconds == 2

    def test_document_without_continuation(self) -> None:
        document = FlowDocument.model_validate({"vertices": [], "edges": []})
        assert document.continuation is None
