"""In-memory conversation flow graph.

The graph is built fresh each time the authoring surface loads a flow
document, mutated incrementally while the author edits, and handed to the
validator (as a snapshot) or to an interpreter.

The graph enforces referential integrity similar to foreign keys in databases:
- Vertex and edge creation is explicit (adding an existing id fails)
- Updates and removals require the element to exist
- Edges validate that both endpoints and their guard exist
- Removing a vertex cascades to the edges touching it and to the guards that
  targeted it; removing a guard cascades to the edges it guarded

Loading a document is the one path that tolerates dangling references: the
editor may save a transiently inconsistent flow, and the validator must still
be able to report on it.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from convoflow.graph.errors import (
    DuplicateIdError,
    EdgeEndpointError,
    EdgeNotFoundError,
    GuardNotFoundError,
    VertexNotFoundError,
)
from convoflow.models.flow import (
    ConditionPayload,
    Edge,
    FlowDocument,
    Guard,
    MenuPayload,
    Option,
    Rule,
    Vertex,
)

if TYPE_CHECKING:
    from pathlib import Path

    from convoflow.models.continuation import ContinuationConfig


def read_document(path: Path) -> FlowDocument:
    """Read a flow document from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        pydantic.ValidationError: If the JSON does not have the document shape.
    """
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return FlowDocument.model_validate(data)


def _replace_guards(vertex: Vertex, guards: list[Guard]) -> Vertex:
    """Return a copy of *vertex* owning exactly *guards*."""
    if isinstance(vertex.payload, MenuPayload):
        options = [g for g in guards if isinstance(g, Option)]
        payload = vertex.payload.model_copy(update={"options": options})
    elif isinstance(vertex.payload, ConditionPayload):
        rules = [g for g in guards if isinstance(g, Rule)]
        payload = vertex.payload.model_copy(update={"rules": rules})
    else:
        return vertex
    return vertex.model_copy(update={"payload": payload})


def _check_unique_guards(vertex: Vertex) -> None:
    seen: set[str] = set()
    for guard in vertex.guards:
        if guard.id in seen:
            raise DuplicateIdError(guard.id, ref_type="guard")
        seen.add(guard.id)


class FlowGraph:
    """A directed, typed conversation flow graph.

    Vertices and edges are keyed by id; insertion order is preserved so that
    every traversal over the graph is deterministic.
    """

    def __init__(self) -> None:
        self._vertices: dict[str, Vertex] = {}
        self._edges: dict[str, Edge] = {}

    # -------------------------------------------------------------------------
    # Loading / Saving
    # -------------------------------------------------------------------------

    @classmethod
    def from_document(cls, document: FlowDocument) -> FlowGraph:
        """Build a graph from a parsed flow document.

        Dangling edges and unknown guards are kept (they become validation
        findings); repeated ids are not.

        Raises:
            DuplicateIdError: If two vertices, two edges, or two guards of one
                vertex share an id.
        """
        graph = cls()
        for vertex in document.vertices:
            graph.add_vertex(vertex, validate=False)
        for edge in document.edges:
            graph.add_edge(edge, validate=False)
        return graph

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlowGraph:
        """Build a graph from a wire-format dict (``{"vertices": [...], "edges": [...]}``)."""
        return cls.from_document(FlowDocument.model_validate(data))

    @classmethod
    def load(cls, path: Path) -> FlowGraph:
        """Load a graph from a JSON flow document."""
        return cls.from_document(read_document(path))

    def to_document(self, continuation: ContinuationConfig | None = None) -> FlowDocument:
        """Export the graph (and optionally its continuation config) as a document."""
        return FlowDocument(
            vertices=[v.model_copy(deep=True) for v in self._vertices.values()],
            edges=[e.model_copy(deep=True) for e in self._edges.values()],
            continuation=continuation,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape."""
        return self.to_document().model_dump(by_alias=True, exclude={"continuation"})

    def save(self, path: Path, continuation: ContinuationConfig | None = None) -> None:
        """Write the graph as a JSON flow document."""
        document = self.to_document(continuation)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            document.model_dump_json(by_alias=True, exclude_none=True, indent=2),
            encoding="utf-8",
        )

    def snapshot(self) -> FlowGraph:
        """Deep copy of the graph, safe to validate while editing continues."""
        copy = FlowGraph()
        copy._vertices = {vid: v.model_copy(deep=True) for vid, v in self._vertices.items()}
        copy._edges = {eid: e.model_copy(deep=True) for eid, e in self._edges.items()}
        return copy

    # -------------------------------------------------------------------------
    # Vertex Operations
    # -------------------------------------------------------------------------

    def get_vertex(self, vertex_id: str) -> Vertex | None:
        return self._vertices.get(vertex_id)

    def has_vertex(self, vertex_id: str) -> bool:
        return vertex_id in self._vertices

    def require_vertex(self, vertex_id: str, context: str = "") -> Vertex:
        """Get a vertex or raise VertexNotFoundError with suggestions."""
        vertex = self._vertices.get(vertex_id)
        if vertex is None:
            raise VertexNotFoundError(
                vertex_id, available=list(self._vertices), context=context
            )
        return vertex

    @property
    def vertices(self) -> list[Vertex]:
        return list(self._vertices.values())

    def vertex_ids(self) -> list[str]:
        return list(self._vertices)

    def vertices_of_kind(self, kind: str) -> list[Vertex]:
        return [v for v in self._vertices.values() if v.kind == kind]

    def start_vertices(self) -> list[Vertex]:
        return self.vertices_of_kind("start")

    def main_menu_vertices(self) -> list[Vertex]:
        return [v for v in self._vertices.values() if v.is_main_menu]

    def add_vertex(self, vertex: Vertex, *, validate: bool = True) -> None:
        """Add a new vertex.

        Args:
            vertex: The vertex to add.
            validate: If True (default), every guard target must be an
                existing vertex. Loading passes False.

        Raises:
            DuplicateIdError: If the vertex id (or one of its guard ids) already exists.
            VertexNotFoundError: If validate=True and a guard targets a missing vertex.
        """
        if vertex.id in self._vertices:
            raise DuplicateIdError(vertex.id, ref_type="vertex")
        _check_unique_guards(vertex)
        if validate:
            for guard in vertex.guards:
                if guard.target_vertex_id and guard.target_vertex_id not in self._vertices:
                    if guard.target_vertex_id == vertex.id:
                        continue
                    raise VertexNotFoundError(
                        guard.target_vertex_id,
                        available=list(self._vertices),
                        context=f"target of guard {guard.id} on {vertex.id}",
                    )
        self._vertices[vertex.id] = vertex

    def update_vertex(self, vertex_id: str, **changes: Any) -> Vertex:
        """Update fields of an existing vertex.

        Accepts any Vertex field except ``id``. A ``payload`` may be given as a
        payload model or a dict. Changing ``kind`` without a new payload
        resets the payload to the new kind's defaults, keeping the label.
        Guards that disappear from the payload take their edges with them.

        Returns:
            The updated vertex.

        Raises:
            VertexNotFoundError: If the vertex doesn't exist.
            DuplicateIdError: If the new payload repeats a guard id.
            ValueError: If ``id`` is among the changes.
        """
        current = self.require_vertex(vertex_id, context="update_vertex")
        if "id" in changes and changes["id"] != vertex_id:
            raise ValueError("Vertex id cannot be changed; remove and re-add the vertex")

        data = current.model_dump()
        if changes.get("kind", current.kind) != current.kind and "payload" not in changes:
            # The old payload belongs to another kind; only its label carries over.
            data["payload"] = {"label": current.payload.label}
        data.update(changes)
        updated = Vertex.model_validate(data)
        _check_unique_guards(updated)

        kept = {g.id for g in updated.guards}
        dropped = {g.id for g in current.guards} - kept
        self._vertices[vertex_id] = updated
        if dropped:
            self._remove_guarded_edges(vertex_id, dropped)
        return updated

    def remove_vertex(self, vertex_id: str) -> Vertex:
        """Remove a vertex with everything that depends on it.

        Removes, in one step: the vertex, every edge touching it, every guard
        on another vertex that targeted it, and every edge guarded by such a
        guard.

        Returns:
            The removed vertex.

        Raises:
            VertexNotFoundError: If the vertex doesn't exist.
        """
        removed = self.require_vertex(vertex_id, context="remove_vertex")

        vertices = {vid: v for vid, v in self._vertices.items() if vid != vertex_id}
        dropped_guards: set[tuple[str, str]] = set()
        for vid, vertex in vertices.items():
            targeting = [g for g in vertex.guards if g.target_vertex_id == vertex_id]
            if targeting:
                dropped_guards.update((vid, g.id) for g in targeting)
                kept = [g for g in vertex.guards if g.target_vertex_id != vertex_id]
                vertices[vid] = _replace_guards(vertex, kept)

        edges = {
            eid: e
            for eid, e in self._edges.items()
            if vertex_id not in (e.source_vertex_id, e.target_vertex_id)
            and (e.source_vertex_id, e.guard_id) not in dropped_guards
        }

        self._vertices = vertices
        self._edges = edges
        return removed

    # -------------------------------------------------------------------------
    # Guard Operations
    # -------------------------------------------------------------------------

    def guards(self, vertex_id: str) -> list[Guard]:
        """Options of a menu vertex or rules of a condition vertex."""
        return self.require_vertex(vertex_id, context="guards").guards

    def get_guard(self, vertex_id: str, guard_id: str) -> Guard | None:
        vertex = self._vertices.get(vertex_id)
        if vertex is None:
            return None
        return next((g for g in vertex.guards if g.id == guard_id), None)

    def add_guard(self, vertex_id: str, guard: Guard) -> None:
        """Append an option to a menu vertex or a rule to a condition vertex.

        Raises:
            VertexNotFoundError: If the vertex or the guard's target doesn't exist.
            DuplicateIdError: If the vertex already owns a guard with this id.
            TypeError: If the guard type doesn't fit the vertex kind.
        """
        vertex = self.require_vertex(vertex_id, context="add_guard")
        if isinstance(guard, Option) and not isinstance(vertex.payload, MenuPayload):
            raise TypeError(f"Options can only be added to menu vertices, not '{vertex.kind}'")
        if isinstance(guard, Rule) and not isinstance(vertex.payload, ConditionPayload):
            raise TypeError(f"Rules can only be added to condition vertices, not '{vertex.kind}'")
        if any(g.id == guard.id for g in vertex.guards):
            raise DuplicateIdError(guard.id, ref_type="guard")
        if guard.target_vertex_id is not None:
            self.require_vertex(guard.target_vertex_id, context=f"target of guard {guard.id}")
        self._vertices[vertex_id] = _replace_guards(vertex, [*vertex.guards, guard])

    def remove_guard(self, vertex_id: str, guard_id: str) -> Guard:
        """Remove a guard and every edge it guarded.

        Raises:
            VertexNotFoundError: If the vertex doesn't exist.
            GuardNotFoundError: If the vertex has no guard with this id.
        """
        vertex = self.require_vertex(vertex_id, context="remove_guard")
        guard = next((g for g in vertex.guards if g.id == guard_id), None)
        if guard is None:
            raise GuardNotFoundError(
                vertex_id, guard_id, available=[g.id for g in vertex.guards]
            )
        kept = [g for g in vertex.guards if g.id != guard_id]
        self._vertices[vertex_id] = _replace_guards(vertex, kept)
        self._remove_guarded_edges(vertex_id, {guard_id})
        return guard

    def _remove_guarded_edges(self, vertex_id: str, guard_ids: set[str]) -> None:
        self._edges = {
            eid: e
            for eid, e in self._edges.items()
            if not (e.source_vertex_id == vertex_id and e.guard_id in guard_ids)
        }

    # -------------------------------------------------------------------------
    # Edge Operations
    # -------------------------------------------------------------------------

    def get_edge(self, edge_id: str) -> Edge | None:
        return self._edges.get(edge_id)

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    def add_edge(self, edge: Edge, *, validate: bool = True) -> None:
        """Add an edge. Validates endpoints and guard by default.

        Args:
            edge: The edge to add.
            validate: If True (default), both endpoints must exist and a
                ``guard_id`` must name a guard of the source vertex. Loading
                passes False.

        Raises:
            DuplicateIdError: If the edge id already exists.
            EdgeEndpointError: If validate=True and an endpoint doesn't exist.
            GuardNotFoundError: If validate=True and the guard doesn't exist.
        """
        if edge.id in self._edges:
            raise DuplicateIdError(edge.id, ref_type="edge")

        if validate:
            source_exists = edge.source_vertex_id in self._vertices
            target_exists = edge.target_vertex_id in self._vertices
            if not source_exists or not target_exists:
                if not source_exists and not target_exists:
                    missing = "both"
                elif not source_exists:
                    missing = "source"
                else:
                    missing = "target"
                raise EdgeEndpointError(
                    edge_id=edge.id,
                    source_id=edge.source_vertex_id,
                    target_id=edge.target_vertex_id,
                    missing=missing,
                    available=list(self._vertices),
                )
            if edge.guard_id is not None:
                source = self._vertices[edge.source_vertex_id]
                if not any(g.id == edge.guard_id for g in source.guards):
                    raise GuardNotFoundError(
                        source.id, edge.guard_id, available=[g.id for g in source.guards]
                    )

        self._edges[edge.id] = edge

    def remove_edge(self, edge_id: str) -> Edge:
        """Remove an edge by id.

        Raises:
            EdgeNotFoundError: If the edge doesn't exist.
        """
        if edge_id not in self._edges:
            raise EdgeNotFoundError(edge_id, available=list(self._edges), context="remove_edge")
        return self._edges.pop(edge_id)

    def outgoing(self, vertex_id: str) -> list[Edge]:
        """Edges leaving *vertex_id*, in insertion order."""
        self.require_vertex(vertex_id, context="outgoing")
        return [e for e in self._edges.values() if e.source_vertex_id == vertex_id]

    def incoming(self, vertex_id: str) -> list[Edge]:
        """Edges entering *vertex_id*, in insertion order."""
        self.require_vertex(vertex_id, context="incoming")
        return [e for e in self._edges.values() if e.target_vertex_id == vertex_id]

    def eligible_edge(self, vertex_id: str, matched_guard_id: str | None = None) -> Edge | None:
        """Edge an interpreter should follow out of *vertex_id*.

        The edge guarded by *matched_guard_id* wins; otherwise the first
        unguarded (default) edge; otherwise None, and the continuation policy
        decides.
        """
        edges = self.outgoing(vertex_id)
        if matched_guard_id is not None:
            for edge in edges:
                if edge.guard_id == matched_guard_id:
                    return edge
        return next((e for e in edges if e.guard_id is None), None)

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def validate_invariants(self) -> list[str]:
        """Check referential integrity and return any violations.

        This detects code bugs in mutation paths, not authoring problems
        (those are the validator's job). A graph only built through the
        validating mutators always returns an empty list.
        """
        violations: list[str] = []

        for edge in self._edges.values():
            if edge.source_vertex_id not in self._vertices:
                violations.append(
                    f"Edge {edge.id}: source '{edge.source_vertex_id}' does not exist"
                )
            if edge.target_vertex_id not in self._vertices:
                violations.append(
                    f"Edge {edge.id}: target '{edge.target_vertex_id}' does not exist"
                )
            source = self._vertices.get(edge.source_vertex_id)
            if edge.guard_id is not None and source is not None:
                if not any(g.id == edge.guard_id for g in source.guards):
                    violations.append(
                        f"Edge {edge.id}: guard '{edge.guard_id}' not on '{source.id}'"
                    )

        for vertex in self._vertices.values():
            for guard in vertex.guards:
                target = guard.target_vertex_id
                if target is not None and target not in self._vertices:
                    violations.append(
                        f"Guard {guard.id} on {vertex.id}: target '{target}' does not exist"
                    )

        return violations

    def __len__(self) -> int:
        return len(self._vertices)

    def __repr__(self) -> str:
        return f"FlowGraph(vertices={len(self._vertices)}, edges={len(self._edges)})"
