"""Graph integrity error types with actionable feedback.

These errors are raised when a graph mutation violates referential integrity,
similar to foreign key constraint violations in databases. They signal a bug
in the caller (the authoring surface), not a data-quality problem: data-quality
problems in a loaded flow are reported as validation findings instead.

Each error type carries structured context and can format itself as feedback
suitable for showing to a flow author.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches


class GraphIntegrityError(Exception):
    """Base class for graph integrity violations."""

    def to_feedback(self) -> str:
        """Format error as an actionable message.

        Returns:
            Human-readable message explaining what's wrong and how to fix it.
        """
        raise NotImplementedError


class FlowReferenceError(GraphIntegrityError):
    """Raised when a mutation references an id that does not exist.

    Subclasses identify what kind of id was missing. Catch this class to
    handle any dangling reference.
    """


def _suggest(ref_id: str, available: list[str]) -> list[str]:
    """Find similar ids that might be typos."""
    return get_close_matches(ref_id, available, n=3, cutoff=0.6)


def _format_missing(
    title: str,
    ref_id: str,
    context: str,
    available: list[str],
) -> str:
    lines = [f"## Reference Error: {title}", "", f"**You referenced**: `{ref_id}`"]
    if context:
        lines.append(f"**Context**: {context}")
    lines.append("")

    suggestions = _suggest(ref_id, available)
    if suggestions:
        lines.append("**Did you mean one of these?**")
        lines.extend(f"  - `{s}`" for s in suggestions)
        lines.append("")

    if available:
        lines.append("**Valid IDs**:")
        for a in sorted(available)[:20]:
            lines.append(f"  - `{a}`")
        if len(available) > 20:
            lines.append(f"  - ... and {len(available) - 20} more")

    return "\n".join(lines)


@dataclass
class VertexNotFoundError(FlowReferenceError):
    """Raised when referencing a non-existent vertex.

    Attributes:
        vertex_id: The id that was referenced but doesn't exist.
        available: Vertex ids that could be used instead.
        context: Description of where the reference occurred.
    """

    vertex_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Vertex '{self.vertex_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        super().__init__(msg)

    def to_feedback(self) -> str:
        return _format_missing("Vertex Not Found", self.vertex_id, self.context, self.available)


@dataclass
class EdgeNotFoundError(FlowReferenceError):
    """Raised when referencing a non-existent edge."""

    edge_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Edge '{self.edge_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        super().__init__(msg)

    def to_feedback(self) -> str:
        return _format_missing("Edge Not Found", self.edge_id, self.context, self.available)


@dataclass
class GuardNotFoundError(FlowReferenceError):
    """Raised when referencing an option or rule that its vertex does not own.

    Attributes:
        vertex_id: Vertex that was expected to own the guard.
        guard_id: The guard id that was referenced.
        available: Guard ids the vertex does own.
    """

    vertex_id: str
    guard_id: str
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(f"Guard '{self.guard_id}' not found on vertex '{self.vertex_id}'")

    def to_feedback(self) -> str:
        return _format_missing(
            "Guard Not Found",
            self.guard_id,
            f"guards of vertex {self.vertex_id}",
            self.available,
        )


@dataclass
class EdgeEndpointError(FlowReferenceError):
    """Raised when an edge references non-existent endpoints.

    Both the source and target vertices must exist before an edge can be
    created between them.

    Attributes:
        edge_id: Id of the edge being created.
        source_id: Source vertex id.
        target_id: Target vertex id.
        missing: Which endpoint is missing ("source", "target", or "both").
        available: Vertex ids present in the graph.
    """

    edge_id: str
    source_id: str
    target_id: str
    missing: str  # "source", "target", or "both"
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.missing == "both":
            msg = (
                f"Edge '{self.edge_id}' endpoints not found: "
                f"'{self.source_id}' and '{self.target_id}'"
            )
        elif self.missing == "source":
            msg = f"Edge '{self.edge_id}' source not found: '{self.source_id}'"
        else:
            msg = f"Edge '{self.edge_id}' target not found: '{self.target_id}'"
        super().__init__(msg)

    def to_feedback(self) -> str:
        lines = [
            "## Error: Edge Endpoint Not Found",
            "",
            f"**Edge**: `{self.edge_id}`",
            f"**From**: `{self.source_id}`",
            f"**To**: `{self.target_id}`",
            "",
        ]
        if self.missing in ("source", "both"):
            lines.append(f"**Problem**: Source vertex `{self.source_id}` does not exist.")
            lines.extend(f"  - did you mean `{s}`?" for s in _suggest(self.source_id, self.available))
        if self.missing in ("target", "both"):
            lines.append(f"**Problem**: Target vertex `{self.target_id}` does not exist.")
            lines.extend(f"  - did you mean `{s}`?" for s in _suggest(self.target_id, self.available))
        lines.extend(["", "**Solution**: Create both vertices before connecting them."])
        return "\n".join(lines)


@dataclass
class DuplicateIdError(GraphIntegrityError):
    """Raised when adding a vertex, edge or guard whose id already exists.

    Use the matching update operation to modify the existing element, or pick
    a different id.

    Attributes:
        ref_id: The id that already exists.
        ref_type: "vertex", "edge" or "guard".
    """

    ref_id: str
    ref_type: str = "vertex"

    def __post_init__(self) -> None:
        super().__init__(f"{self.ref_type.capitalize()} '{self.ref_id}' already exists")

    def to_feedback(self) -> str:
        return f"""## Error: Duplicate {self.ref_type.capitalize()} Id

**You tried to add**: `{self.ref_id}`

**Problem**: A {self.ref_type} with this id already exists in the flow.

**Solutions**:
1. Use a different id if this is meant to be a new {self.ref_type}
2. Update the existing {self.ref_type} instead of adding it again
"""
