"""Structural validation of conversation flow graphs.

Pure, deterministic checks over a ``FlowGraph``: no mutation, no I/O, no
dependence on wall-clock time (the report timestamp is passed in or stamped
by ``validate`` and is not part of report equality).

Every structural problem becomes a ``Finding``; nothing here raises for
malformed graphs. ``validate`` is the boundary that turns an unexpected
internal failure into the single synthetic ``validation-error`` finding.

Validation categories:
- Structure: start cardinality, dangling edges, main-menu uniqueness
- Navigation: reachability from start, guard/edge wiring, dead ends
- Content: empty payloads, message length, webhook URLs, unknown kinds
- Configuration: continuation strategy vs. main-menu presence
- Stats: vertex counts, longest path, branches without fallback
"""

from __future__ import annotations

import re
from collections import Counter, deque
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from convoflow.config import DEFAULT_VALIDATION_CONFIG, ValidationConfig
from convoflow.graph.validation_types import Finding, ValidationReport
from convoflow.models.continuation import MENU_STRATEGIES
from convoflow.models.flow import (
    LAST_MESSAGE_VARIABLE,
    RULE_FIELDS,
    RULE_OPERATORS,
    TERMINAL_KINDS,
    CalculationPayload,
    ConditionPayload,
    MenuPayload,
    Option,
    WebhookPayload,
)
from convoflow.observability.logging import get_logger

if TYPE_CHECKING:
    from convoflow.graph.graph import FlowGraph
    from convoflow.models.continuation import ContinuationConfig
    from convoflow.models.flow import Edge, Vertex

log = get_logger(__name__)

__all__ = [
    "VALIDATION_ERROR_ID",
    "bfs_depths",
    "build_adjacency",
    "build_outgoing_edges",
    "check_continuation",
    "check_dangling_edges",
    "check_dead_ends",
    "check_empty_guards",
    "check_flow_size",
    "check_guard_wiring",
    "check_main_menus",
    "check_payloads",
    "check_reachability",
    "check_start_cardinality",
    "check_start_exit",
    "check_variable_usage",
    "collect_stats",
    "find_start_vertices",
    "longest_path_length",
    "reachable_from",
    "run_checks",
    "validate",
]

VALIDATION_ERROR_ID = "validation-error"

# Payload field that must be non-blank for each kind to do anything.
_REQUIRED_PAYLOAD_FIELDS: dict[str, str] = {
    "message": "text",
    "image": "url",
    "file": "url",
    "webhook": "url",
    "email": "to",
    "phone": "number",
    "calculation": "expression",
    "automation": "automation_id",
    "segment": "segment",
    "tag": "tags",
}

# Payload fields whose length is checked against max_message_length.
_TEXT_FIELDS = ("text", "message")

# {{name}} placeholders in webhook bodies.
_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


# ---------------------------------------------------------------------------
# Traversal utilities
# ---------------------------------------------------------------------------


def find_start_vertices(graph: FlowGraph) -> list[str]:
    """Ids of all ``start`` vertices, in insertion order."""
    return [v.id for v in graph.vertices_of_kind("start")]


def build_outgoing_edges(graph: FlowGraph) -> dict[str, list[Edge]]:
    """Map each vertex id to its outgoing edges (dangling targets included).

    Unlike ``FlowGraph.outgoing`` this never raises, so edges whose source is
    missing simply appear under that missing id.
    """
    outgoing: dict[str, list[Edge]] = {}
    for edge in graph.edges:
        outgoing.setdefault(edge.source_vertex_id, []).append(edge)
    return outgoing


def build_adjacency(graph: FlowGraph) -> dict[str, list[str]]:
    """Build vertex → successor vertices adjacency from edges.

    Edges with a dangling endpoint are left out; they are reported by
    ``check_dangling_edges`` and must not make anything reachable.
    """
    adjacency: dict[str, list[str]] = {}
    for edge in graph.edges:
        if graph.has_vertex(edge.source_vertex_id) and graph.has_vertex(edge.target_vertex_id):
            adjacency.setdefault(edge.source_vertex_id, []).append(edge.target_vertex_id)
    return adjacency


def bfs_depths(adjacency: dict[str, list[str]], start: str) -> dict[str, int]:
    """Breadth-first distances (in edges) from *start* to every reachable vertex."""
    depths = {start: 0}
    queue: deque[str] = deque([start])
    while queue:
        current = queue.popleft()
        for successor in adjacency.get(current, []):
            if successor not in depths:
                depths[successor] = depths[current] + 1
                queue.append(successor)
    return depths


def reachable_from(adjacency: dict[str, list[str]], start: str) -> set[str]:
    """Vertices reachable from *start* (including *start*)."""
    return set(bfs_depths(adjacency, start))


def longest_path_length(adjacency: dict[str, list[str]], start: str) -> int:
    """Edges on the longest path from *start*, ignoring back-edges.

    A depth-first walk drops every edge that closes a cycle (its target is
    still on the walk's stack). What remains is acyclic, so the longest path
    is computed bottom-up in DFS post-order, where every kept successor is
    finished before its predecessor.
    """
    longest: dict[str, int] = {}
    on_stack = {start}
    stack: list[tuple[str, int]] = [(start, 0)]
    while stack:
        current, index = stack[-1]
        successors = adjacency.get(current, [])
        if index < len(successors):
            stack[-1] = (current, index + 1)
            successor = successors[index]
            if successor not in on_stack and successor not in longest:
                on_stack.add(successor)
                stack.append((successor, 0))
            continue
        stack.pop()
        on_stack.discard(current)
        longest[current] = max(
            (longest[s] + 1 for s in successors if s in longest),
            default=0,
        )
    return longest[start]


def _blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


# ---------------------------------------------------------------------------
# Structure checks
# ---------------------------------------------------------------------------


def check_start_cardinality(graph: FlowGraph) -> list[Finding]:
    """Exactly one start vertex must exist."""
    starts = find_start_vertices(graph)
    if not starts:
        return [
            Finding(
                id="no-start",
                severity="error",
                message="Flow has no start vertex",
                description="Every flow needs exactly one entry point.",
                suggestion="Add a start vertex and connect it to the first step.",
            )
        ]
    if len(starts) > 1:
        return [
            Finding(
                id="multiple-starts",
                severity="error",
                message=f"Flow has multiple start vertices: {', '.join(starts)}",
                description="A flow must have exactly one entry point.",
                suggestion="Remove the extra start vertices.",
                vertex_id=starts[1],
            )
        ]
    return []


def check_dangling_edges(graph: FlowGraph) -> list[Finding]:
    """Every edge endpoint must be an existing vertex."""
    findings: list[Finding] = []
    for edge in graph.edges:
        missing = [
            vid
            for vid in (edge.source_vertex_id, edge.target_vertex_id)
            if not graph.has_vertex(vid)
        ]
        if not missing:
            continue
        findings.append(
            Finding(
                id=f"dangling-edge-{edge.id}",
                severity="error",
                message=f"Edge {edge.id} references missing vertex {', '.join(missing)}",
                suggestion="Delete the edge or reconnect it to an existing vertex.",
                vertex_id=(
                    edge.source_vertex_id if graph.has_vertex(edge.source_vertex_id) else None
                ),
            )
        )
    return findings


def check_main_menus(graph: FlowGraph) -> list[Finding]:
    """At most one vertex may be the main menu, and it should be a menu."""
    findings: list[Finding] = []
    main_menus = graph.main_menu_vertices()
    if len(main_menus) > 1:
        ids = [v.id for v in main_menus]
        findings.append(
            Finding(
                id="multiple-main-menus",
                severity="error",
                message=f"Flow has multiple main menus: {', '.join(ids)}",
                description="The main menu is the single default return target.",
                suggestion="Keep the main-menu flag on one menu only.",
                vertex_id=ids[1],
            )
        )
    for vertex in main_menus:
        if vertex.kind != "menu":
            findings.append(
                Finding(
                    id=f"main-menu-not-menu-{vertex.id}",
                    severity="warning",
                    message=f"Vertex {vertex.id} is flagged as main menu but is a {vertex.kind}",
                    suggestion="Flag a menu vertex as the main menu instead.",
                    vertex_id=vertex.id,
                    category="configuration",
                )
            )
    return findings


# ---------------------------------------------------------------------------
# Navigation checks
# ---------------------------------------------------------------------------


def check_reachability(graph: FlowGraph, reachable: set[str]) -> list[Finding]:
    """Every non-start vertex must be reachable from the unique start.

    Unreachable ``end`` vertices are only a warning: dead terminals cannot
    corrupt live traffic.
    """
    findings: list[Finding] = []
    for vertex in graph.vertices:
        if vertex.kind == "start" or vertex.id in reachable:
            continue
        if vertex.kind == "end":
            findings.append(
                Finding(
                    id=f"unreachable-end-{vertex.id}",
                    severity="warning",
                    message=f"End vertex {vertex.id} is not reachable from start",
                    suggestion="Connect it or delete it.",
                    vertex_id=vertex.id,
                    category="navigation",
                )
            )
        else:
            findings.append(
                Finding(
                    id=f"unreachable-{vertex.id}",
                    severity="error",
                    message=f"Vertex {vertex.id} ({vertex.display_name}) is not reachable from start",
                    description="No path of edges leads from the start vertex to this step.",
                    suggestion="Add an edge leading to this vertex or delete it.",
                    vertex_id=vertex.id,
                    category="navigation",
                )
            )
    return findings


def check_guard_wiring(graph: FlowGraph, outgoing: dict[str, list[Edge]]) -> list[Finding]:
    """Guards and guarded edges must reference each other.

    - A guard declaring a target needs an edge carrying its id (error).
    - A guarded edge must name a guard of its existing source (error).
    - Guards with neither a target nor an edge leave input unhandled (warning).
    """
    findings: list[Finding] = []

    for vertex in graph.vertices:
        edges = outgoing.get(vertex.id, [])
        guard_edges: dict[str, list[Edge]] = {}
        for edge in edges:
            if edge.guard_id is not None:
                guard_edges.setdefault(edge.guard_id, []).append(edge)

        unhandled: list[str] = []
        for guard in vertex.guards:
            wired = guard_edges.get(guard.id, [])
            if guard.target_vertex_id is not None:
                if not wired:
                    findings.append(
                        Finding(
                            id=f"guard-unwired-{vertex.id}-{guard.id}",
                            severity="error",
                            message=(
                                f"{_guard_noun(guard)} {guard.id} on {vertex.id} targets "
                                f"{guard.target_vertex_id} but has no edge"
                            ),
                            suggestion="Connect the option or rule to its target vertex.",
                            vertex_id=vertex.id,
                            category="navigation",
                        )
                    )
                elif all(e.target_vertex_id != guard.target_vertex_id for e in wired):
                    findings.append(
                        Finding(
                            id=f"guard-target-mismatch-{vertex.id}-{guard.id}",
                            severity="warning",
                            message=(
                                f"{_guard_noun(guard)} {guard.id} on {vertex.id} declares target "
                                f"{guard.target_vertex_id} but its edge leads to "
                                f"{wired[0].target_vertex_id}"
                            ),
                            vertex_id=vertex.id,
                            category="navigation",
                        )
                    )
            elif not wired:
                unhandled.append(guard.id)

        if unhandled:
            findings.append(
                Finding(
                    id=f"unguarded-targets-{vertex.id}",
                    severity="warning",
                    message=f"{vertex.id} has choices that lead nowhere: {', '.join(unhandled)}",
                    description="Input matching these choices will find no next step.",
                    suggestion="Connect each option or rule to a target vertex.",
                    vertex_id=vertex.id,
                    category="navigation",
                )
            )

    for edge in graph.edges:
        if edge.guard_id is None:
            continue
        source = graph.get_vertex(edge.source_vertex_id)
        if source is None:
            continue
        if not any(g.id == edge.guard_id for g in source.guards):
            findings.append(
                Finding(
                    id=f"unknown-guard-{edge.id}",
                    severity="error",
                    message=f"Edge {edge.id} is guarded by {edge.guard_id}, which {source.id} does not have",
                    suggestion="Remove the guard from the edge or re-create the option or rule.",
                    vertex_id=source.id,
                    category="navigation",
                )
            )

    return findings


def _guard_noun(guard: object) -> str:
    return "Option" if isinstance(guard, Option) else "Rule"


def check_start_exit(graph: FlowGraph, start_id: str, outgoing: dict[str, list[Edge]]) -> list[Finding]:
    """A flow whose start has no outgoing edge does nothing."""
    if outgoing.get(start_id):
        return []
    return [
        Finding(
            id="start-no-exit",
            severity="warning",
            message="The flow does nothing past its start vertex",
            suggestion="Connect the start vertex to the first step of the conversation.",
            vertex_id=start_id,
            category="navigation",
        )
    ]


def check_dead_ends(
    graph: FlowGraph,
    reachable: set[str],
    outgoing: dict[str, list[Edge]],
    continuation: ContinuationConfig | None,
    config: ValidationConfig,
) -> list[Finding]:
    """Reachable non-terminal vertices without outgoing edges stall the conversation.

    Only relevant when no automatic continuation covers them, i.e. when the
    effective strategy is ``manual_finish``. The start vertex is covered by
    ``check_start_exit``.
    """
    if config.allow_dead_ends:
        return []
    if continuation is not None and continuation.effective_type != "manual_finish":
        return []
    findings: list[Finding] = []
    for vertex in graph.vertices:
        if vertex.id not in reachable or vertex.kind == "start" or vertex.kind in TERMINAL_KINDS:
            continue
        if outgoing.get(vertex.id):
            continue
        findings.append(
            Finding(
                id=f"dead-end-{vertex.id}",
                severity="warning",
                message=f"{vertex.id} ({vertex.display_name}) has no next step",
                description="The conversation stalls here until someone wires it manually.",
                suggestion="Connect it, end the flow explicitly, or enable automatic return to the menu.",
                vertex_id=vertex.id,
                category="navigation",
            )
        )
    return findings


# ---------------------------------------------------------------------------
# Content checks
# ---------------------------------------------------------------------------


def check_empty_guards(graph: FlowGraph) -> list[Finding]:
    """Menus without options (and no free text) and conditions without rules."""
    findings: list[Finding] = []
    for vertex in graph.vertices:
        payload = vertex.payload
        if isinstance(payload, MenuPayload) and not payload.options and not payload.allow_free_text:
            findings.append(
                Finding(
                    id=f"empty-menu-{vertex.id}",
                    severity="warning",
                    message=f"Menu {vertex.id} has no options",
                    description="Users reaching this menu cannot choose anything.",
                    suggestion="Add options or allow free text input.",
                    vertex_id=vertex.id,
                    category="usability",
                )
            )
        elif isinstance(payload, ConditionPayload) and not payload.rules:
            findings.append(
                Finding(
                    id=f"empty-condition-{vertex.id}",
                    severity="warning",
                    message=f"Condition {vertex.id} has no rules",
                    suggestion="Add at least one rule.",
                    vertex_id=vertex.id,
                    category="configuration",
                )
            )
    return findings


def check_payloads(graph: FlowGraph, config: ValidationConfig) -> list[Finding]:
    """Per-vertex payload content: kinds, blank fields, lengths, rules, options, URLs."""
    findings: list[Finding] = []
    for vertex in graph.vertices:
        if not vertex.known_kind:
            findings.append(
                Finding(
                    id=f"unknown-kind-{vertex.id}",
                    severity="warning",
                    message=f"Vertex {vertex.id} has unknown type '{vertex.kind}'",
                    description="It was kept as-is but will not be executed.",
                    vertex_id=vertex.id,
                    category="configuration",
                )
            )
            continue

        required = _REQUIRED_PAYLOAD_FIELDS.get(vertex.kind)
        if required is not None and _blank(getattr(vertex.payload, required, None)):
            findings.append(
                Finding(
                    id=f"empty-payload-{vertex.id}",
                    severity="warning",
                    message=f"{vertex.kind.capitalize()} vertex {vertex.id} has no {required}",
                    suggestion=f"Fill in the {required} field.",
                    vertex_id=vertex.id,
                    category="content",
                )
            )

        for name in _TEXT_FIELDS:
            text = getattr(vertex.payload, name, None)
            if isinstance(text, str) and len(text) > config.max_message_length:
                findings.append(
                    Finding(
                        id=f"message-too-long-{vertex.id}",
                        severity="warning",
                        message=(
                            f"Text of {vertex.id} is {len(text)} characters "
                            f"(limit {config.max_message_length})"
                        ),
                        suggestion="Split it into several messages.",
                        vertex_id=vertex.id,
                        category="usability",
                    )
                )
                break

        findings.extend(_check_vertex_guards(vertex, config))

        if (
            config.validate_urls
            and isinstance(vertex.payload, WebhookPayload)
            and vertex.payload.url.strip()
        ):
            parsed = urlparse(vertex.payload.url.strip())
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                findings.append(
                    Finding(
                        id=f"invalid-webhook-url-{vertex.id}",
                        severity="warning",
                        message=f"Webhook {vertex.id} has an invalid URL: {vertex.payload.url}",
                        suggestion="Use an absolute http:// or https:// URL.",
                        vertex_id=vertex.id,
                        category="configuration",
                    )
                )
    return findings


def _check_vertex_guards(vertex: Vertex, config: ValidationConfig) -> list[Finding]:
    findings: list[Finding] = []
    payload = vertex.payload
    if isinstance(payload, ConditionPayload):
        for rule in payload.rules:
            if rule.operator not in RULE_OPERATORS:
                findings.append(
                    Finding(
                        id=f"unknown-operator-{vertex.id}-{rule.id}",
                        severity="warning",
                        message=f"Rule {rule.id} on {vertex.id} uses unknown operator '{rule.operator}'",
                        description="The rule never matches at runtime.",
                        vertex_id=vertex.id,
                        category="configuration",
                    )
                )
            if rule.field not in RULE_FIELDS:
                findings.append(
                    Finding(
                        id=f"unknown-field-{vertex.id}-{rule.id}",
                        severity="warning",
                        message=f"Rule {rule.id} on {vertex.id} uses unknown field '{rule.field}'",
                        description="The value is looked up in session variables.",
                        vertex_id=vertex.id,
                        category="configuration",
                    )
                )
    elif isinstance(payload, MenuPayload):
        if len(payload.options) > config.max_menu_options:
            findings.append(
                Finding(
                    id=f"too-many-options-{vertex.id}",
                    severity="warning",
                    message=(
                        f"Menu {vertex.id} has {len(payload.options)} options "
                        f"(limit {config.max_menu_options})"
                    ),
                    suggestion="Group options into sub-menus.",
                    vertex_id=vertex.id,
                    category="usability",
                )
            )
        keys = Counter(o.key.strip().lower() for o in payload.options if o.key.strip())
        for key, count in keys.items():
            if count > 1:
                findings.append(
                    Finding(
                        id=f"duplicate-option-key-{vertex.id}-{key}",
                        severity="warning",
                        message=f"Menu {vertex.id} has {count} options with key '{key}'",
                        description="Only the first of them can ever be chosen.",
                        vertex_id=vertex.id,
                        category="usability",
                    )
                )
    return findings


def check_variable_usage(graph: FlowGraph) -> list[Finding]:
    """Session variables that are read somewhere but never written.

    Reads are ``custom`` rule fields and ``{{name}}`` placeholders in webhook
    bodies. Writes are webhook ``response_variable`` and calculation
    ``result_variable``. One finding per variable, at its first reader.
    """
    defined = {LAST_MESSAGE_VARIABLE}
    used: dict[str, str] = {}
    for vertex in graph.vertices:
        payload = vertex.payload
        if isinstance(payload, WebhookPayload):
            if payload.response_variable:
                defined.add(payload.response_variable.strip())
            for name in _PLACEHOLDER.findall(payload.body):
                used.setdefault(name, vertex.id)
        elif isinstance(payload, CalculationPayload):
            if payload.result_variable.strip():
                defined.add(payload.result_variable.strip())
        elif isinstance(payload, ConditionPayload):
            for rule in payload.rules:
                if rule.field == "custom" and rule.custom_field and rule.custom_field.strip():
                    used.setdefault(rule.custom_field.strip(), vertex.id)

    return [
        Finding(
            id=f"undefined-variable-{name}",
            severity="warning",
            message=f"Variable '{name}' is used but never defined",
            description=f"First read by {vertex_id}; it is empty unless the caller supplies it.",
            suggestion="Store it with a webhook response variable or a calculation result.",
            vertex_id=vertex_id,
            category="configuration",
        )
        for name, vertex_id in used.items()
        if name not in defined
    ]


# ---------------------------------------------------------------------------
# Configuration / size checks
# ---------------------------------------------------------------------------


def check_continuation(
    graph: FlowGraph, continuation: ContinuationConfig | None
) -> list[Finding]:
    """Menu continuation strategies need a main-menu vertex to return to."""
    if continuation is None or continuation.effective_type not in MENU_STRATEGIES:
        return []
    if graph.main_menu_vertices():
        return []
    return [
        Finding(
            id="continuation-no-main-menu",
            severity="warning",
            message=f"Continuation '{continuation.type}' is selected but no main menu exists",
            description="Conversations will stop instead of returning to a menu.",
            suggestion="Flag one menu vertex as the main menu.",
            category="configuration",
        )
    ]


def check_flow_size(
    graph: FlowGraph, config: ValidationConfig, longest_path: int | None
) -> list[Finding]:
    """Flow-wide limits from the validation profile."""
    findings: list[Finding] = []
    if config.require_end_vertex and not graph.vertices_of_kind("end"):
        findings.append(
            Finding(
                id="no-end",
                severity="warning",
                message="Flow has no end vertex",
                suggestion="Add an end vertex to close the conversation explicitly.",
                category="structure",
            )
        )
    vertex_count = len(graph.vertices)
    if vertex_count > config.max_vertices:
        findings.append(
            Finding(
                id="too-many-vertices",
                severity="warning",
                message=f"Flow has {vertex_count} vertices (limit {config.max_vertices})",
                suggestion="Split it into several flows.",
                category="performance",
            )
        )
    edge_count = len(graph.edges)
    if edge_count > config.max_edges:
        findings.append(
            Finding(
                id="too-many-edges",
                severity="warning",
                message=f"Flow has {edge_count} edges (limit {config.max_edges})",
                category="performance",
            )
        )
    if longest_path is not None and longest_path > config.max_flow_length:
        findings.append(
            Finding(
                id="flow-too-long",
                severity="warning",
                message=(
                    f"Longest path from start is {longest_path} steps "
                    f"(limit {config.max_flow_length})"
                ),
                suggestion="Shorten the conversation or offer shortcuts from the menu.",
                category="performance",
            )
        )
    return findings


# ---------------------------------------------------------------------------
# Advisory statistics
# ---------------------------------------------------------------------------


def collect_stats(
    graph: FlowGraph,
    outgoing: dict[str, list[Edge]],
    longest_path: int | None,
) -> list[Finding]:
    """Info findings: counts by kind, longest path, branches without fallback."""
    counts = Counter(v.kind for v in graph.vertices)
    by_kind = ", ".join(f"{kind}: {counts[kind]}" for kind in sorted(counts))
    findings = [
        Finding(
            id="flow-stats",
            severity="info",
            message=f"{len(graph.vertices)} vertices, {len(graph.edges)} edges",
            description=by_kind or None,
            category="stats",
        )
    ]

    if longest_path is not None:
        findings.append(
            Finding(
                id="longest-path",
                severity="info",
                message=f"Longest path from start: {longest_path} steps",
                category="stats",
            )
        )

    without_fallback = [
        v.id
        for v in graph.vertices
        if v.guards
        and any(e.guard_id is not None for e in outgoing.get(v.id, []))
        and not any(e.guard_id is None for e in outgoing.get(v.id, []))
    ]
    if without_fallback:
        findings.append(
            Finding(
                id="branches-without-fallback",
                severity="info",
                message=f"{len(without_fallback)} branching vertices have no default edge",
                description=", ".join(without_fallback),
                suggestion="Add an unguarded edge to handle unmatched input.",
                category="stats",
            )
        )
    return findings


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


def run_checks(
    graph: FlowGraph,
    *,
    continuation: ContinuationConfig | None = None,
    config: ValidationConfig | None = None,
) -> list[Finding]:
    """Run every check in a fixed order and return the findings.

    Reachability, start-exit, dead-end and longest-path analysis run only
    when there is exactly one start vertex; otherwise only the cardinality
    finding is reported for it.

    May raise on internal bugs; ``validate`` is the non-raising boundary.
    """
    config = config or DEFAULT_VALIDATION_CONFIG
    findings: list[Finding] = []

    findings.extend(check_start_cardinality(graph))
    findings.extend(check_dangling_edges(graph))
    findings.extend(check_main_menus(graph))

    outgoing = build_outgoing_edges(graph)
    starts = find_start_vertices(graph)
    longest_path: int | None = None
    if len(starts) == 1:
        adjacency = build_adjacency(graph)
        reachable = reachable_from(adjacency, starts[0])
        longest_path = longest_path_length(adjacency, starts[0])
        findings.extend(check_reachability(graph, reachable))
        findings.extend(check_start_exit(graph, starts[0], outgoing))
        findings.extend(check_dead_ends(graph, reachable, outgoing, continuation, config))

    findings.extend(check_guard_wiring(graph, outgoing))
    findings.extend(check_empty_guards(graph))
    findings.extend(check_payloads(graph, config))
    if config.check_variable_usage:
        findings.extend(check_variable_usage(graph))
    findings.extend(check_continuation(graph, continuation))
    findings.extend(check_flow_size(graph, config, longest_path))
    findings.extend(collect_stats(graph, outgoing, longest_path))
    return findings


def validate(
    graph: FlowGraph,
    *,
    continuation: ContinuationConfig | None = None,
    config: ValidationConfig | None = None,
    validated_at: datetime | None = None,
) -> ValidationReport:
    """Validate a flow graph and return a complete report.

    Never raises: an unexpected failure inside a check is logged and reported
    as a single ``validation-error`` finding, so the flow is flagged invalid
    instead of crashing the caller.

    Args:
        graph: Graph to inspect. Callers editing concurrently pass a snapshot.
        continuation: Continuation config persisted with the flow, if any.
        config: Validation profile (defaults to the ``default`` preset).
        validated_at: Timestamp for the report summary (defaults to now, UTC).
    """
    stamp = validated_at or datetime.now(UTC)
    try:
        findings = run_checks(graph, continuation=continuation, config=config)
    except Exception as e:
        log.exception("validation_failed", error=str(e), graph=repr(graph))
        findings = [
            Finding(
                id=VALIDATION_ERROR_ID,
                severity="error",
                message="Validation failed unexpectedly",
                description=f"{type(e).__name__}: {e}",
                suggestion="Report this flow to the maintainers.",
                category="structure",
            )
        ]

    report = ValidationReport.from_findings(findings, validated_at=stamp)
    log.debug(
        "validation_complete",
        errors=len(report.errors),
        warnings=len(report.warnings),
        info=len(report.info),
    )
    return report
