"""Graph package - in-memory flow graph and its validator.

The graph holds a flow's vertices and edges with referential integrity on
every mutation; the validator inspects a graph (or a snapshot of one) and
produces a structured report without mutating it.
"""

from convoflow.graph.errors import (
    DuplicateIdError,
    EdgeEndpointError,
    EdgeNotFoundError,
    FlowReferenceError,
    GraphIntegrityError,
    GuardNotFoundError,
    VertexNotFoundError,
)
from convoflow.graph.flow_validation import VALIDATION_ERROR_ID, run_checks, validate
from convoflow.graph.graph import FlowGraph, read_document
from convoflow.graph.validation_types import Finding, ReportSummary, ValidationReport

__all__ = [
    "VALIDATION_ERROR_ID",
    "DuplicateIdError",
    "EdgeEndpointError",
    "EdgeNotFoundError",
    "Finding",
    "FlowGraph",
    "FlowReferenceError",
    "GraphIntegrityError",
    "GuardNotFoundError",
    "ReportSummary",
    "ValidationReport",
    "VertexNotFoundError",
    "read_document",
    "run_checks",
    "validate",
]
