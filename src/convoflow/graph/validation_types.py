"""Validation report types produced by the flow validator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

Severity = Literal["error", "warning", "info"]

FindingCategory = Literal[
    "structure",
    "navigation",
    "configuration",
    "content",
    "usability",
    "performance",
    "stats",
]


@dataclass(frozen=True)
class Finding:
    """One diagnostic entry.

    Attributes:
        id: Stable identifier derived from the check and the ids involved,
            e.g. ``unreachable-menu-1``. Identical graphs yield identical ids.
        severity: "error" blocks activation; "warning" and "info" do not.
        message: Short human-readable summary.
        description: Longer explanation, if any.
        suggestion: How to fix it, if any.
        vertex_id: Vertex to highlight in the editor, if any.
        category: Grouping used by the editor's issue list.
    """

    id: str
    severity: Severity
    message: str
    description: str | None = None
    suggestion: str | None = None
    vertex_id: str | None = None
    category: FindingCategory = "structure"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "severity": self.severity,
            "message": self.message,
            "category": self.category,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        if self.vertex_id is not None:
            data["vertexId"] = self.vertex_id
        return data


@dataclass(frozen=True)
class ReportSummary:
    """Counts derived from a report.

    ``last_validated_at`` is excluded from equality so that two passes over
    the same graph compare equal.
    """

    total_issues: int
    critical_issues: int
    can_save: bool
    last_validated_at: datetime | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalIssues": self.total_issues,
            "criticalIssues": self.critical_issues,
            "canSave": self.can_save,
            "lastValidatedAt": (
                self.last_validated_at.isoformat() if self.last_validated_at else None
            ),
        }


@dataclass
class ValidationReport:
    """Aggregated findings of one validation pass.

    Attributes:
        errors: Findings that block activation, in check order.
        warnings: Findings that flag quality risks.
        info: Advisory statistics.
        validated_at: When the pass ran. Not part of equality.
    """

    errors: list[Finding] = field(default_factory=list)
    warnings: list[Finding] = field(default_factory=list)
    info: list[Finding] = field(default_factory=list)
    validated_at: datetime | None = field(default=None, compare=False)

    @classmethod
    def from_findings(
        cls, findings: list[Finding], validated_at: datetime | None = None
    ) -> ValidationReport:
        """Split findings by severity, keeping their relative order."""
        return cls(
            errors=[f for f in findings if f.severity == "error"],
            warnings=[f for f in findings if f.severity == "warning"],
            info=[f for f in findings if f.severity == "info"],
            validated_at=validated_at,
        )

    @property
    def is_valid(self) -> bool:
        """True iff there are no errors."""
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def summary(self) -> ReportSummary:
        return ReportSummary(
            total_issues=len(self.errors) + len(self.warnings),
            critical_issues=len(self.errors),
            can_save=not self.errors,
            last_validated_at=self.validated_at,
        )

    @property
    def findings(self) -> list[Finding]:
        """All findings: errors, then warnings, then info."""
        return [*self.errors, *self.warnings, *self.info]

    def find(self, finding_id: str) -> Finding | None:
        return next((f for f in self.findings if f.id == finding_id), None)

    def for_vertex(self, vertex_id: str) -> list[Finding]:
        """Findings that point at *vertex_id*, for jump-to-vertex affordances."""
        return [f for f in self.findings if f.vertex_id == vertex_id]

    def describe(self) -> str:
        """One-line human-readable summary."""
        parts: list[str] = []
        if self.errors:
            parts.append(f"{len(self.errors)} errors")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warnings")
        if self.info:
            parts.append(f"{len(self.info)} info")
        return ", ".join(parts) if parts else "no findings"

    def to_dict(self) -> dict[str, Any]:
        """JSON shape consumed by the editor."""
        return {
            "isValid": self.is_valid,
            "errors": [f.to_dict() for f in self.errors],
            "warnings": [f.to_dict() for f in self.warnings],
            "info": [f.to_dict() for f in self.info],
            "summary": self.summary.to_dict(),
        }
