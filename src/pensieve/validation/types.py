"""Finding and report types shared by every validation phase.

Phases never raise for expected rule failures. They return lists of
findings, and the orchestrator aggregates them into a ValidationReport.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from pensieve.observability.timing import PhaseTiming  # noqa: TC001 - dataclass field type

ViolationSeverity = Literal["critical", "major", "minor"]
ConflictSeverity = Literal["error", "warning", "info"]
Complexity = Literal["simple", "moderate", "complex"]

STRUCTURAL_RULE = "structural_error"


@dataclass
class Violation:
    """A named catalog rule that fired.

    Attributes:
        rule: Rule identifier (``mutual_exclusion``, ``max_instances``, ...).
        message: Human-readable description.
        severity: Only ``critical`` blocks validity.
        entity_ids: IDs of the tags/blocks/conditions involved.
        details: Rule-specific structured data (counts, bounds, missing keys).
        phase: Phase that produced the finding.
    """

    rule: str
    message: str
    severity: ViolationSeverity = "critical"
    entity_ids: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)
    phase: str = ""

    @property
    def is_blocking(self) -> bool:
        return self.severity == "critical"


@dataclass
class ResolutionOption:
    """One way to resolve a conflict."""

    action: str
    target_id: str
    description: str = ""


@dataclass
class ConflictFinding:
    """A heuristic-originated conflict.

    Attributes:
        type: Conflict type (``tag_mutual_exclusion``, ``timeline_overlap``, ...).
        message: Human-readable description.
        severity: Only ``error`` blocks validity.
        involved_ids: IDs of the elements in conflict.
        heuristic: Name of the heuristic that produced it (provenance).
        details: Heuristic-specific structured data.
        resolutions: Ways the author can resolve the conflict.
    """

    type: str
    message: str
    severity: ConflictSeverity = "error"
    involved_ids: list[str] = field(default_factory=list)
    heuristic: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    resolutions: list[ResolutionOption] = field(default_factory=list)

    @property
    def is_blocking(self) -> bool:
        return self.severity == "error"


@dataclass
class ValidationWarning:
    """Advisory finding that never affects validity."""

    code: str
    message: str
    entity_ids: list[str] = field(default_factory=list)
    phase: str = ""


@dataclass
class Suggestion:
    """Advisory next step for the pathway author."""

    code: str
    message: str
    action: str = ""
    target_ids: list[str] = field(default_factory=list)
    priority: Literal["low", "medium", "high"] = "low"


@dataclass
class ValidationReport:
    """Aggregated result of one pathway validation.

    A report is valid when no critical violation and no error conflict was
    found and every phase ran to completion. Warnings and suggestions never
    affect validity.
    """

    fandom_id: str = ""
    violations: list[Violation] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)
    suggestions: list[Suggestion] = field(default_factory=list)
    conflicts: list[ConflictFinding] = field(default_factory=list)
    timings: list[PhaseTiming] = field(default_factory=list)
    complexity: Complexity = "simple"
    score: int = 100
    incomplete: bool = False

    @property
    def is_valid(self) -> bool:
        if self.incomplete:
            return False
        return not any(v.is_blocking for v in self.violations) and not any(
            c.is_blocking for c in self.conflicts
        )

    @property
    def has_structural_errors(self) -> bool:
        return any(v.rule == STRUCTURAL_RULE for v in self.violations)

    @property
    def total_ms(self) -> float:
        return sum(t.duration_ms for t in self.timings)

    def rules_fired(self) -> list[str]:
        return [v.rule for v in self.violations]

    @property
    def summary(self) -> str:
        """Human-readable summary of the findings."""
        blocking = sum(v.is_blocking for v in self.violations) + sum(
            c.is_blocking for c in self.conflicts
        )
        parts: list[str] = ["valid" if self.is_valid else "invalid"]
        if blocking:
            parts.append(f"{blocking} blocking")
        if self.violations:
            parts.append(f"{len(self.violations)} violations")
        if self.conflicts:
            parts.append(f"{len(self.conflicts)} conflicts")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warnings")
        if self.incomplete:
            parts.append("incomplete")
        return ", ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Plain structure for JSON transport."""
        return {
            "fandom_id": self.fandom_id,
            "is_valid": self.is_valid,
            "incomplete": self.incomplete,
            "complexity": self.complexity,
            "score": self.score,
            "violations": [asdict(v) for v in self.violations],
            "conflicts": [asdict(c) for c in self.conflicts],
            "warnings": [asdict(w) for w in self.warnings],
            "suggestions": [asdict(s) for s in self.suggestions],
            "timings": [t.to_dict() for t in self.timings],
        }
