"""Error types raised inside the validation engine.

Expected rule failures are never raised; they are returned as findings.
These exceptions cover malformed input (StructuralError), cyclic input to
ordering algorithms (CycleError), and genuine internal inconsistencies
(EngineFault). The orchestrator converts all of them into reported
structural findings so nothing escapes its boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class PensieveError(Exception):
    """Base class for engine errors."""


@dataclass
class StructuralError(PensieveError):
    """Raised when input is malformed and cannot be evaluated.

    Attributes:
        message: Human-readable description of the problem.
        field_path: Dotted path to the offending input, if known.
        entity_id: ID of the entity carrying the bad data, if known.
        details: Extra structured context for the report.
    """

    message: str
    field_path: str = ""
    entity_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.field_path:
            msg = f"{self.field_path}: {msg}"
        if self.entity_id:
            msg += f" (entity '{self.entity_id}')"
        return msg


@dataclass
class CycleError(PensieveError):
    """Raised when an ordering is requested for a graph that contains a cycle.

    Attributes:
        remaining: Nodes that could not be ordered.
    """

    remaining: list[str]

    def __post_init__(self) -> None:
        preview = ", ".join(self.remaining[:5])
        if len(self.remaining) > 5:
            preview += f", ... and {len(self.remaining) - 5} more"
        super().__init__(f"Graph contains a cycle involving: {preview}")


@dataclass
class EngineFault(PensieveError):
    """Raised when the engine detects an internal inconsistency.

    Unlike StructuralError, this indicates a data-integrity bug in a
    supplied snapshot or in the engine itself, e.g. a traversal reaching a
    node that the graph builder should have dropped.

    Attributes:
        message: Description of the inconsistency.
        phase: Validation phase during which it was detected.
    """

    message: str
    phase: str = ""

    def __post_init__(self) -> None:
        prefix = f"[{self.phase}] " if self.phase else ""
        super().__init__(f"{prefix}{self.message}")
