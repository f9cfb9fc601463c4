"""Per-phase timing sinks.

The orchestrator measures each validation phase and hands the measurement
to an injected :class:`TimingSink`. Sinks are owned by the caller, so
concurrent validations never share hidden global state unless the caller
passes them the same sink.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

from pensieve.observability.logging import get_logger

log = get_logger(__name__)

PhaseStatus = Literal["completed", "skipped", "failed", "timed_out"]


@dataclass(frozen=True)
class PhaseTiming:
    """Timing of a single validation phase.

    Attributes:
        phase: Phase name (e.g. ``"constraints"``).
        duration_ms: Wall-clock duration in milliseconds.
        status: How the phase ended.
    """

    phase: str
    duration_ms: float
    status: PhaseStatus = "completed"

    def to_dict(self) -> dict[str, object]:
        return {
            "phase": self.phase,
            "duration_ms": round(self.duration_ms, 3),
            "status": self.status,
        }


@runtime_checkable
class TimingSink(Protocol):
    """Receiver for phase timings emitted by the orchestrator."""

    def record(self, timing: PhaseTiming) -> None:
        """Record one phase timing."""
        ...


class NullTimingSink:
    """Sink that discards all timings."""

    def record(self, timing: PhaseTiming) -> None:  # noqa: ARG002
        return None


class RecordingTimingSink:
    """Sink that keeps timings in memory, safe for use from worker threads."""

    def __init__(self) -> None:
        self._timings: list[PhaseTiming] = []
        self._lock = threading.Lock()

    def record(self, timing: PhaseTiming) -> None:
        with self._lock:
            self._timings.append(timing)

    @property
    def timings(self) -> list[PhaseTiming]:
        with self._lock:
            return list(self._timings)

    def total_ms(self) -> float:
        """Sum of all recorded phase durations."""
        return sum(t.duration_ms for t in self.timings)


class LoggingTimingSink:
    """Sink that emits each timing as a structured log event."""

    def __init__(self, slow_phase_ms: float = 50.0) -> None:
        self.slow_phase_ms = slow_phase_ms

    def record(self, timing: PhaseTiming) -> None:
        if timing.duration_ms > self.slow_phase_ms:
            log.warning(
                "validation_phase_slow",
                phase=timing.phase,
                duration_ms=round(timing.duration_ms, 3),
                status=timing.status,
            )
        else:
            log.debug(
                "validation_phase_timed",
                phase=timing.phase,
                duration_ms=round(timing.duration_ms, 3),
                status=timing.status,
            )

