"""Engine configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

from pensieve.models.expressions import DEFAULT_MAX_EXPRESSION_DEPTH

# Default configuration values
DEFAULT_SIMPLE_MAX = 3
DEFAULT_MODERATE_MAX = 8
DEFAULT_MAX_TRAVERSAL_STEPS = 10_000
DEFAULT_MAX_PATHWAY_ITEMS = 50
DEFAULT_LATENCY_BUDGET_MS = 200.0
DEFAULT_UNMET_CONDITION_SEVERITY = "major"

_SEVERITIES = ("critical", "major", "minor")


@dataclass
class ComplexityThresholds:
    """Element-count thresholds for pathway complexity classes.

    A pathway with at most ``simple_max`` elements is simple, at most
    ``moderate_max`` is moderate, anything larger is complex.
    """

    simple_max: int = DEFAULT_SIMPLE_MAX
    moderate_max: int = DEFAULT_MODERATE_MAX
    count_conditions: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComplexityThresholds:
        return cls(
            simple_max=int(data.get("simple_max", DEFAULT_SIMPLE_MAX)),
            moderate_max=int(data.get("moderate_max", DEFAULT_MODERATE_MAX)),
            count_conditions=bool(data.get("count_conditions", False)),
        )

    def classify(self, element_count: int) -> str:
        if element_count <= self.simple_max:
            return "simple"
        if element_count <= self.moderate_max:
            return "moderate"
        return "complex"


@dataclass
class EngineConfig:
    """Tunable limits and policies for the validation engine.

    Resolution order for ``timeout_ms`` and ``max_expression_depth``:
    1. Environment variable (``PENSIEVE_TIMEOUT_MS``, ``PENSIEVE_MAX_EXPRESSION_DEPTH``)
    2. Config file
    3. Defaults

    Attributes:
        complexity: Complexity classification thresholds.
        max_expression_depth: Deepest custom condition tree accepted.
        max_traversal_steps: Node-visit bound for expression evaluation.
        max_pathway_items: Above this many elements a performance warning is added.
        timeout_ms: Caller timeout for the async pipeline; None disables it.
        latency_budget_ms: A validation slower than this logs a warning.
        unmet_condition_severity: Severity of ``condition_unmet`` violations.
    """

    complexity: ComplexityThresholds = field(default_factory=ComplexityThresholds)
    max_expression_depth: int = DEFAULT_MAX_EXPRESSION_DEPTH
    max_traversal_steps: int = DEFAULT_MAX_TRAVERSAL_STEPS
    max_pathway_items: int = DEFAULT_MAX_PATHWAY_ITEMS
    timeout_ms: float | None = None
    latency_budget_ms: float = DEFAULT_LATENCY_BUDGET_MS
    unmet_condition_severity: str = DEFAULT_UNMET_CONDITION_SEVERITY

    def __post_init__(self) -> None:
        if self.unmet_condition_severity not in _SEVERITIES:
            msg = (
                f"unmet_condition_severity must be one of {', '.join(_SEVERITIES)}, "
                f"got {self.unmet_condition_severity!r}"
            )
            raise ValueError(msg)
        if self.max_expression_depth < 1:
            msg = f"max_expression_depth must be >= 1, got {self.max_expression_depth}"
            raise ValueError(msg)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary containing config fields.

        Returns:
            EngineConfig instance.
        """
        timeout = data.get("timeout_ms")
        return cls(
            complexity=ComplexityThresholds.from_dict(data.get("complexity", {})),
            max_expression_depth=int(
                data.get("max_expression_depth", DEFAULT_MAX_EXPRESSION_DEPTH)
            ),
            max_traversal_steps=int(data.get("max_traversal_steps", DEFAULT_MAX_TRAVERSAL_STEPS)),
            max_pathway_items=int(data.get("max_pathway_items", DEFAULT_MAX_PATHWAY_ITEMS)),
            timeout_ms=float(timeout) if timeout is not None else None,
            latency_budget_ms=float(data.get("latency_budget_ms", DEFAULT_LATENCY_BUDGET_MS)),
            unmet_condition_severity=str(
                data.get("unmet_condition_severity", DEFAULT_UNMET_CONDITION_SEVERITY)
            ),
        )

    def with_env_overrides(self) -> EngineConfig:
        """Return a copy with environment variable overrides applied."""
        data = {
            "complexity": {
                "simple_max": self.complexity.simple_max,
                "moderate_max": self.complexity.moderate_max,
                "count_conditions": self.complexity.count_conditions,
            },
            "max_expression_depth": self.max_expression_depth,
            "max_traversal_steps": self.max_traversal_steps,
            "max_pathway_items": self.max_pathway_items,
            "timeout_ms": self.timeout_ms,
            "latency_budget_ms": self.latency_budget_ms,
            "unmet_condition_severity": self.unmet_condition_severity,
        }
        if timeout := os.getenv("PENSIEVE_TIMEOUT_MS"):
            data["timeout_ms"] = timeout
        if depth := os.getenv("PENSIEVE_MAX_EXPRESSION_DEPTH"):
            data["max_expression_depth"] = depth
        return EngineConfig.from_dict(data)


class EngineConfigError(Exception):
    """Raised when engine configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load engine config at {path}: {reason}")


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. When None, defaults are used.
            Environment overrides are applied in both cases.

    Returns:
        EngineConfig instance.

    Raises:
        EngineConfigError: If the file cannot be read or holds invalid values.
    """
    if config_path is None:
        try:
            return EngineConfig().with_env_overrides()
        except ValueError as e:
            raise EngineConfigError(Path("<environment>"), str(e)) from e

    if not config_path.exists():
        raise EngineConfigError(config_path, "File not found")

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            raise EngineConfigError(config_path, "Empty file")
        if not isinstance(data, dict):
            raise EngineConfigError(config_path, "Top level must be a mapping")

        return EngineConfig.from_dict(dict(data)).with_env_overrides()
    except Exception as e:
        if isinstance(e, EngineConfigError):
            raise
        raise EngineConfigError(config_path, str(e)) from e
