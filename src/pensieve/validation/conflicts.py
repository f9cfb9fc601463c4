"""Domain conflict heuristics over a resolved pathway.

Each heuristic is an independent, side-effect-free function
``(ResolvedPathway) -> list[ConflictFinding]``. Results from all
heuristics are concatenated without deduplication: two heuristics may flag
overlapping facts under different conflict types, and each finding keeps
the name of the heuristic that produced it.

The built-in set is read-only. Callers that need a different set pass
their own mapping to :func:`analyze_conflicts` or to the validator.
"""

from __future__ import annotations

from collections.abc import Callable
from itertools import combinations
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pensieve.models.entities import RATING_ORDER, rating_rank
from pensieve.observability.logging import get_logger
from pensieve.validation.types import ConflictFinding, ResolutionOption

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pensieve.models.entities import PlotBlock
    from pensieve.models.pathway import ResolvedPathway

log = get_logger(__name__)

ConflictHeuristic = Callable[["ResolvedPathway"], list[ConflictFinding]]

DEFAULT_DURATION = 1.0


def shipping_exclusivity(pathway: ResolvedPathway) -> list[ConflictFinding]:
    """Flag relationship tags that share a character when either pairing is exclusive."""
    findings: list[ConflictFinding] = []
    for first, second in combinations(pathway.relationship_tags, 2):
        shared = sorted(set(first.characters) & set(second.characters))
        if not shared or not (first.exclusive or second.exclusive):
            continue
        findings.append(
            ConflictFinding(
                type="tag_mutual_exclusion",
                message=(
                    f"Relationships '{first.name or first.id}' and '{second.name or second.id}' "
                    f"both involve {', '.join(shared)} in an exclusive pairing"
                ),
                severity="error",
                involved_ids=[first.id, second.id],
                heuristic="shipping_exclusivity",
                details={"shared_characters": shared},
            )
        )
    return findings


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _interval(block: PlotBlock) -> tuple[float, float] | None:
    start = _as_float(block.metadata.get("timeline_position"))
    if start is None:
        return None
    duration = _as_float(block.metadata.get("duration"))
    if duration is None or duration < 0:
        duration = DEFAULT_DURATION
    return start, start + duration


def timeline_overlap(pathway: ResolvedPathway) -> list[ConflictFinding]:
    """Flag plot blocks whose timeline intervals intersect.

    A block occupies ``[timeline_position, timeline_position + duration)``.
    Overlap may be intentional, so findings are always warnings.
    """
    placed = [(block, span) for block in pathway.plot_blocks if (span := _interval(block))]
    findings: list[ConflictFinding] = []
    for (first, (a_start, a_end)), (second, (b_start, b_end)) in combinations(placed, 2):
        overlap = min(a_end, b_end) - max(a_start, b_start)
        if overlap <= 0:
            continue
        findings.append(
            ConflictFinding(
                type="timeline_overlap",
                message=f"Plot blocks '{first.label}' and '{second.label}' overlap on the timeline",
                severity="warning",
                involved_ids=[first.id, second.id],
                heuristic="timeline_overlap",
                details={"overlap": overlap},
            )
        )
    return findings


def rating_mismatch(pathway: ResolvedPathway) -> list[ConflictFinding]:
    """Flag plot blocks whose minimum rating exceeds the pathway's rating.

    When the pathway declares no rating, rated blocks are reported as info.
    """
    rated = [block for block in pathway.plot_blocks if rating_rank(block.min_rating) is not None]
    if not rated:
        return []

    pathway_rank = rating_rank(pathway.rating)
    if pathway_rank is None:
        return [
            ConflictFinding(
                type="rating_mismatch",
                message=(
                    "Pathway declares no recognised rating; "
                    f"{len(rated)} plot block(s) carry a minimum rating"
                ),
                severity="info",
                involved_ids=[block.id for block in rated],
                heuristic="rating_mismatch",
                details={"rating": pathway.rating, "known_ratings": list(RATING_ORDER)},
            )
        ]

    findings: list[ConflictFinding] = []
    for block in rated:
        block_rank = rating_rank(block.min_rating)
        if block_rank is not None and block_rank > pathway_rank:
            findings.append(
                ConflictFinding(
                    type="rating_mismatch",
                    message=(
                        f"Plot block '{block.label}' requires a '{block.min_rating}' rating, "
                        f"pathway is rated '{pathway.rating}'"
                    ),
                    severity="error",
                    involved_ids=[block.id],
                    heuristic="rating_mismatch",
                    details={"required": block.min_rating, "rating": pathway.rating},
                )
            )
    return findings


def _selected_labels(pathway: ResolvedPathway) -> dict[str, str]:
    labels = {tag.id: tag.label for tag in pathway.tags}
    labels.update((block.id, block.label) for block in pathway.plot_blocks)
    return labels


def direct_exclusion(pathway: ResolvedPathway) -> list[ConflictFinding]:
    """Flag selected plot blocks that declare a conflict with another selected element.

    A pair is reported once even when both sides list each other.
    """
    selected = _selected_labels(pathway)
    block_ids = {block.id for block in pathway.plot_blocks}
    reported: set[frozenset[str]] = set()
    findings: list[ConflictFinding] = []
    for block in pathway.plot_blocks:
        for other_id in sorted(block.conflicts_with):
            pair = frozenset((block.id, other_id))
            if other_id == block.id or other_id not in selected or pair in reported:
                continue
            reported.add(pair)
            other_label = selected[other_id]
            findings.append(
                ConflictFinding(
                    type="direct_exclusion",
                    message=f"'{block.label}' conflicts with '{other_label}'",
                    severity="error",
                    involved_ids=[block.id, other_id],
                    heuristic="direct_exclusion",
                    details={
                        "element_type": "plot_block" if other_id in block_ids else "tag"
                    },
                    resolutions=[
                        ResolutionOption("remove_element", block.id, f"Remove {block.label}"),
                        ResolutionOption("remove_element", other_id, f"Remove {other_label}"),
                    ],
                )
            )
    return findings


def missing_requirement(pathway: ResolvedPathway) -> list[ConflictFinding]:
    """Flag selected plot blocks whose required elements are not selected.

    Only requirements naming a known catalog entity are reported; dangling
    IDs are left to the structural checks.
    """
    selected = _selected_labels(pathway)
    findings: list[ConflictFinding] = []
    for block in pathway.plot_blocks:
        for required_id in sorted(block.requires):
            required_label = pathway.catalog_labels.get(required_id)
            if required_id in selected or required_label is None:
                continue
            findings.append(
                ConflictFinding(
                    type="missing_requirement",
                    message=f"'{block.label}' requires '{required_label}', which is not selected",
                    severity="error",
                    involved_ids=[block.id, required_id],
                    heuristic="missing_requirement",
                    resolutions=[
                        ResolutionOption(
                            "add_requirement", required_id, f"Add required {required_label}"
                        ),
                        ResolutionOption("remove_element", block.id, f"Remove {block.label}"),
                    ],
                )
            )
    return findings


DEFAULT_HEURISTICS: Mapping[str, ConflictHeuristic] = MappingProxyType(
    {
        "shipping_exclusivity": shipping_exclusivity,
        "timeline_overlap": timeline_overlap,
        "rating_mismatch": rating_mismatch,
        "direct_exclusion": direct_exclusion,
        "missing_requirement": missing_requirement,
    }
)


def default_heuristics() -> dict[str, ConflictHeuristic]:
    """Return a caller-owned copy of the built-in heuristics, in run order."""
    return dict(DEFAULT_HEURISTICS)


def analyze_conflicts(
    pathway: ResolvedPathway,
    heuristics: Mapping[str, ConflictHeuristic] | None = None,
) -> list[ConflictFinding]:
    """Run every heuristic and concatenate their findings in mapping order.

    Args:
        pathway: The resolved pathway.
        heuristics: Heuristics to run. Defaults to DEFAULT_HEURISTICS.
    """
    active = DEFAULT_HEURISTICS if heuristics is None else heuristics
    findings: list[ConflictFinding] = []
    for name, heuristic in active.items():
        found = heuristic(pathway)
        if found:
            log.debug("conflict_heuristic_fired", heuristic=name, findings=len(found))
        findings.extend(found)
    return findings
