"""Tag-class constraint evaluation.

For every tag class touched by a pathway, the class's rule set is applied
to the pathway tags belonging to that class. Each check runs independently
and every applicable violation is reported; nothing short-circuits.

Checks:
- mutual_exclusion: two or more pathway tags from the exclusion set
- within_class_exclusion: more than one tag of an exclusive class
- class_conflict: tags from two classes that exclude each other
- required_context: context keys the class needs but the pathway lacks
- max_instances / min_instances / exact_instances: applied-count bounds
- required_tags: tags that must accompany any tag of the class
- required_classes: classes that must also be represented
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pensieve.observability.logging import get_logger
from pensieve.validation.types import Violation

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from pensieve.models.entities import Tag, TagClass
    from pensieve.models.pathway import RuntimeContext

log = get_logger(__name__)

PHASE = "constraints"


def group_tags_by_class(applied_tags: Sequence[Tag]) -> dict[str, list[str]]:
    """Group applied tag IDs by tag class, preserving pathway order."""
    grouped: dict[str, list[str]] = {}
    for tag in applied_tags:
        if tag.tag_class_id:
            grouped.setdefault(tag.tag_class_id, []).append(tag.id)
    return grouped


def check_mutual_exclusion(
    tag_class: TagClass,
    class_tag_ids: Sequence[str],
    pathway_tag_ids: Sequence[str],
) -> Violation | None:
    exclusion = tag_class.rules.mutual_exclusion
    if not exclusion or not any(tid in exclusion for tid in class_tag_ids):
        return None
    conflicting = [tid for tid in pathway_tag_ids if tid in exclusion]
    if len(conflicting) < 2:
        return None
    return Violation(
        rule="mutual_exclusion",
        message=(
            f"Mutually exclusive tags selected from {tag_class.label}: {', '.join(conflicting)}"
        ),
        severity=tag_class.rules.severity,
        entity_ids=conflicting,
        details={"tag_class_id": tag_class.id, "conflicting_tags": conflicting},
        phase=PHASE,
    )


def check_within_class_exclusion(
    tag_class: TagClass,
    class_tag_ids: Sequence[str],
) -> Violation | None:
    if not tag_class.rules.within_class_exclusive or len(class_tag_ids) < 2:
        return None
    return Violation(
        rule="within_class_exclusion",
        message=(
            f"Only one {tag_class.label} tag may be selected, got: {', '.join(class_tag_ids)}"
        ),
        severity=tag_class.rules.severity,
        entity_ids=list(class_tag_ids),
        details={"tag_class_id": tag_class.id, "conflicting_tags": list(class_tag_ids)},
        phase=PHASE,
    )


def check_conflicting_classes(
    tag_class: TagClass,
    grouped: Mapping[str, Sequence[str]],
    tag_classes: Mapping[str, TagClass],
) -> list[Violation]:
    """Report every conflicting class that also has tags in the pathway."""
    class_tag_ids = grouped.get(tag_class.id, [])
    violations: list[Violation] = []
    for other_id in sorted(tag_class.rules.conflicting_classes - {tag_class.id}):
        other_tag_ids = grouped.get(other_id)
        if not class_tag_ids or not other_tag_ids:
            continue
        other = tag_classes.get(other_id)
        other_label = other.label if other is not None else other_id
        violations.append(
            Violation(
                rule="class_conflict",
                message=f"Tags from conflicting classes: {tag_class.label} and {other_label}",
                severity=tag_class.rules.severity,
                entity_ids=[*class_tag_ids, *other_tag_ids],
                details={"tag_class_id": tag_class.id, "conflicting_class_id": other_id},
                phase=PHASE,
            )
        )
    return violations


def check_required_classes(
    tag_class: TagClass,
    class_tag_ids: Sequence[str],
    grouped: Mapping[str, Sequence[str]],
    tag_classes: Mapping[str, TagClass],
) -> Violation | None:
    missing = sorted(cid for cid in tag_class.rules.required_classes if not grouped.get(cid))
    if not missing:
        return None
    labels = [tag_classes[cid].label if cid in tag_classes else cid for cid in missing]
    return Violation(
        rule="required_classes",
        message=f"{tag_class.label} tags require tags from: {', '.join(labels)}",
        severity=tag_class.rules.severity,
        entity_ids=list(class_tag_ids),
        details={"tag_class_id": tag_class.id, "missing_classes": missing},
        phase=PHASE,
    )


def check_required_context(
    tag_class: TagClass,
    class_tag_ids: Sequence[str],
    context: RuntimeContext,
) -> Violation | None:
    missing = sorted(key for key in tag_class.rules.required_context if not context.has_key(key))
    if not missing:
        return None
    return Violation(
        rule="required_context",
        message=f"{tag_class.label} tags require context: {', '.join(missing)}",
        severity=tag_class.rules.severity,
        entity_ids=list(class_tag_ids),
        details={"tag_class_id": tag_class.id, "missing_keys": missing},
        phase=PHASE,
    )


def check_instance_limits(tag_class: TagClass, class_tag_ids: Sequence[str]) -> list[Violation]:
    rules = tag_class.rules
    count = len(class_tag_ids)
    violations: list[Violation] = []

    if rules.max_instances is not None and count > rules.max_instances:
        violations.append(
            Violation(
                rule="max_instances",
                message=(
                    f"Too many {tag_class.label} tags selected ({count}). "
                    f"Maximum allowed: {rules.max_instances}"
                ),
                severity=rules.severity,
                entity_ids=list(class_tag_ids),
                details={
                    "tag_class_id": tag_class.id,
                    "current_count": count,
                    "max_allowed": rules.max_instances,
                },
                phase=PHASE,
            )
        )

    # Lower bounds apply only once the class is in use
    if count > 0 and rules.min_instances is not None and count < rules.min_instances:
        violations.append(
            Violation(
                rule="min_instances",
                message=(
                    f"Too few {tag_class.label} tags selected ({count}). "
                    f"At least {rules.min_instances} required"
                ),
                severity=rules.severity,
                entity_ids=list(class_tag_ids),
                details={
                    "tag_class_id": tag_class.id,
                    "current_count": count,
                    "min_required": rules.min_instances,
                },
                phase=PHASE,
            )
        )

    if count > 0 and rules.exact_instances is not None and count != rules.exact_instances:
        violations.append(
            Violation(
                rule="exact_instances",
                message=(
                    f"Incorrect number of {tag_class.label} tags selected ({count}). "
                    f"Exactly {rules.exact_instances} required"
                ),
                severity=rules.severity,
                entity_ids=list(class_tag_ids),
                details={
                    "tag_class_id": tag_class.id,
                    "current_count": count,
                    "exact_required": rules.exact_instances,
                },
                phase=PHASE,
            )
        )
    return violations


def check_required_tags(
    tag_class: TagClass,
    class_tag_ids: Sequence[str],
    pathway_tag_ids: Sequence[str],
) -> Violation | None:
    present = set(pathway_tag_ids)
    missing = sorted(tid for tid in tag_class.rules.required_tags if tid not in present)
    if not missing:
        return None
    return Violation(
        rule="required_tags",
        message=f"{tag_class.label} tags require: {', '.join(missing)}",
        severity=tag_class.rules.severity,
        entity_ids=list(class_tag_ids),
        details={"tag_class_id": tag_class.id, "missing_tags": missing},
        phase=PHASE,
    )


def evaluate_tag_constraints(
    applied_tags: Sequence[Tag],
    tag_classes: Mapping[str, TagClass],
    context: RuntimeContext,
) -> list[Violation]:
    """Evaluate every touched tag class's rules against the pathway tags.

    Tags whose class is unknown to the catalog are skipped; the structural
    phase is responsible for rejecting dangling references.

    Args:
        applied_tags: Resolved pathway tags, in pathway order.
        tag_classes: Tag class ID -> TagClass for the fandom.
        context: Runtime context for required-context rules.

    Returns:
        All violations, grouped by class in order of first appearance.
    """
    pathway_tag_ids = [tag.id for tag in applied_tags]
    violations: list[Violation] = []
    classes_checked = 0

    grouped = group_tags_by_class(applied_tags)
    class_pairs: set[frozenset[str]] = set()

    for class_id, class_tag_ids in grouped.items():
        tag_class = tag_classes.get(class_id)
        if tag_class is None:
            continue
        classes_checked += 1

        exclusion = check_mutual_exclusion(tag_class, class_tag_ids, pathway_tag_ids)
        if exclusion is not None:
            violations.append(exclusion)
        within = check_within_class_exclusion(tag_class, class_tag_ids)
        if within is not None:
            violations.append(within)
        # A pair of classes naming each other is reported once
        for conflict in check_conflicting_classes(tag_class, grouped, tag_classes):
            pair = frozenset((class_id, conflict.details["conflicting_class_id"]))
            if pair not in class_pairs:
                class_pairs.add(pair)
                violations.append(conflict)
        context_violation = check_required_context(tag_class, class_tag_ids, context)
        if context_violation is not None:
            violations.append(context_violation)
        violations.extend(check_instance_limits(tag_class, class_tag_ids))
        required = check_required_tags(tag_class, class_tag_ids, pathway_tag_ids)
        if required is not None:
            violations.append(required)
        required_classes = check_required_classes(tag_class, class_tag_ids, grouped, tag_classes)
        if required_classes is not None:
            violations.append(required_classes)

    log.debug("tag_constraints_evaluated", classes=classes_checked, violations=len(violations))
    return violations
