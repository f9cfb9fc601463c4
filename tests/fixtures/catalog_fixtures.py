"""Factory functions for fandom catalog test data.

Entity ID conventions:
- Tags: short upper-case letters ("A", "B", ...) or "rel_*" for relationships
- Tag classes: "tc_*"
- Plot blocks: "P1", "P2", ... or descriptive snake_case IDs
- Conditions: "c_*"

Every factory defaults ``fandom_id`` to FANDOM so tests only spell it out
when checking cross-fandom behaviour.
"""

from __future__ import annotations

import json
from typing import Any

from pensieve.models.entities import PlotBlock, PlotBlockCondition, Tag, TagClass, TagClassRules
from pensieve.provider import InMemoryDataProvider

FANDOM = "hp"


def make_tag(tag_id: str, tag_class_id: str | None = None, **fields: Any) -> Tag:
    """Create a tag in FANDOM."""
    fields.setdefault("fandom_id", FANDOM)
    fields.setdefault("name", tag_id)
    return Tag(id=tag_id, tag_class_id=tag_class_id, **fields)


def make_relationship(
    tag_id: str,
    characters: list[str],
    *,
    exclusive: bool = False,
) -> Tag:
    """Create a relationship tag pairing ``characters``."""
    return make_tag(tag_id, category="relationship", characters=characters, exclusive=exclusive)


def make_tag_class(class_id: str, **rules: Any) -> TagClass:
    """Create a tag class in FANDOM whose rules are built from keyword args."""
    return TagClass(id=class_id, fandom_id=FANDOM, name=class_id, rules=TagClassRules(**rules))


def make_block(block_id: str, parent_id: str | None = None, **fields: Any) -> PlotBlock:
    """Create a plot block in FANDOM."""
    fields.setdefault("fandom_id", FANDOM)
    fields.setdefault("name", block_id)
    return PlotBlock(id=block_id, parent_id=parent_id, **fields)


def make_prerequisite(
    condition_id: str,
    source: str,
    target: str,
    operator: str = "completed",
    **fields: Any,
) -> PlotBlockCondition:
    """Create a prerequisite condition: ``source`` depends on ``target``."""
    return PlotBlockCondition(
        id=condition_id,
        source_block_id=source,
        target_block_id=target,
        condition_type="prerequisite",
        operator=operator,
        **fields,
    )


def make_custom(
    condition_id: str,
    source: str,
    operator: str,
    leaves: list[dict[str, Any]],
) -> PlotBlockCondition:
    """Create a custom AND/OR condition with a JSON-serialized value."""
    return PlotBlockCondition(
        id=condition_id,
        source_block_id=source,
        target_block_id=None,
        condition_type="custom",
        operator=operator,
        value=json.dumps({"conditions": leaves}),
    )


def make_chain_provider() -> InMemoryDataProvider:
    """Provider with the prerequisite chain A -> B -> C plus an isolated block D.

    Edges read "depends on": A depends on B, B depends on C.
    """
    blocks = [make_block(block_id) for block_id in ("A", "B", "C", "D")]
    conditions = [
        make_prerequisite("c_ab", "A", "B"),
        make_prerequisite("c_bc", "B", "C"),
    ]
    return InMemoryDataProvider(plot_blocks=blocks, conditions=conditions)


def make_romance_provider() -> InMemoryDataProvider:
    """Provider with a small but complete romance catalog.

    - tc_pairing: A and B are mutually exclusive, at most 2 tags
    - tc_genre: no rules (E, F)
    - P1 (romance) -> P2 (romance, child of P1) -> P3 (prerequisite on P2)
    - rel_hd and rel_hg share "harry"; rel_hd is exclusive
    """
    tag_classes = [
        make_tag_class("tc_pairing", mutual_exclusion={"A", "B"}, max_instances=2),
        make_tag_class("tc_genre"),
    ]
    tags = [
        make_tag("A", "tc_pairing"),
        make_tag("B", "tc_pairing"),
        make_tag("C", "tc_pairing"),
        make_tag("E", "tc_genre"),
        make_tag("F", "tc_genre"),
        make_relationship("rel_hd", ["harry", "draco"], exclusive=True),
        make_relationship("rel_hg", ["harry", "ginny"]),
    ]
    blocks = [
        make_block("P1", category="romance"),
        make_block("P2", "P1", category="romance"),
        make_block("P3", category="adventure"),
    ]
    conditions = [make_prerequisite("c_p3_p2", "P3", "P2")]
    return InMemoryDataProvider(
        tags=tags,
        tag_classes=tag_classes,
        plot_blocks=blocks,
        conditions=conditions,
    )


SNAPSHOT_YAML = """\
tags:
  - {id: A, fandom_id: hp, name: Drarry, tag_class_id: tc_pairing}
  - {id: B, fandom_id: hp, name: Hinny, tag_class_id: tc_pairing}
  - {id: E, fandom_id: hp, name: Angst, tag_class_id: tc_genre}
tag_classes:
  - id: tc_pairing
    fandom_id: hp
    name: Pairing
    rules:
      mutual_exclusion: [A, B]
      max_instances: 2
  - {id: tc_genre, fandom_id: hp, name: Genre}
plot_blocks:
  - {id: P1, fandom_id: hp, name: First Meeting, category: romance}
  - {id: P2, fandom_id: hp, name: Courtship, parent_id: P1, category: romance}
  - {id: P3, fandom_id: hp, name: Final Battle, category: adventure}
conditions:
  - id: c_p3_p2
    source_block_id: P3
    target_block_id: P2
    condition_type: prerequisite
    operator: completed
"""
