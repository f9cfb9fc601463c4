"""Fandom-scoped entity snapshots and the tag-class rule catalog.

These models describe the data the engine reads. They are owned by the
external repository; the engine receives validated snapshots and never
mutates them.

Dependency direction used throughout the engine: a plot block depends on
its parent, and a prerequisite condition's source depends on its target.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

RuleSeverity = Literal["critical", "major", "minor"]
ConditionType = Literal["prerequisite", "tag_presence", "attribute", "custom"]

# Content ratings from least to most mature.
RATING_ORDER: tuple[str, ...] = ("general", "teen", "mature", "explicit")


def rating_rank(rating: str | None) -> int | None:
    """Return the position of a rating in RATING_ORDER, or None if unknown."""
    if rating is None:
        return None
    try:
        return RATING_ORDER.index(rating.lower())
    except ValueError:
        return None


class Tag(BaseModel):
    """A fandom-scoped tag.

    Relationship tags (``category == "relationship"``) list the characters
    they pair; ``exclusive`` marks a pairing that cannot coexist with another
    pairing involving the same character.

    ``requires`` and ``enhances`` name other tags this one depends on; they
    form the tag dependency graph checked for cycles.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    fandom_id: str = Field(min_length=1)
    name: str = ""
    tag_class_id: str | None = None
    category: str | None = None
    characters: list[str] = Field(default_factory=list)
    exclusive: bool = False
    requires: set[str] = Field(default_factory=set)
    enhances: set[str] = Field(default_factory=set)
    is_active: bool = True

    @property
    def label(self) -> str:
        return self.name or self.id

    @property
    def is_relationship(self) -> bool:
        return self.category == "relationship" and len(self.characters) >= 2


class TagClassRules(BaseModel):
    """Validation rule set shared by every tag in a class."""

    model_config = ConfigDict(frozen=True)

    mutual_exclusion: set[str] = Field(default_factory=set)
    within_class_exclusive: bool = False
    conflicting_classes: set[str] = Field(default_factory=set)
    required_context: set[str] = Field(default_factory=set)
    max_instances: int | None = Field(default=None, ge=0)
    min_instances: int | None = Field(default=None, ge=0)
    exact_instances: int | None = Field(default=None, ge=0)
    required_tags: set[str] = Field(default_factory=set)
    required_classes: set[str] = Field(default_factory=set)
    applicable_categories: set[str] = Field(default_factory=set)
    excluded_categories: set[str] = Field(default_factory=set)
    severity: RuleSeverity = "critical"

    @model_validator(mode="after")
    def _bounds_ordered(self) -> TagClassRules:
        if (
            self.max_instances is not None
            and self.min_instances is not None
            and self.max_instances < self.min_instances
        ):
            msg = (
                f"max_instances ({self.max_instances}) must be >= "
                f"min_instances ({self.min_instances})"
            )
            raise ValueError(msg)
        return self

    @property
    def has_category_rules(self) -> bool:
        return bool(self.applicable_categories or self.excluded_categories)


class TagClass(BaseModel):
    """A grouping of tags sharing one validation rule set."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    fandom_id: str = Field(min_length=1)
    name: str = ""
    rules: TagClassRules = Field(default_factory=TagClassRules)

    @property
    def label(self) -> str:
        return self.name or self.id


class PlotBlock(BaseModel):
    """A reusable narrative building block arranged in a hierarchy.

    ``conflicts_with`` and ``requires`` hold IDs of other plot blocks or tags
    that cannot be combined with, or must accompany, this block.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    fandom_id: str = Field(min_length=1)
    name: str = ""
    parent_id: str | None = None
    category: str = ""
    complexity: str = "simple"
    min_rating: str | None = None
    conflicts_with: set[str] = Field(default_factory=set)
    requires: set[str] = Field(default_factory=set)
    is_active: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.name or self.id


class PlotBlockCondition(BaseModel):
    """A typed relationship or constraint between plot blocks.

    ``value`` holds the raw serialized form as stored by the repository;
    it is decoded once by :func:`pensieve.models.expressions.decode_condition_value`.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    source_block_id: str = Field(min_length=1)
    target_block_id: str | None = None
    condition_type: ConditionType
    operator: str = Field(min_length=1)
    value: Any = None
    is_active: bool = True
