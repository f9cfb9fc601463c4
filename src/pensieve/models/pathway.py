"""Pathway input models.

A pathway is the caller-selected combination of tags and plot blocks under
evaluation. It is ephemeral: the engine validates it and returns a report,
nothing is persisted.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from pensieve.models.entities import PlotBlock, Tag


class RuntimeContext(BaseModel):
    """Runtime evaluation context for conditions and required-context rules.

    Attributes:
        completed_blocks: Plot block IDs the reader has completed.
        block_tags: Plot block ID -> tag IDs assigned to that block.
        attribute_values: Plot block ID -> attribute name -> value.
        values: Free-form context keys (checked by ``required_context`` rules).
    """

    completed_blocks: set[str] = Field(default_factory=set)
    block_tags: dict[str, set[str]] = Field(default_factory=dict)
    attribute_values: dict[str, dict[str, Any]] = Field(default_factory=dict)
    values: dict[str, Any] = Field(default_factory=dict)

    def has_key(self, key: str) -> bool:
        """True if ``key`` is provided by the context with a non-empty value."""
        value = self.values.get(key)
        return value is not None and value != "" and value != [] and value != {}


class Pathway(BaseModel):
    """A combination of tags and plot blocks submitted for validation."""

    fandom_id: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)
    plot_blocks: list[str] = Field(default_factory=list)
    context: RuntimeContext = Field(default_factory=RuntimeContext)
    rating: str | None = None

    @property
    def element_count(self) -> int:
        return len(self.tags) + len(self.plot_blocks)

    @property
    def is_empty(self) -> bool:
        return not self.tags and not self.plot_blocks


class ResolvedPathway(BaseModel):
    """A pathway whose tag and plot-block IDs have been resolved to entities.

    Built by the orchestrator after the structural phase and handed to the
    conflict heuristics.

    ``catalog_labels`` maps every active tag and plot block ID in the fandom
    to its display name, so heuristics can name elements that are not
    selected.
    """

    fandom_id: str
    tags: list[Tag] = Field(default_factory=list)
    plot_blocks: list[PlotBlock] = Field(default_factory=list)
    context: RuntimeContext = Field(default_factory=RuntimeContext)
    rating: str | None = None
    catalog_labels: dict[str, str] = Field(default_factory=dict)

    @property
    def relationship_tags(self) -> list[Tag]:
        return [tag for tag in self.tags if tag.is_relationship]

    @property
    def characters(self) -> set[str]:
        return {character for tag in self.tags for character in tag.characters}
