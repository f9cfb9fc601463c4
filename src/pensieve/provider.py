"""Data provider contract and in-memory implementation.

The engine never fetches data itself. Everything it reads comes from a
DataProvider whose lookups are synchronous and already resolved, so no
validation phase performs I/O.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pensieve.errors import StructuralError
from pensieve.models.entities import PlotBlock, PlotBlockCondition, Tag, TagClass
from pensieve.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

log = get_logger(__name__)


@runtime_checkable
class DataProvider(Protocol):
    """Fandom-scoped entity lookups the engine depends on."""

    def get_tag_classes(self, fandom_id: str) -> list[TagClass]:
        """Return every tag class in the fandom."""
        ...

    def get_plot_blocks(self, fandom_id: str) -> list[PlotBlock]:
        """Return every plot block in the fandom, active or not."""
        ...

    def get_active_conditions(self, fandom_id: str) -> list[PlotBlockCondition]:
        """Return active conditions whose source block belongs to the fandom."""
        ...

    def get_tags(self, fandom_id: str) -> list[Tag]:
        """Return every tag in the fandom, active or not."""
        ...

    def get_plot_blocks_by_id(self, block_ids: Iterable[str]) -> list[PlotBlock]:
        """Return the plot blocks with the given IDs, whatever fandom they belong to.

        Unknown IDs are skipped. Used to resolve condition endpoints that
        fall outside the fandom being validated.
        """
        ...


class InMemoryDataProvider:
    """DataProvider over entity lists held in memory.

    Entities from several fandoms may be mixed; every lookup filters by
    fandom. Lists are copied on the way out so callers cannot mutate the
    provider's snapshot.
    """

    def __init__(
        self,
        *,
        tags: Iterable[Tag] = (),
        tag_classes: Iterable[TagClass] = (),
        plot_blocks: Iterable[PlotBlock] = (),
        conditions: Iterable[PlotBlockCondition] = (),
    ) -> None:
        self._tags = list(tags)
        self._tag_classes = list(tag_classes)
        self._plot_blocks = list(plot_blocks)
        self._conditions = list(conditions)

    def get_tag_classes(self, fandom_id: str) -> list[TagClass]:
        return [tc for tc in self._tag_classes if tc.fandom_id == fandom_id]

    def get_plot_blocks(self, fandom_id: str) -> list[PlotBlock]:
        return [pb for pb in self._plot_blocks if pb.fandom_id == fandom_id]

    def get_active_conditions(self, fandom_id: str) -> list[PlotBlockCondition]:
        block_ids = {pb.id for pb in self._plot_blocks if pb.fandom_id == fandom_id}
        return [c for c in self._conditions if c.is_active and c.source_block_id in block_ids]

    def get_tags(self, fandom_id: str) -> list[Tag]:
        return [tag for tag in self._tags if tag.fandom_id == fandom_id]

    def get_plot_blocks_by_id(self, block_ids: Iterable[str]) -> list[PlotBlock]:
        wanted = set(block_ids)
        return [pb for pb in self._plot_blocks if pb.id in wanted]

    @property
    def fandom_ids(self) -> list[str]:
        """Every fandom mentioned by a tag, tag class or plot block."""
        found: set[str] = set()
        for entity in (*self._tags, *self._tag_classes, *self._plot_blocks):
            found.add(entity.fandom_id)
        return sorted(found)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryDataProvider:
        """Build a provider from a snapshot mapping.

        The mapping holds optional ``tags``, ``tag_classes``, ``plot_blocks``
        and ``conditions`` lists of entity dicts.

        Raises:
            StructuralError: If an entity fails model validation.
        """
        return cls(
            tags=_parse_entities(Tag, data.get("tags"), "tags"),
            tag_classes=_parse_entities(TagClass, data.get("tag_classes"), "tag_classes"),
            plot_blocks=_parse_entities(PlotBlock, data.get("plot_blocks"), "plot_blocks"),
            conditions=_parse_entities(PlotBlockCondition, data.get("conditions"), "conditions"),
        )

    @classmethod
    def from_file(cls, path: Path) -> InMemoryDataProvider:
        """Load a snapshot from a ``.json`` or YAML file.

        Raises:
            StructuralError: If the file is unreadable or malformed.
        """
        data = load_document(path)
        if not isinstance(data, dict):
            raise StructuralError("snapshot must be a mapping", field_path=str(path))
        provider = cls.from_dict(data)
        log.debug(
            "snapshot_loaded",
            path=str(path),
            tags=len(provider._tags),
            tag_classes=len(provider._tag_classes),
            plot_blocks=len(provider._plot_blocks),
            conditions=len(provider._conditions),
        )
        return provider


def load_document(path: Path) -> Any:
    """Read a JSON or YAML document, choosing the parser by file suffix.

    Raises:
        StructuralError: If the file is missing or cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise StructuralError("file not found", field_path=str(path))
    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return YAML(typ="safe").load(f)
    except (OSError, ValueError, YAMLError) as e:
        raise StructuralError(f"cannot parse document: {e}", field_path=str(path)) from e


def _parse_entities(model: Any, items: Any, field_name: str) -> list[Any]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise StructuralError("must be a list", field_path=field_name)
    parsed = []
    for index, item in enumerate(items):
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            first = e.errors()[0]
            location = "".join(f".{part}" for part in first["loc"])
            raise StructuralError(
                first["msg"],
                field_path=f"{field_name}[{index}]{location}",
                entity_id=item.get("id") if isinstance(item, dict) else None,
            ) from e
    return parsed
