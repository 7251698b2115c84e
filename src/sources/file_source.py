# src/sources/file_source.py
"""Item source backed by a local JSON file of upstream records."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pawmatch.core.models import Item
from pawmatch.sources.base import ItemSource
from pawmatch.sources.upstream import parse_upstream_record

logger = logging.getLogger(__name__)


def record_to_item(record: dict[str, Any]) -> Item:
    """Tagged upstream record, or an already-normalized item when untagged."""
    if "kind" in record:
        return parse_upstream_record(record)
    return Item.model_validate(record)


class JsonFileItemSource(ItemSource):
    """Reads a JSON array (or ``{"items": [...]}``) of records once, lazily.

    Records that fail validation are logged and skipped.
    """

    def __init__(self, path: Path, source_filter: str | None = None) -> None:
        self._path = Path(path).expanduser()
        self._source_filter = source_filter
        self._items: list[Item] | None = None

    @property
    def name(self) -> str:
        return self._path.name

    def _load(self) -> list[Item]:
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        records = raw.get("items", []) if isinstance(raw, dict) else raw
        if not isinstance(records, list):
            raise ValueError(f"Expected a list of records in {self._path}")

        items: list[Item] = []
        for i, record in enumerate(records):
            try:
                items.append(record_to_item(record))
            except (ValidationError, TypeError) as e:
                logger.warning("Skipping invalid record #%d in %s: %s", i, self._path, e)
        if self._source_filter and self._source_filter != "all":
            items = [item for item in items if item.source == self._source_filter]
        logger.info("Loaded %d items from %s", len(items), self._path)
        return items

    async def get_all_items(self) -> list[Item]:
        if self._items is None:
            self._items = self._load()
        return list(self._items)
