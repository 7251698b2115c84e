# src/sources/base.py
"""Item source interface. The enrichment core only reads items."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pawmatch.core.models import Item


class ItemSource(ABC):
    """Provides normalized items."""

    @abstractmethod
    async def get_all_items(self) -> list[Item]:
        """Return every item the source knows about."""

    async def get_item(self, item_id: str) -> Item | None:
        """Return one item by id, or None."""
        for item in await self.get_all_items():
            if item.id == item_id:
                return item
        return None

    @property
    def name(self) -> str:
        return type(self).__name__


class StaticItemSource(ItemSource):
    """Fixed list of items, kept in input order."""

    def __init__(self, items: list[Item], name: str = "static") -> None:
        self._items = list(items)
        self._by_id = {item.id: item for item in self._items}
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def get_all_items(self) -> list[Item]:
        return list(self._items)

    async def get_item(self, item_id: str) -> Item | None:
        return self._by_id.get(item_id)
