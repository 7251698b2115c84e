# src/api/errors.py
"""Caller-facing input errors. Soft failures never surface as exceptions."""

from __future__ import annotations


class PawmatchError(Exception):
    """Base class for errors returned to API callers."""


class BadRequestError(PawmatchError):
    """A required parameter is missing or invalid."""


class ItemNotFoundError(PawmatchError):
    """No item with the requested id exists in the item source."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id
