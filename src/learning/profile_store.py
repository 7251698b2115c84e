# src/learning/profile_store.py
"""Persistence port for a user's preference profile."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from pawmatch.core.models import UserPreferenceProfile

logger = logging.getLogger(__name__)


class ProfileStore(ABC):
    """Where a profile lives between sessions."""

    @abstractmethod
    def load(self) -> UserPreferenceProfile:
        """Saved profile, or a fresh default one."""

    @abstractmethod
    def save(self, profile: UserPreferenceProfile) -> None:
        """Replace the saved profile."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the saved profile."""


class InMemoryProfileStore(ProfileStore):
    def __init__(self, profile: UserPreferenceProfile | None = None) -> None:
        self._profile = profile

    def load(self) -> UserPreferenceProfile:
        return self._profile if self._profile is not None else UserPreferenceProfile()

    def save(self, profile: UserPreferenceProfile) -> None:
        self._profile = profile

    def clear(self) -> None:
        self._profile = None


class JsonFileProfileStore(ProfileStore):
    """One JSON document on disk. A corrupt file loads as the default profile."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> UserPreferenceProfile:
        if not self._path.exists():
            return UserPreferenceProfile()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return UserPreferenceProfile.model_validate(data)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.error("Failed to parse preference profile %s: %s", self._path, e)
            return UserPreferenceProfile()

    def save(self, profile: UserPreferenceProfile) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(profile.model_dump_json(indent=2), encoding="utf-8")

    def clear(self) -> None:
        if self._path.exists():
            self._path.unlink()
