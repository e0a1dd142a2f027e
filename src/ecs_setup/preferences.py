"""Sticky "last used" values remembered between runs."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = ["PreferenceField", "PreferenceStore", "Preferences", "read_timestamp", "write_timestamp"]


LOGGER = logging.getLogger(__name__)

PreferenceField = Literal["module", "language", "author"]

_FILE_NAMES: dict[PreferenceField, str] = {
    "module": "module",
    "language": "language",
    "author": "author_name",
}


class Preferences(BaseModel):
    """Values remembered from previous runs. ``None`` means nothing is cached."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    module: Optional[str] = Field(None, description="Module chosen last time.")
    language: Optional[str] = Field(None, description="Language chosen last time.")
    author: Optional[str] = Field(None, description="Author name used last time.")

    def get(self, name: PreferenceField) -> Optional[str]:
        return getattr(self, name)

    def with_value(self, name: PreferenceField, value: str) -> "Preferences":
        """Return a copy with ``name`` set to ``value``."""

        return self.model_copy(update={name: value})


def _read_text(path: Path) -> Optional[str]:
    try:
        value = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return None
    return value or None


class PreferenceStore:
    """One plain-text file per remembered value below ``directory``."""

    def __init__(self, directory: Path | str):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, name: PreferenceField) -> Path:
        return self._directory / _FILE_NAMES[name]

    def load(self) -> Preferences:
        """Read every cached value. Missing or unreadable files count as absent."""

        values = {name: _read_text(self.path_for(name)) for name in _FILE_NAMES}
        return Preferences(**values)

    def save(self, preferences: Preferences, *, previous: Preferences | None = None) -> None:
        """Persist the values of ``preferences`` that differ from ``previous``."""

        for name in _FILE_NAMES:
            value = preferences.get(name)
            if value is None:
                continue
            if previous is not None and previous.get(name) == value:
                continue
            self.write(name, value)

    def write(self, name: PreferenceField, value: str) -> None:
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"{value}\n", encoding="utf-8")
        LOGGER.debug("cached %s=%r in %s", name, value, path)


def read_timestamp(path: Path | str) -> Optional[int]:
    """Return the Unix timestamp stored in ``path`` if it holds one."""

    raw = _read_text(Path(path))
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def write_timestamp(path: Path | str, now: float | None = None) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    stamp = int(time.time() if now is None else now)
    target.write_text(f"{stamp}\n", encoding="utf-8")
