"""Project name normalisation."""

from __future__ import annotations

import re
import unicodedata

__all__ = ["DEFAULT_PROJECT_NAME", "repo_slug", "sanitize_project_name"]


DEFAULT_PROJECT_NAME = "MyProject"

_DISALLOWED = re.compile(r"[^0-9A-Za-z_\-]")


def sanitize_project_name(value: str, *, fallback: str = DEFAULT_PROJECT_NAME) -> str:
    """Reduce ``value`` to letters, digits, hyphens and underscores.

    Accented letters lose their accents, and every other character is dropped
    rather than replaced, so ``"My Book!!"`` becomes ``"MyBook"``. When nothing
    is left, ``fallback`` is returned.
    """

    text = unicodedata.normalize("NFKD", value)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = _DISALLOWED.sub("", text)
    return text or fallback


def repo_slug(owner: str, name: str) -> str:
    """Return the ``owner/name`` form used by the repository host."""

    return f"{owner}/{name}" if owner else name
