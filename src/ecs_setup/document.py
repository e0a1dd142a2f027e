"""Line-oriented reader for the restricted YAML subset used by descriptors.

Descriptor files only ever contain top-level ``key: value`` pairs, ``- item``
lists indented under a key, small ``- field: value`` records and literal block
scalars introduced by ``key: |``. A handful of explicit scanner states is
enough to read that grammar, so no YAML library is involved.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

__all__ = [
    "Document",
    "array",
    "block_scalar",
    "read_document",
    "records",
    "scalar",
]


_TOP_LEVEL_KEY = re.compile(r"^[A-Za-z_][\w-]*\s*:")
_ITEM = re.compile(r"^\s*-(?:\s+(?P<value>.*))?$")
_FIELD = re.compile(r"^\s*(?P<item>-\s+)?(?P<name>[A-Za-z_][\w-]*)\s*:\s*(?P<value>.*)$")
_QUOTES = "\"'"


class _State(Enum):
    OUTSIDE = "outside"
    IN_ARRAY = "in-array"
    IN_BLOCK = "in-block"


def _unquote(value: str) -> str:
    return value.strip().strip(_QUOTES)


def _opens(line: str, key: str) -> bool:
    return line.startswith(f"{key}:")


def _opens_block(line: str, key: str) -> bool:
    return _opens(line, key) and line[len(key) + 1 :].strip() == "|"


def _is_top_level_key(line: str) -> bool:
    return bool(_TOP_LEVEL_KEY.match(line))


def _section(text: str, key: str) -> list[str]:
    """Return the raw lines nested under ``key:`` up to the next top-level key."""

    state = _State.OUTSIDE
    lines: list[str] = []
    for line in text.splitlines():
        if state is _State.OUTSIDE:
            if _opens(line, key):
                state = _State.IN_ARRAY
            continue
        if _is_top_level_key(line):
            break
        lines.append(line)
    return lines


def scalar(text: str, key: str) -> str:
    """Return the value of the top-level ``key: value`` line.

    The key is anchored at column zero so ``name`` never matches
    ``module_name``. Surrounding quote characters are removed. An absent key
    yields an empty string.
    """

    for line in text.splitlines():
        if _opens(line, key):
            return _unquote(line[len(key) + 1 :])
    return ""


def array(text: str, key: str) -> list[str]:
    """Return the ``- value`` items listed under ``key:`` in document order."""

    items: list[str] = []
    for line in _section(text, key):
        match = _ITEM.match(line)
        if match is None:
            continue
        value = _unquote(match.group("value") or "")
        if value:
            items.append(value)
    return items


def records(text: str, key: str) -> list[dict[str, str]]:
    """Return the ``- field: value`` mappings listed under ``key:``.

    Each ``-`` starts a new record. Indented ``field: value`` lines that
    follow it are added to that record.
    """

    result: list[dict[str, str]] = []
    for line in _section(text, key):
        match = _FIELD.match(line)
        if match is None:
            continue
        if match.group("item") or not result:
            result.append({})
        result[-1][match.group("name")] = _unquote(match.group("value"))
    return result


def block_scalar(text: str, key: str) -> str:
    """Return the literal text written under ``key: |``.

    The leading whitespace of the first content line is the base indent and is
    removed from every line. Scanning stops at the first non-blank line that
    does not start with the base indent. Blank lines inside the block and any
    indentation deeper than the base are kept. Trailing blank lines are
    dropped, as with YAML's default clip chomping. Re-indenting the result
    under ``key: |`` therefore gives back the original text only when the
    block does not end in blank lines.
    """

    state = _State.OUTSIDE
    indent = ""
    lines: list[str] = []
    for line in text.splitlines():
        if state is _State.OUTSIDE:
            if _opens_block(line, key):
                state = _State.IN_BLOCK
            continue

        if not line.strip():
            if indent:
                lines.append(line[len(indent) :] if line.startswith(indent) else "")
            continue

        if not indent:
            indent = line[: len(line) - len(line.lstrip())]
            if not indent:
                break
        elif not line.startswith(indent):
            break
        lines.append(line[len(indent) :])

    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def read_document(path: str | Path) -> str:
    """Return the text of ``path`` or an empty string when it cannot be read."""

    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return ""


@dataclass(frozen=True, slots=True)
class Document:
    """Convenience wrapper bundling descriptor text with the query helpers."""

    text: str

    @classmethod
    def from_path(cls, path: str | Path) -> "Document":
        return cls(read_document(path))

    def scalar(self, key: str) -> str:
        return scalar(self.text, key)

    def array(self, key: str) -> list[str]:
        return array(self.text, key)

    def block_scalar(self, key: str) -> str:
        return block_scalar(self.text, key)

    def records(self, key: str) -> list[dict[str, str]]:
        return records(self.text, key)
