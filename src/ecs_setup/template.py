"""Literal ``{{PLACEHOLDER}}`` substitution for template files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Mapping

__all__ = [
    "TemplateRenderer",
    "project_context",
]


_PLACEHOLDER_PATTERN = re.compile(r"{{(?P<key>[A-Za-z_][A-Za-z0-9_]*)}}")


def project_context(author: str, project: str, today: date | None = None) -> dict[str, str]:
    """Return the values available to project templates."""

    day = today or date.today()
    return {
        "AUTHOR_NAME": author,
        "PROJECT_NAME": project,
        "DATE": day.strftime("%Y-%m-%d"),
    }


@dataclass(slots=True)
class TemplateRenderer:
    """Replace ``{{KEY}}`` tokens with values from a mapping.

    There are no expressions, filters or escaping. Values are inserted
    verbatim and tokens without a value are left as they are.
    """

    def render_string(self, template: str, context: Mapping[str, str]) -> str:
        def substitute(match: re.Match[str]) -> str:
            return str(context.get(match.group("key"), match.group(0)))

        return _PLACEHOLDER_PATTERN.sub(substitute, template)

    def render_file(self, path: str | Path, context: Mapping[str, str]) -> bool:
        """Render ``path`` in place.

        Returns ``False`` without doing anything when ``path`` does not exist.
        """

        source = Path(path)
        if not source.is_file():
            return False
        source.write_text(self.render_string(source.read_text(encoding="utf-8"), context), encoding="utf-8")
        return True
