"""Terminal input and output used by the interactive wizard."""

from __future__ import annotations

import sys
from typing import Callable, TextIO

from .errors import Cancelled

__all__ = ["Console"]


_COLORS = {
    "red": "\033[0;31m",
    "green": "\033[0;32m",
    "yellow": "\033[1;33m",
    "blue": "\033[0;34m",
    "cyan": "\033[0;36m",
    "bold": "\033[1m",
    "reset": "\033[0m",
}


class Console:
    """Print status lines and ask questions.

    ``assume_yes`` makes :meth:`confirm` answer yes without reading input,
    which is what ``--yes`` means. Free-form questions still read from
    ``input_func``. Callers in non-interactive mode avoid asking them.
    """

    def __init__(
        self,
        *,
        stream: TextIO | None = None,
        error_stream: TextIO | None = None,
        input_func: Callable[[str], str] | None = None,
        assume_yes: bool = False,
        color: bool | None = None,
    ) -> None:
        self.stream = stream or sys.stdout
        self.error_stream = error_stream or sys.stderr
        self._input = input_func or input
        self.assume_yes = assume_yes
        if color is None:
            color = bool(getattr(self.stream, "isatty", lambda: False)())
        self._color = color

    def _paint(self, text: str, *styles: str) -> str:
        if not self._color:
            return text
        prefix = "".join(_COLORS[style] for style in styles)
        return f"{prefix}{text}{_COLORS['reset']}"

    def line(self, text: str = "") -> None:
        self.stream.write(f"{text}\n")

    def heading(self, text: str) -> None:
        self.line(self._paint(text, "bold"))

    def rule(self, color: str = "cyan") -> None:
        self.line(self._paint("=" * 44, color))

    def banner(self, title: str) -> None:
        self.line()
        self.rule()
        self.line(f"  {self._paint(title, 'bold')}")
        self.rule()
        self.line()

    def step(self, text: str) -> None:
        self.line(f"{self._paint('>', 'blue')} {text}")

    def success(self, text: str) -> None:
        self.line(f"{self._paint('✓', 'green')} {text}")

    def warning(self, text: str) -> None:
        self.line(f"{self._paint('!', 'yellow')} {text}")

    def error(self, text: str) -> None:
        self.error_stream.write(f"{self._paint('✗', 'red')} {text}\n")

    def detail(self, text: str) -> None:
        self.error_stream.write(f"  {text}\n")

    def ask(self, prompt: str, default: str = "") -> str:
        """Ask a free-form question. An empty answer returns ``default``.

        End of input also returns ``default``. Without a default there is
        nothing to answer with, so :class:`Cancelled` is raised instead.
        """

        marker = self._paint("?", "cyan")
        if default:
            question = f"{marker} {prompt} {self._paint(f'[{default}]', 'bold')}: "
        else:
            question = f"{marker} {prompt}: "
        self.stream.write(question)
        self.stream.flush()
        try:
            answer = self._input("").strip()
        except EOFError:
            if not default:
                self.line()
                raise Cancelled("Cancelled (no input).") from None
            answer = ""
        return answer or default

    def confirm(self, prompt: str) -> bool:
        """Ask a yes/no question that defaults to yes."""

        marker = self._paint("?", "cyan")
        hint = self._paint("[Y/n]", "bold")
        if self.assume_yes:
            self.line(f"{marker} {prompt} {hint}: y (auto)")
            return True
        self.stream.write(f"{marker} {prompt} {hint}: ")
        self.stream.flush()
        try:
            answer = self._input("").strip().lower()
        except EOFError:
            answer = ""
        return answer not in {"n", "no"}
