"""Command line interface for the project setup wizard."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, NoReturn, Sequence

from . import __version__
from .config import SetupConfig
from .console import Console
from .errors import SetupError, UsageError
from .executor import RunOptions, ScaffoldExecutor
from .update import RestartRequest, UpdateManager

__all__ = ["build_parser", "main"]


LOGGER = logging.getLogger(__name__)

EPILOG = """\
examples:
  ecs-setup                                              interactive mode
  ecs-setup -m ecs-writer -l en -p MyNovel -a "John" -y  fully automated
  ecs-setup --module ecs-marketing --project Launch      partial automation
  ecs-setup --update                                     update to the latest version

Modules and languages are auto-detected from the template repository.
"""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise UsageError(message, remediation=["Use --help for usage information."])


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="ecs-setup",
        allow_abbrev=False,
        description="Create a new project from the ECS-Studio template catalog",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-p", "--project", metavar="NAME", help="Project name (default: MyProject)")
    parser.add_argument("-a", "--author", metavar="NAME", help="Author name (required for new projects)")
    parser.add_argument("-m", "--module", metavar="ID", help="Module ID (e.g. ecs-writer, ecs-marketing)")
    parser.add_argument("-l", "--language", metavar="LANG", help="Language code or alias (e.g. en, de)")
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Auto-confirm all prompts (non-interactive)",
    )
    parser.add_argument("-u", "--update", action="store_true", help="Update to the latest version")
    parser.add_argument("-v", "--version", action="store_true", help="Show the current version")
    parser.add_argument(
        "--no-update-check",
        action="store_true",
        help="Skip the automatic update check",
    )
    parser.add_argument("--verbose", action="store_true", help="Log debug information to stderr")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _report(console: Console, error: SetupError) -> None:
    if error.exit_code == 0:
        console.line(str(error))
        return
    console.error(str(error))
    for line in error.remediation:
        console.detail(line)


def main(
    argv: Sequence[str] | None = None,
    *,
    config: SetupConfig | None = None,
    console: Console | None = None,
    executor_factory: Callable[..., ScaffoldExecutor] = ScaffoldExecutor,
    updater: UpdateManager | None = None,
    restart: Callable[[RestartRequest], object] = RestartRequest.exec,
) -> int:
    arguments = list(sys.argv[1:] if argv is None else argv)
    console = console or Console()

    try:
        args = build_parser().parse_args(arguments)
    except UsageError as exc:
        _report(console, exc)
        return exc.exit_code

    _configure_logging(args.verbose)

    if args.version:
        console.line(f"ECS-Setup version {__version__}")
        return 0

    config = config or SetupConfig.from_env()
    console.assume_yes = args.yes
    updater = updater or UpdateManager(config, __version__, Path(sys.argv[0]).resolve())

    try:
        if args.update:
            console.banner("ECS-Setup - Update")
            console.line(f"Current version: {__version__}")
            console.line()
            executor = executor_factory(config, console, updater=updater)
            restart(executor.apply_update(tuple(arguments)))
            return 0

        executor = executor_factory(
            config,
            console,
            updater=None if args.no_update_check else updater,
        )
        outcome = executor.run(
            RunOptions(
                project=args.project,
                author=args.author,
                module=args.module,
                language=args.language,
                assume_yes=args.yes,
                update_check=not args.no_update_check,
                argv=tuple(arguments),
            )
        )
    except SetupError as exc:
        LOGGER.debug("run aborted", exc_info=True)
        _report(console, exc)
        return exc.exit_code
    except KeyboardInterrupt:
        console.line()
        return 1

    if isinstance(outcome, RestartRequest):
        restart(outcome)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
