"""Materialization of template trees into project directories."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Collection, Mapping, Optional

from .catalog import LanguageDescriptor
from .template import TemplateRenderer

__all__ = ["ProjectScaffolder"]


LOGGER = logging.getLogger(__name__)

AUTHOR_FILES = ("CLAUDE.md", "_bmad/core/config.yaml")
PROJECT_CONFIG = "_bmad/ecs/config.yaml"
INBOX_README = "inbox/README.md"


def _relative(path: str) -> Optional[PurePosixPath]:
    candidate = PurePosixPath(path.strip())
    if not candidate.parts or candidate.is_absolute() or ".." in candidate.parts:
        return None
    return candidate


@dataclass(slots=True)
class ProjectScaffolder:
    """Copy a template into a project directory and fill in its placeholders."""

    renderer: TemplateRenderer
    system_dirs: tuple[str, ...]
    language_file: str

    def __init__(
        self,
        renderer: TemplateRenderer | None = None,
        *,
        system_dirs: tuple[str, ...] = ("_bmad/ecs", ".claude/commands", "docs"),
        language_file: str = "language.yaml",
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.system_dirs = system_dirs
        self.language_file = language_file

    def copy_template(self, source: Path, target: Path, *, exclude: Collection[str] = ()) -> None:
        """Copy everything in ``source``, dotfiles included, into ``target``.

        Names in ``exclude`` are skipped only at the top level of ``source``.
        """

        root = Path(source)

        def ignore(directory: str, names: list[str]) -> list[str]:
            if Path(directory) != root:
                return []
            return [name for name in names if name in exclude]

        target.mkdir(parents=True, exist_ok=True)
        shutil.copytree(root, target, ignore=ignore, dirs_exist_ok=True)

    def create(
        self,
        target: Path,
        context: Mapping[str, str],
        *,
        language: LanguageDescriptor | None = None,
        custom_dir: Path | None = None,
    ) -> Path:
        """Create a project in ``target`` from a catalog language or a custom checkout.

        A catalog language also contributes its content folders, its inbox
        README and the rendered project config. A custom checkout is copied as
        is, without its ``.git`` directory.
        """

        if (language is None) == (custom_dir is None):
            raise ValueError("exactly one of language or custom_dir is required")

        target = Path(target)
        if custom_dir is not None:
            self.copy_template(custom_dir, target, exclude={".git"})
        else:
            assert language is not None
            self.copy_template(language.path, target, exclude={self.language_file})
            self._create_folders(target, language)

        for relative in AUTHOR_FILES:
            self.renderer.render_file(target / relative, {"AUTHOR_NAME": context["AUTHOR_NAME"]})

        if language is not None and language.config_template:
            config_dir = (target / PROJECT_CONFIG).parent
            if config_dir.is_dir():
                rendered = self.renderer.render_string(language.config_template, context)
                (target / PROJECT_CONFIG).write_text(f"{rendered}\n", encoding="utf-8")
        return target

    def _create_folders(self, target: Path, language: LanguageDescriptor) -> None:
        for folder in language.folders:
            relative = _relative(folder)
            if relative is None:
                LOGGER.warning("skipping content folder outside the project: %r", folder)
                continue
            directory = target / relative
            directory.mkdir(parents=True, exist_ok=True)
            (directory / ".gitkeep").touch()

        if language.inbox_readme:
            readme = target / INBOX_README
            readme.parent.mkdir(parents=True, exist_ok=True)
            readme.write_text(f"{language.inbox_readme}\n", encoding="utf-8")

    def refresh_system(self, project_dir: Path, source_dir: Path) -> list[str]:
        """Replace the template-owned directories of ``project_dir``.

        Each system directory is removed and copied again from ``source_dir``.
        Everything else in the project is left untouched, and so is the
        project config written at creation time. Returns the directories that
        were copied.
        """

        project_config = project_dir / PROJECT_CONFIG
        kept = project_config.read_bytes() if project_config.is_file() else None

        for relative in self.system_dirs:
            existing = project_dir / relative
            if existing.is_dir():
                shutil.rmtree(existing)

        copied: list[str] = []
        for relative in self.system_dirs:
            source = source_dir / relative
            if not source.is_dir():
                LOGGER.debug("no %s in %s", relative, source_dir)
                continue
            destination = project_dir / relative
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, destination)
            copied.append(relative)

        if kept is not None:
            project_config.parent.mkdir(parents=True, exist_ok=True)
            project_config.write_bytes(kept)
        return copied
