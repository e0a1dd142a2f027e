"""Discovery of the module and language templates shipped in a catalog checkout."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .document import Document
from .errors import CatalogEmpty

__all__ = [
    "CatalogSnapshot",
    "LanguageDescriptor",
    "ModuleDescriptor",
    "WorkflowExample",
    "build_catalog",
    "read_language",
    "read_module",
    "resolve_alias",
]


LOGGER = logging.getLogger(__name__)


class WorkflowExample(BaseModel):
    """A command advertised to the user once the project is ready."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    command: str = Field(..., description="Command the user can run inside the project.")
    description: str = Field("", description="One-line explanation of the command.")


class LanguageDescriptor(BaseModel):
    """A localized template bundle belonging to exactly one module."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    identifier: str = Field(..., description="Directory name of the language bundle.")
    name: str = Field(..., description="Display name shown in menus.")
    code: str = Field("", description="Short language code declared by the descriptor.")
    aliases: List[str] = Field(default_factory=list, description="Alternative inputs, matched case-sensitively.")
    folders: List[str] = Field(default_factory=list, description="Content folders created in new projects.")
    inbox_readme: str = Field("", description="Literal README written into the inbox folder.")
    config_template: str = Field("", description="Project config with {{PLACEHOLDER}} tokens.")
    example_workflows: List[WorkflowExample] = Field(default_factory=list, description="Workflows shown after setup.")
    path: Path = Field(..., description="Directory holding the template files.")

    def matches(self, text: str) -> bool:
        """Whether ``text`` names this language by identifier, code or alias."""

        if text == self.identifier or (self.code and text == self.code):
            return True
        return text in self.aliases


class ModuleDescriptor(BaseModel):
    """A top-level template category."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    identifier: str = Field(..., description="Directory name of the module.")
    name: str = Field(..., description="Display name shown in menus.")
    tagline: str = Field("", description="One-line summary shown below the name.")
    path: Path = Field(..., description="Directory holding the module's languages.")
    languages: List[LanguageDescriptor] = Field(default_factory=list, description="Languages in discovery order.")

    def language(self, identifier: str) -> Optional[LanguageDescriptor]:
        for language in self.languages:
            if language.identifier == identifier:
                return language
        return None

    def language_ids(self) -> list[str]:
        return [language.identifier for language in self.languages]


class CatalogSnapshot(BaseModel):
    """Every module and language discovered for a single run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    root: Path = Field(..., description="Checkout the snapshot was built from.")
    modules: List[ModuleDescriptor] = Field(default_factory=list, description="Modules in discovery order.")

    def module(self, identifier: str) -> Optional[ModuleDescriptor]:
        for module in self.modules:
            if module.identifier == identifier:
                return module
        return None

    def identifiers(self) -> list[str]:
        return [module.identifier for module in self.modules]


def _subdirectories(root: Path) -> Iterable[Path]:
    # Directory-listing order; it differs between platforms and filesystems.
    try:
        with os.scandir(root) as entries:
            names = [entry.name for entry in entries if entry.is_dir() and not entry.name.startswith(".")]
    except OSError:
        return []
    return [root / name for name in names]


def read_language(path: Path, descriptor: str = "language.yaml") -> Optional[LanguageDescriptor]:
    """Read the language bundle stored in ``path``.

    Returns ``None`` when the directory carries no descriptor.
    """

    descriptor_path = path / descriptor
    if not descriptor_path.is_file():
        return None
    document = Document.from_path(descriptor_path)
    workflows = [
        WorkflowExample(command=record["command"], description=record.get("description", ""))
        for record in document.records("example_workflows")
        if record.get("command")
    ]
    return LanguageDescriptor(
        identifier=path.name,
        name=document.scalar("name") or path.name,
        code=document.scalar("code"),
        aliases=document.array("aliases"),
        folders=document.array("folders"),
        inbox_readme=document.block_scalar("inbox_readme"),
        config_template=document.block_scalar("config_template"),
        example_workflows=workflows,
        path=path,
    )


def read_module(
    path: Path,
    descriptor: str = "module.yaml",
    language_descriptor: str = "language.yaml",
) -> Optional[ModuleDescriptor]:
    """Read the module stored in ``path`` together with its languages."""

    descriptor_path = path / descriptor
    if not descriptor_path.is_file():
        return None
    document = Document.from_path(descriptor_path)
    languages = [
        language
        for language in (read_language(child, language_descriptor) for child in _subdirectories(path))
        if language is not None
    ]
    return ModuleDescriptor(
        identifier=path.name,
        name=document.scalar("name") or path.name,
        tagline=document.scalar("tagline"),
        path=path,
        languages=languages,
    )


def build_catalog(
    root: str | Path,
    *,
    module_file: str = "module.yaml",
    language_file: str = "language.yaml",
) -> CatalogSnapshot:
    """Discover modules below ``root``.

    Raises
    ------
    CatalogEmpty
        When ``root`` contains no directory with a module descriptor.
    """

    root_path = Path(root)
    modules = [
        module
        for module in (read_module(child, module_file, language_file) for child in _subdirectories(root_path))
        if module is not None
    ]
    if not modules:
        raise CatalogEmpty("No modules found in repository.")
    LOGGER.debug("catalog root=%s modules=%s", root_path, [module.identifier for module in modules])
    return CatalogSnapshot(root=root_path, modules=modules)


def resolve_alias(languages: Sequence[LanguageDescriptor], text: str) -> Optional[str]:
    """Return the identifier of the first language that ``text`` names.

    Matching is exact and case-sensitive. ``"english"`` may resolve to ``en``
    while ``"English"`` resolves to nothing unless listed as an alias.
    """

    for language in languages:
        if language.matches(text):
            return language.identifier
    return None
