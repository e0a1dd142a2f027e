"""Project setup wizard for the ECS-Studio template catalog.

The package resolves a module, a language, a project name and an author from
command line flags, remembered preferences and interactive prompts. It then
materializes the project from the matching catalog template and publishes it
as a new repository.
"""

from __future__ import annotations

from .catalog import CatalogSnapshot, LanguageDescriptor, ModuleDescriptor, build_catalog, resolve_alias
from .config import SetupConfig
from .document import Document, array, block_scalar, records, scalar
from .errors import SetupError
from .executor import RunOptions, RunResult, ScaffoldExecutor
from .naming import sanitize_project_name
from .selection import Provenance, Selection
from .update import UpdateManager, is_newer

__all__ = [
    "CatalogSnapshot",
    "Document",
    "LanguageDescriptor",
    "ModuleDescriptor",
    "Provenance",
    "RunOptions",
    "RunResult",
    "ScaffoldExecutor",
    "Selection",
    "SetupConfig",
    "SetupError",
    "UpdateManager",
    "array",
    "block_scalar",
    "build_catalog",
    "is_newer",
    "records",
    "resolve_alias",
    "sanitize_project_name",
    "scalar",
]

__version__ = "1.0.0"
