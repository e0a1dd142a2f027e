"""Exception types raised while resolving and scaffolding a project."""

from __future__ import annotations

from typing import Iterable, Sequence

__all__ = [
    "Cancelled",
    "CatalogEmpty",
    "NameCollision",
    "PrerequisiteMissing",
    "SetupError",
    "SourceUnavailable",
    "UnknownSelection",
    "UpdatePayloadInvalid",
    "UpdateUnavailable",
    "UsageError",
]


class SetupError(RuntimeError):
    """Base class for failures that terminate the wizard.

    ``remediation`` holds ready-to-print lines (usually commands) that help the
    user recover. ``exit_code`` is returned by the command line interface.
    """

    exit_code = 1

    def __init__(self, message: str, *, remediation: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.remediation: tuple[str, ...] = tuple(remediation)


class UsageError(SetupError):
    """Raised for invalid command line usage."""


class PrerequisiteMissing(SetupError):
    """Raised when a required tool is absent or not authenticated."""


class SourceUnavailable(SetupError):
    """Raised when the template catalog cannot be fetched."""


class CatalogEmpty(SetupError):
    """Raised when a fetched catalog contains no usable modules."""


class UnknownSelection(SetupError):
    """Raised when an explicit module or language is not in the catalog."""

    def __init__(self, kind: str, value: str, options: Sequence[str]) -> None:
        label = "language for this module" if kind == "language" else kind
        super().__init__(
            f"Unknown {label}: {value}",
            remediation=[f"Available {kind}s: {' '.join(options)}"],
        )
        self.kind = kind
        self.value = value
        self.options = tuple(options)


class UpdatePayloadInvalid(SetupError):
    """Raised when a downloaded update cannot be trusted."""


class UpdateUnavailable(SetupError):
    """Raised when the running program is not a standalone script that can be replaced."""


class Cancelled(SetupError):
    """Raised when the user declines a confirmation prompt."""

    exit_code = 0

    def __init__(self, message: str = "Cancelled.") -> None:
        super().__init__(message)


class NameCollision(Exception):
    """Signals that a project name is already taken locally or remotely.

    The identity resolver handles this internally. It never reaches the user
    as a failure.
    """

    def __init__(self, name: str, *, local: bool) -> None:
        where = "locally" if local else "on the host"
        super().__init__(f"project '{name}' already exists {where}")
        self.name = name
        self.local = local
