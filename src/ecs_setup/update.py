"""Self-update support: version checks, atomic script replacement and restart."""

from __future__ import annotations

import ast
import logging
import os
import re
import shutil
import stat
import sys
import tempfile
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, NoReturn, Optional, Sequence

from packaging.version import InvalidVersion, Version

from .config import SetupConfig
from .errors import UpdatePayloadInvalid, UpdateUnavailable
from .preferences import read_timestamp, write_timestamp

__all__ = [
    "RestartRequest",
    "UpdateManager",
    "extract_version",
    "fetch_text",
    "is_newer",
    "strip_update_flags",
    "validate_payload",
]


LOGGER = logging.getLogger(__name__)

UPDATE_FLAGS = frozenset({"-u", "--update"})
PACKAGE_UPGRADE = "pip install --upgrade ecs-setup"

_VERSION_LINE = re.compile(r"""^__version__\s*=\s*["'](?P<version>[^"']+)["']""", re.MULTILINE)


def is_newer(candidate: str, current: str) -> bool:
    """Whether ``candidate`` is strictly newer than ``current``.

    Segments are compared numerically, so ``1.10.0`` is newer than ``1.9.9``
    and ``1.2`` is newer than ``1.1.9``. Unparseable versions are never newer.
    """

    try:
        return Version(candidate) > Version(current)
    except InvalidVersion:
        return False


def extract_version(source: str) -> Optional[str]:
    """Return the ``__version__`` declared at the start of a line in ``source``."""

    match = _VERSION_LINE.search(source)
    if match is None:
        return None
    return match.group("version").strip() or None


def validate_payload(source: str) -> str:
    """Check that ``source`` is a Python script declaring a valid version.

    Returns the declared version. Raises :class:`UpdatePayloadInvalid` otherwise.
    """

    if not source.strip():
        raise UpdatePayloadInvalid("Failed to download update.")
    try:
        ast.parse(source)
    except (SyntaxError, ValueError) as exc:
        raise UpdatePayloadInvalid("Downloaded script appears invalid (not a Python script).") from exc
    version = extract_version(source)
    if version is None:
        raise UpdatePayloadInvalid("Downloaded script appears invalid (no version found).")
    try:
        Version(version)
    except InvalidVersion as exc:
        raise UpdatePayloadInvalid(f"Downloaded script declares an invalid version: {version}") from exc
    return version


def strip_update_flags(argv: Sequence[str]) -> list[str]:
    return [arg for arg in argv if arg not in UPDATE_FLAGS]


def fetch_text(url: str, timeout: float = 10.0) -> str:
    request = urllib.request.Request(url, headers={"User-Agent": "ecs-setup"})
    with urllib.request.urlopen(request, timeout=timeout) as response:
        return response.read().decode("utf-8")


@dataclass(frozen=True, slots=True)
class RestartRequest:
    """A request to replace the running process with a fresh interpreter."""

    argv: tuple[str, ...]
    version: str

    def exec(self) -> NoReturn:  # pragma: no cover - replaces the process
        os.execv(self.argv[0], list(self.argv))
        raise AssertionError("execv returned")


class UpdateManager:
    """Compare the running version with the published one and update in place."""

    def __init__(
        self,
        config: SetupConfig,
        current_version: str,
        script_path: str | Path,
        *,
        fetch: Callable[[str], str] = fetch_text,
        clock: Callable[[], float] = time.time,
        executable: str = sys.executable,
    ) -> None:
        self.config = config
        self.current_version = current_version
        self.script_path = Path(script_path)
        self._fetch = fetch
        self._clock = clock
        self._executable = executable

    @property
    def backup_path(self) -> Path:
        return self.script_path.with_name(f"{self.script_path.name}.backup")

    def _download(self) -> Optional[str]:
        try:
            return self._fetch(self.config.script_url)
        except (urllib.error.URLError, OSError, ValueError, UnicodeDecodeError):
            LOGGER.debug("fetching %s failed", self.config.script_url, exc_info=True)
            return None

    def remote_version(self) -> Optional[str]:
        """Return the published version or ``None`` when it cannot be determined."""

        source = self._download()
        if source is None:
            return None
        return extract_version(source)

    def replaceable(self) -> bool:
        """Whether the running script is the standalone copy installed by ``ecs-bootstrap``."""

        return self.script_path.resolve() == self.config.setup_script.resolve()

    def should_check(self) -> bool:
        last = read_timestamp(self.config.update_stamp)
        if last is None:
            return True
        return self._clock() - last >= self.config.update_interval

    def check_for_updates(self) -> Optional[str]:
        """Return a newer published version, at most once per update interval.

        The timestamp is refreshed on every attempt, including failed ones.
        """

        if not self.should_check():
            LOGGER.debug("update check skipped, last check is recent")
            return None
        remote = self.remote_version()
        write_timestamp(self.config.update_stamp, self._clock())
        if remote is None:
            return None
        LOGGER.debug("remote version=%s current=%s", remote, self.current_version)
        return remote if is_newer(remote, self.current_version) else None

    def apply(self, argv: Sequence[str]) -> RestartRequest:
        """Download, validate and install the published script.

        The current script is copied to :attr:`backup_path`. The new content is
        written to a temporary file next to the script and renamed over it, so
        the script is never left half-written. Returns the restart request for
        ``argv`` without the update flags.

        Only :attr:`SetupConfig.setup_script` is ever replaced. Running from the
        installed package raises :class:`UpdateUnavailable` before anything is
        downloaded.
        """

        if not self.replaceable():
            raise UpdateUnavailable(
                f"Cannot update {self.script_path} in place: it is not the standalone setup script.",
                remediation=[f"Upgrade the installed package: {PACKAGE_UPGRADE}", f"Or run {self.config.setup_script}"],
            )
        source = self._download()
        version = validate_payload(source or "")

        target = self.script_path
        shutil.copy2(target, self.backup_path)
        mode = stat.S_IMODE(target.stat().st_mode) | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(source or "")
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        write_timestamp(self.config.update_stamp, self._clock())
        LOGGER.info("updated %s to version %s", target, version)
        return RestartRequest(
            argv=(self._executable, str(target), *strip_update_flags(argv)),
            version=version,
        )
