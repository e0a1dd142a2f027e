"""Bootstrap installer: prepares the ECS-Studio home and prerequisite tools."""

from __future__ import annotations

import argparse
import logging
import os
import platform as _platform
import shutil
import stat
import sys
import tarfile
import tempfile
import urllib.error
import urllib.request
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from .config import SetupConfig
from .console import Console
from .errors import PrerequisiteMissing, SetupError, UpdatePayloadInvalid
from .update import validate_payload

__all__ = [
    "GhRelease",
    "check_macos_version",
    "detect_platform",
    "gh_release",
    "install_gh",
    "install_setup_script",
    "main",
    "missing_dependencies",
    "run",
]


LOGGER = logging.getLogger(__name__)

GH_VERSION = "2.65.0"

_ARCHITECTURES = {
    "arm64": "arm64",
    "aarch64": "arm64",
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
}

_INSTALL_HINTS = {
    "macos": "xcode-select --install",
    "linux": "sudo apt install git   # or: sudo dnf install git",
    "wsl": "sudo apt install git",
}


def detect_platform(
    sys_platform: str = sys.platform,
    proc_version: Path = Path("/proc/version"),
) -> str:
    """Return ``"macos"``, ``"wsl"``, ``"linux"`` or ``"unknown"``."""

    if sys_platform == "darwin":
        return "macos"
    if sys_platform.startswith("linux"):
        try:
            kernel = proc_version.read_text(encoding="utf-8").lower()
        except OSError:
            kernel = ""
        if "microsoft" in kernel or "wsl" in kernel:
            return "wsl"
        return "linux"
    return "unknown"


def missing_dependencies(which: Callable[[str], Optional[str]] = shutil.which) -> list[str]:
    return [tool for tool in ("git",) if which(tool) is None]


def check_macos_version(release: str) -> None:
    """Require macOS 12 (Monterey) or newer."""

    major = release.split(".", 1)[0]
    if major.isdigit() and int(major) < 12:
        raise PrerequisiteMissing("macOS 12 (Monterey) or newer is required.")


@dataclass(frozen=True, slots=True)
class GhRelease:
    """Download coordinates of a ``gh`` release archive."""

    version: str
    os_name: str
    arch: str
    extension: str

    @property
    def stem(self) -> str:
        return f"gh_{self.version}_{self.os_name}_{self.arch}"

    @property
    def archive(self) -> str:
        return f"{self.stem}.{self.extension}"

    @property
    def url(self) -> str:
        return f"https://github.com/cli/cli/releases/download/v{self.version}/{self.archive}"


def gh_release(platform_name: str, machine: str, version: str = GH_VERSION) -> GhRelease:
    """Pick the release archive matching ``platform_name`` and ``machine``."""

    arch = _ARCHITECTURES.get(machine.lower())
    if arch is None:
        raise PrerequisiteMissing(f"Unknown architecture: {machine}")
    if platform_name == "macos":
        return GhRelease(version, "macOS", arch, "zip")
    if platform_name in {"linux", "wsl"}:
        return GhRelease(version, "linux", arch, "tar.gz")
    raise PrerequisiteMissing(f"Unknown operating system: {platform_name}")


def fetch_bytes(url: str, timeout: float = 60.0) -> bytes:
    request = urllib.request.Request(url, headers={"User-Agent": "ecs-bootstrap"})
    with urllib.request.urlopen(request, timeout=timeout) as response:
        return response.read()


def _make_executable(path: Path) -> None:
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def _extract(archive: Path, destination: Path) -> None:
    if archive.name.endswith(".zip"):
        with zipfile.ZipFile(archive) as bundle:
            bundle.extractall(destination)
    else:
        with tarfile.open(archive, "r:gz") as bundle:
            bundle.extractall(destination, filter="data")


def install_gh(
    config: SetupConfig,
    console: Console,
    *,
    platform_name: str,
    machine: str,
    which: Callable[[str], Optional[str]] = shutil.which,
    fetch: Callable[[str], bytes] = fetch_bytes,
) -> Path:
    """Make ``gh`` available at :attr:`SetupConfig.local_gh`.

    An existing local copy is kept. A system-wide ``gh`` is linked. Otherwise
    the release archive is downloaded and unpacked into the tools directory.
    """

    console.step("Installing GitHub CLI...")
    target = config.local_gh
    if target.is_file() and os.access(target, os.X_OK):
        console.success("GitHub CLI already installed (local)")
        return target

    system_gh = which("gh")
    if system_gh:
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.is_symlink() or target.exists():
            target.unlink()
        target.symlink_to(system_gh)
        console.success(f"GitHub CLI already installed: {system_gh}")
        return target

    release = gh_release(platform_name, machine)
    console.step(f"Downloading gh v{release.version}...")
    with tempfile.TemporaryDirectory(prefix="gh-install-") as scratch:
        scratch_path = Path(scratch)
        archive = scratch_path / release.archive
        try:
            archive.write_bytes(fetch(release.url))
        except (urllib.error.URLError, OSError) as exc:
            raise PrerequisiteMissing("Download failed", remediation=[release.url]) from exc
        try:
            _extract(archive, scratch_path)
        except (tarfile.TarError, zipfile.BadZipFile, EOFError) as exc:
            raise PrerequisiteMissing(
                f"Unexpected archive: {release.archive} could not be unpacked",
                remediation=[release.url],
            ) from exc
        unpacked = scratch_path / release.stem
        if not unpacked.is_dir():
            raise PrerequisiteMissing(f"Unexpected archive layout in {release.archive}")
        shutil.copytree(unpacked, target.parent.parent, dirs_exist_ok=True)

    _make_executable(target)
    console.success("GitHub CLI installed")
    return target


def install_setup_script(
    config: SetupConfig,
    console: Console,
    *,
    fetch: Callable[[str], bytes] = fetch_bytes,
) -> Path:
    """Download the setup script and expose it as ``<home>/setup``."""

    console.step("Downloading setup script...")
    try:
        source = fetch(config.script_url).decode("utf-8")
    except (urllib.error.URLError, OSError, UnicodeDecodeError) as exc:
        raise PrerequisiteMissing("Download failed", remediation=[config.script_url]) from exc
    try:
        validate_payload(source)
    except UpdatePayloadInvalid as exc:
        raise PrerequisiteMissing(str(exc), remediation=[config.script_url]) from exc

    script = config.setup_script
    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text(source, encoding="utf-8")
    _make_executable(script)
    console.success("Setup script installed")

    shortcut = config.home / "setup"
    if shortcut.is_symlink() or shortcut.exists():
        shortcut.unlink()
    shortcut.symlink_to(script.relative_to(config.home))
    console.success(f"Shortcut created: {shortcut}")
    return script


def run(
    config: SetupConfig,
    console: Console,
    *,
    platform_name: str | None = None,
    machine: str | None = None,
    which: Callable[[str], Optional[str]] = shutil.which,
    fetch: Callable[[str], bytes] = fetch_bytes,
) -> Path:
    """Run every bootstrap step and return the installed setup script."""

    platform_name = platform_name or detect_platform()
    machine = machine or _platform.machine()

    console.banner("ECS-Studio - Bootstrap")
    console.step("Checking operating system...")
    if platform_name == "macos":
        release = _platform.mac_ver()[0]
        check_macos_version(release)
        console.success(f"macOS {release}")
    elif platform_name == "unknown":
        console.warning(f"Unknown system: {sys.platform}")
        console.warning("The installation might still work.")
    else:
        console.success(f"{'Windows WSL' if platform_name == 'wsl' else 'Linux'} ({_platform.release()})")

    console.step("Checking dependencies...")
    missing = missing_dependencies(which)
    if missing:
        hint = _INSTALL_HINTS.get(platform_name, "Install them with your package manager.")
        raise PrerequisiteMissing(f"Missing dependencies: {' '.join(missing)}", remediation=[hint])
    console.success("All dependencies available")

    console.step("Creating ECS-Studio directory...")
    config.tools_dir.mkdir(parents=True, exist_ok=True)
    console.success(f"{config.home} created")

    install_gh(config, console, platform_name=platform_name, machine=machine, which=which, fetch=fetch)
    script = install_setup_script(config, console, fetch=fetch)

    console.line()
    console.heading("Installation complete.")
    console.line()
    console.line("  Create your first project with:")
    console.line(f"    {config.home / 'setup'}")
    console.line()
    return script


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="ecs-bootstrap",
        description="Create the ECS-Studio home directory and install prerequisite tools",
    )
    parser.add_argument("--verbose", action="store_true", help="Log debug information to stderr")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    console = Console()
    try:
        run(SetupConfig.from_env(), console)
    except SetupError as exc:
        LOGGER.debug("bootstrap aborted", exc_info=True)
        console.error(str(exc))
        for line in exc.remediation:
            console.detail(line)
        return exc.exit_code
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
