"""Collaborators that talk to the repository host and to git."""

from .base import HostCommandError, RepoInfo, SourceHost
from .gh import GhCliHost, find_gh_binary
from .git import GitClient

__all__ = [
    "GhCliHost",
    "GitClient",
    "HostCommandError",
    "RepoInfo",
    "SourceHost",
    "find_gh_binary",
]
