"""Version information for testenv-lcr."""

from importlib import metadata
import logging
import os

import git

__all__ = [
    "package_version",
    "git_revision",
]

_LOGGER = logging.getLogger(__name__)

DIST_NAME = "testenv-lcr"


def package_version() -> str:
    """Return the installed version of the package."""
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return "unknown"


def git_revision(path: str | None = None) -> str | None:
    """Return the HEAD commit of the enclosing git repository, if any."""
    try:
        repo = git.repo.Repo(path or os.getcwd(), search_parent_directories=True)
        return str(repo.git.rev_parse("HEAD"))
    except (git.InvalidGitRepositoryError, git.NoSuchPathError, git.GitCommandError) as err:
        _LOGGER.debug("Unable to determine git revision: %s", err)
        return None
