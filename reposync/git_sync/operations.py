"""Repository configuration and history helpers using GitPython."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from git import Repo, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..config import Config
from ..platform import get_platform_specific_git_config


@dataclass
class CommitEntry:
    """One commit from the history of a working copy."""
    hexsha: str
    summary: str
    author: str


def setup_initial_git_config(git_repo_dir: Path, config: Config) -> None:
    """Apply platform git settings and a default identity to a new repository."""
    logger = logging.getLogger('reposync.git_sync.operations')

    repo = Repo(git_repo_dir)
    platform_git_config = get_platform_specific_git_config()

    with repo.config_writer() as writer:
        for config_key, config_value in platform_git_config.items():
            section, option = config_key.split('.', 1)
            writer.set_value(section, option, config_value)
            logger.debug(f"Set Git config {config_key} = {config_value}")

    with repo.config_reader() as reader:
        user_name = reader.get_value("user", "name", default="")
        user_email = reader.get_value("user", "email", default="")

    with repo.config_writer() as writer:
        if not user_name:
            writer.set_value("user", "name", config.git_user_name)
            logger.debug("Set default Git user name")
        if not user_email:
            writer.set_value("user", "email", config.git_user_email)
            logger.debug("Set default Git user email")


def read_commit_history(git_repo_dir: Path, max_count: int = 50) -> List[CommitEntry]:
    """
    Newest-first commit history of the checked out HEAD.

    A repository without commits has an empty history.
    """
    logger = logging.getLogger('reposync.git_sync.operations')

    repo = Repo(git_repo_dir)
    if not repo.head.is_valid():
        return []

    try:
        return [
            CommitEntry(hexsha=commit.hexsha, summary=commit.summary, author=str(commit.author))
            for commit in repo.iter_commits(max_count=max_count)
        ]
    except GitCommandError as e:
        logger.warning(f"Could not read history of {git_repo_dir}: {e}")
        return []


def is_git_repository(git_repo_dir: Path) -> bool:
    """Whether ``git_repo_dir`` is the top of a git working copy."""
    try:
        repo = Repo(git_repo_dir)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False
    return Path(repo.working_tree_dir or "").resolve() == Path(git_repo_dir).resolve()
