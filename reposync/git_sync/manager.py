"""Repository manager: shared handles, per-directory locking and background updates."""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, TypeVar, Union

from ..config import Config
from .error_types import GitSyncError
from .repository import Repository
from .runner import CommandRunner, LogSink
from .utils import UpdateResult

T = TypeVar("T")


class RepositoryManager:
    """
    Hands out one Repository per working copy and serializes work on it.

    All handles share a single log sink. Work on one directory runs under
    that directory's lock, so at most one git pipeline touches a working
    copy at a time; different directories proceed independently.
    """

    def __init__(self, config: Config, runner: Optional[CommandRunner] = None):
        """
        Initialize RepositoryManager with configuration.

        Args:
            config: Configuration providing defaults and the dry-run flag
            runner: Command runner shared by every handle
        """
        self.config = config
        self.runner = runner or CommandRunner()
        self.log_sink = LogSink()
        self.logger = logging.getLogger('reposync.git_sync.manager')

        self._repositories: Dict[Path, Repository] = {}
        self._locks: Dict[Path, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def resolve_directory(self, directory: Union[str, Path, None]) -> Path:
        """Absolute path of ``directory``; relative paths are taken from the workspace."""
        if directory is None:
            return self.config.workspace_dir
        path = Path(directory).expanduser()
        if not path.is_absolute():
            path = self.config.workspace_dir / path
        return path.resolve()

    def get_repository(self, directory: Union[str, Path, None] = None) -> Repository:
        path = self.resolve_directory(directory)
        with self._registry_lock:
            repo = self._repositories.get(path)
            if repo is None:
                repo = Repository(path, log=self.log_sink, runner=self.runner, config=self.config)
                self._repositories[path] = repo
                self._locks[path] = threading.Lock()
            return repo

    def run_exclusive(self, directory: Union[str, Path, None], func: Callable[[Repository], T]) -> T:
        """Run ``func`` with the directory's lock held."""
        repo = self.get_repository(directory)
        with self._locks[repo.directory]:
            return func(repo)

    def update(self, directory: Union[str, Path, None] = None, branch: Optional[str] = None,
               remote: Optional[str] = None) -> UpdateResult:
        return self.run_exclusive(directory, lambda repo: repo.interactively_update(branch, remote))

    def update_background(
        self,
        directory: Union[str, Path, None] = None,
        branch: Optional[str] = None,
        remote: Optional[str] = None,
        on_done: Optional[Callable[[Optional[UpdateResult], Optional[Exception]], None]] = None,
    ) -> threading.Thread:
        """
        Run a safe update in a background thread.

        Args:
            directory: Working copy to update
            branch: Target branch, defaults to the configured branch
            remote: Remote, defaults to the configured remote
            on_done: Called with (result, None) or (None, error) when finished

        Returns:
            The started daemon thread
        """
        path = self.resolve_directory(directory)

        def update_worker():
            try:
                result = self.update(path, branch, remote)
            except GitSyncError as e:
                self.logger.warning(f"Background update of {path} failed: {e.message}")
                if on_done:
                    on_done(None, e)
                return
            except Exception as e:
                self.logger.error(f"Unexpected error in background update of {path}: {e}", exc_info=True)
                if on_done:
                    on_done(None, e)
                return

            self.logger.info(f"Background update of {path} completed: {result.message.strip()[:80]}")
            if on_done:
                on_done(result, None)

        update_thread = threading.Thread(
            target=update_worker,
            name=f"RepoUpdate-{path.name}",
            daemon=True
        )
        update_thread.start()
        return update_thread

    def known_directories(self) -> List[Path]:
        with self._registry_lock:
            return list(self._repositories)


# Global repository manager instance
_repository_manager: Optional[RepositoryManager] = None


def get_repository_manager(config: Config) -> RepositoryManager:
    """
    Get or create the global repository manager instance.

    Args:
        config: Configuration used when the manager is first created

    Returns:
        RepositoryManager instance
    """
    global _repository_manager

    if _repository_manager is None:
        _repository_manager = RepositoryManager(config)

    return _repository_manager
