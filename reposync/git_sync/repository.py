"""Repository handle: one git working copy and the operations on it."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from ..config import Config
from ..platform import get_git_executable
from .actions import ActionPlan, ChangeActionDispatcher, FileAction
from .error_types import CloneError, CommitError, InitError, PushError, StatusError, CheckoutError
from .operations import CommitEntry, is_git_repository, read_commit_history, setup_initial_git_config
from .references import BranchInfo, HeadComparison, ReferenceResolver, RemoteDescriptor
from .rescue import UntrackedFileRescue
from .runner import CommandResult, CommandRunner, CommandSuccess, LogSink, format_command
from .status import FileStatus, parse_file_status
from .update import SafeUpdater
from .utils import UpdateResult


class Repository:
    """
    A git working copy.

    The handle holds the directory, the dry-run flag and an append-only log
    sink that collects every command and its output for the handle's
    lifetime. Commands run one at a time, in the order they are issued.
    In dry-run mode commands that change the working copy, the index or
    refs are written to the log instead of being executed.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        dry_run: Optional[bool] = None,
        log: Optional[LogSink] = None,
        runner: Optional[CommandRunner] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or Config()
        self.directory = Path(directory)
        self.dry_run = self.config.dry_run if dry_run is None else dry_run
        self._log = log if log is not None else LogSink()
        self.runner = runner or CommandRunner()
        self.git_executable = get_git_executable()
        self.logger = logging.getLogger('reposync.git_sync.repository')

        self.references = ReferenceResolver(self)
        self.dispatcher = ChangeActionDispatcher(self)
        self.rescue = UntrackedFileRescue(self)

    def __repr__(self) -> str:
        return f"Repository({str(self.directory)!r})"

    # -- command execution ----------------------------------------------------

    def cmd(
        self,
        command: Sequence[str],
        cwd: Optional[Path] = None,
        mutating: bool = False,
    ) -> CommandResult:
        """Run ``command`` in the working copy (or ``cwd``) and log it to this handle's sink."""
        if mutating and self.dry_run:
            self._log.append(f"[dry-run] $ {format_command(command)}\n")
            self.logger.info(f"[dry-run] {format_command(command)} in {cwd or self.directory}")
            return CommandSuccess(command=tuple(command), output="")
        return self.runner.run(command, cwd=cwd or self.directory, log_sink=self._log)

    def git(self, *args: str, cwd: Optional[Path] = None, mutating: bool = False) -> CommandResult:
        return self.cmd([self.git_executable, *args], cwd=cwd, mutating=mutating)

    @property
    def log_sink(self) -> LogSink:
        return self._log

    def log(self) -> str:
        """Everything this handle has run so far, with output."""
        return self._log.text()

    # -- status ---------------------------------------------------------------

    def current_branch(self) -> Optional[str]:
        return self.references.current_branch()

    def has_local_changes(self) -> bool:
        """Whether tracked files have uncommitted changes; untracked files do not count."""
        result = self.git("status", "--short", "-uno")
        return bool(result.output.strip())

    def diff(self, options: Sequence[str] = ()) -> str:
        result = self.git("diff", *options)
        return result.output.strip()

    def file_status(self) -> List[FileStatus]:
        """
        Per-file change records for the working copy.

        Raises:
            StatusError: git status failed
        """
        result = self.git("status", "--porcelain")
        if not result.succeeded:
            raise StatusError(f"git status failed: {result.output}", output=result.output,
                              exit_code=result.exit_code, operation="status")
        return parse_file_status(result.output)

    def commit_history(self, max_count: int = 50) -> List[CommitEntry]:
        return read_commit_history(self.directory, max_count=max_count)

    def is_repository(self) -> bool:
        return is_git_repository(self.directory)

    # -- branches -------------------------------------------------------------

    def local_branch_info(self) -> BranchInfo:
        return self.references.local_branch_info()

    def remote_of_branch(self, branch: str) -> Optional[str]:
        return self.references.remote_of_branch(branch)

    def checkout(self, branch_or_hash: str) -> CommandResult:
        """
        Raises:
            CheckoutError: with the ref and git's output
        """
        result = self.git("checkout", branch_or_hash, mutating=True)
        if not result.succeeded:
            raise CheckoutError(branch_or_hash, output=result.output, exit_code=result.exit_code)
        return result

    # -- remotes --------------------------------------------------------------

    def list_remotes(self) -> List[RemoteDescriptor]:
        return self.references.list_remotes()

    def remote_and_local_head_ref(self, branch: Optional[str] = None, remote: Optional[str] = None) -> HeadComparison:
        return self.references.remote_and_local_head_ref(
            branch or self.config.default_branch,
            remote or self.config.default_remote,
        )

    def has_remote_changes(self, branch: Optional[str] = None, remote: Optional[str] = None) -> bool:
        return self.references.has_remote_changes(
            branch or self.config.default_branch,
            remote or self.config.default_remote,
        )

    def push(self) -> CommandResult:
        """
        Push the current branch to its tracking remote.

        Raises:
            PushError: no branch, no remote, or git push failed
        """
        info = self.local_branch_info()
        if not info.remote:
            raise PushError(f"No remote for pushing {self.directory}", operation="push")
        if not info.branch:
            raise PushError(f"No branch for pushing {self.directory}", operation="push")
        result = self.git("push", info.remote, info.branch, mutating=True)
        if not result.succeeded:
            raise PushError(f"Error in push: {result.output}", output=result.output,
                            exit_code=result.exit_code, operation="push")
        return result

    # -- index ----------------------------------------------------------------

    def add(self, files: Iterable[Union[str, FileStatus]]) -> CommandResult:
        names = [f if isinstance(f, str) else f.file_name for f in files]
        return self.git("add", "--", *names, mutating=True)

    def commit(self, message: str, all: bool = False) -> CommandResult:
        """
        Raises:
            ValueError: empty message
            CommitError: git commit failed
        """
        if not message:
            raise ValueError("No commit message")
        args = ["commit"]
        if all:
            args.append("-a")
        result = self.git(*args, "-m", message, mutating=True)
        if not result.succeeded:
            raise CommitError(f"Error in commit: {result.output}", output=result.output,
                              exit_code=result.exit_code, operation="commit")
        return result

    def apply_file_action(self, action: Union[FileAction, str], records: Iterable[FileStatus]) -> ActionPlan:
        """Stage, unstage or discard ``records``; see ChangeActionDispatcher."""
        return self.dispatcher.apply(FileAction(action), records)

    def stage_files(self, records: Iterable[FileStatus]) -> ActionPlan:
        return self.apply_file_action(FileAction.STAGE, records)

    def unstage_files(self, records: Iterable[FileStatus]) -> ActionPlan:
        return self.apply_file_action(FileAction.UNSTAGE, records)

    def discard_files(self, records: Iterable[FileStatus]) -> ActionPlan:
        return self.apply_file_action(FileAction.DISCARD, records)

    def stash(self) -> CommandResult:
        return self.git("stash", mutating=True)

    def stash_pop(self) -> CommandResult:
        return self.git("stash", "pop", mutating=True)

    # -- pull / fetch ---------------------------------------------------------

    def fetch(self, remote: Optional[str] = None) -> CommandResult:
        return self.git("fetch", remote or self.config.default_remote, mutating=True)

    def pull(self, branch: Optional[str] = None, remote: Optional[str] = None) -> CommandResult:
        return self.git(
            "pull", "--no-rebase",
            remote or self.config.default_remote,
            branch or self.config.default_branch,
            mutating=True,
        )

    def pull_rescuing(self, branch: Optional[str] = None, remote: Optional[str] = None) -> CommandResult:
        """Pull, moving untracked files that block it out of the way and back."""
        return self.rescue.pull(branch or self.config.default_branch, remote or self.config.default_remote)

    def interactively_update(self, branch: Optional[str] = None, remote: Optional[str] = None) -> UpdateResult:
        """
        Bring ``branch`` up to date with ``remote`` without losing local work.

        Local edits are stashed, the target branch is fetched, checked out and
        pulled, the previous branch is checked out again and the stash is
        popped. When local and remote heads already match nothing is changed.

        Raises:
            StashError, FetchError, CheckoutError, PullError, StashPopError,
            RescueError, HeadPayloadError
        """
        return SafeUpdater(self).run(
            branch or self.config.default_branch,
            remote or self.config.default_remote,
        )

    # -- repo creation --------------------------------------------------------

    def clone(self, repo_url: str, branch: Optional[str] = None) -> CommandResult:
        """
        Clone ``repo_url`` into this handle's directory.

        Raises:
            CloneError: the directory exists already or git clone failed
        """
        if self.directory.exists():
            raise CloneError(f"Cannot clone into {self.directory}: exists already", operation="clone")

        parent = self.directory.parent
        if not self.dry_run:
            parent.mkdir(parents=True, exist_ok=True)
        result = self.git(
            "clone", "-b", branch or self.config.default_branch, repo_url, self.directory.name,
            cwd=parent, mutating=True,
        )
        if not result.succeeded:
            raise CloneError(f"Failure cloning repo: {result.output}", output=result.output,
                             exit_code=result.exit_code, operation="clone")
        self.logger.info(f"Cloned {repo_url} into {self.directory}")
        return result

    def init(self, remote_url: Optional[str] = None) -> CommandResult:
        """
        Create the directory and an empty repository in it.

        Raises:
            InitError: the directory could not be created or git init failed
        """
        if not self.dry_run:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise InitError(
                    f"Could not initialize new git repo, creating a directory failed: {self.directory}, {e}",
                    operation="init"
                ) from e

        result = self.git("init", f"--initial-branch={self.config.default_branch}", mutating=True)
        if not result.succeeded:
            raise InitError(f"Failure initializing repo: {result.output}", output=result.output,
                            exit_code=result.exit_code, operation="init")

        if not self.dry_run:
            setup_initial_git_config(self.directory, self.config)

        if remote_url:
            remote = self.git("remote", "add", self.config.default_remote, remote_url, mutating=True)
            if not remote.succeeded:
                raise InitError(f"Failure adding remote {remote_url}: {remote.output}", output=remote.output,
                                exit_code=remote.exit_code, operation="init")
        return result
