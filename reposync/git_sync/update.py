"""Safe update of a working copy: stash, fetch, switch, pull, switch back, pop."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, TYPE_CHECKING

from .error_types import FetchError, GitSyncError, PullError, StashError, StashPopError
from .performance_logger import get_performance_logger
from .references import BranchInfo
from .utils import UpdateResult

if TYPE_CHECKING:
    from .repository import Repository


class UpdateState(Enum):
    """States of the safe update, in the only order they can occur."""
    CHECK_DIVERGENCE = "check_divergence"
    STASH = "stash"
    FETCH = "fetch"
    CHECKOUT_TARGET = "checkout_target"
    PULL = "pull"
    CHECKOUT_BACK = "checkout_back"
    STASH_POP = "stash_pop"
    DONE = "done"


@dataclass
class UpdateContext:
    """Everything the state machine has learned and still owes."""
    branch: str
    remote: str
    start: Optional[BranchInfo] = None
    up_to_date: bool = False
    stashed: bool = False
    switched_branch: bool = False
    branch_restored: bool = False
    stash_popped: bool = False
    pull_output: str = ""
    visited: List[UpdateState] = field(default_factory=list)

    @property
    def restore_ref(self) -> str:
        """Branch (or detached commit) the working copy started on."""
        if self.start is None:
            return ""
        return self.start.branch or self.start.head_hash

    @property
    def owes_checkout_back(self) -> bool:
        return self.switched_branch and not self.branch_restored

    @property
    def owes_stash_pop(self) -> bool:
        return self.stashed and not self.stash_popped


class SafeUpdater:
    """
    Runs the safe update state machine for one repository handle.

    Each state handler performs at most one step and returns the next state.
    The branch restore and stash pop are chosen by ``_after_pull`` and
    ``_after_checkout_back`` from the context flags set when the switch and
    the stash happened, so they cannot be skipped on the success path.
    Failures raise immediately; the exception's ``context`` attribute holds
    the UpdateContext so callers can see what is still owed.
    """

    def __init__(self, repo: "Repository"):
        self.repo = repo
        self.logger = logging.getLogger('reposync.git_sync.update')
        self.perf_logger = get_performance_logger()
        self._handlers: Dict[UpdateState, Callable[[UpdateContext], UpdateState]] = {
            UpdateState.CHECK_DIVERGENCE: self._check_divergence,
            UpdateState.STASH: self._stash,
            UpdateState.FETCH: self._fetch,
            UpdateState.CHECKOUT_TARGET: self._checkout_target,
            UpdateState.PULL: self._pull,
            UpdateState.CHECKOUT_BACK: self._checkout_back,
            UpdateState.STASH_POP: self._stash_pop,
        }

    def run(self, branch: str, remote: str) -> UpdateResult:
        ctx = UpdateContext(branch=branch, remote=remote)
        state = UpdateState.CHECK_DIVERGENCE

        while state is not UpdateState.DONE:
            ctx.visited.append(state)
            try:
                with self.perf_logger.time_operation(f"update.{state.value}", {"directory": str(self.repo.directory)}):
                    state = self._handlers[state](ctx)
            except GitSyncError as e:
                e.context = ctx
                self._log_abort(state, ctx)
                raise

        ctx.visited.append(UpdateState.DONE)
        return UpdateResult(
            up_to_date=ctx.up_to_date,
            output=ctx.pull_output,
            branch=ctx.branch,
            remote=ctx.remote,
            stashed=ctx.stashed,
            switched_branch=ctx.switched_branch,
            states=[s.value for s in ctx.visited],
        )

    def _log_abort(self, state: UpdateState, ctx: UpdateContext) -> None:
        owed = []
        if ctx.owes_checkout_back:
            owed.append(f"checkout of {ctx.restore_ref}")
        if ctx.owes_stash_pop:
            owed.append("git stash pop")
        suffix = f"; still owed: {', '.join(owed)}" if owed else ""
        self.logger.error(f"Update of {self.repo.directory} aborted in state {state.value}{suffix}")

    # -- states ---------------------------------------------------------------

    def _check_divergence(self, ctx: UpdateContext) -> UpdateState:
        ctx.start = self.repo.local_branch_info()
        tracked_remote = self.repo.remote_of_branch(ctx.branch)
        if tracked_remote:
            ctx.remote = tracked_remote

        if not self.repo.has_remote_changes(ctx.branch, ctx.remote):
            self.logger.debug(f"No remote changes, {self.repo.directory} is up-to-date")
            ctx.up_to_date = True
            return UpdateState.DONE

        self.logger.info(f"Updating {self.repo.directory} from git {ctx.remote}/{ctx.branch}")
        if self.repo.has_local_changes():
            return UpdateState.STASH
        return UpdateState.FETCH

    def _stash(self, ctx: UpdateContext) -> UpdateState:
        self.logger.info("Stashing local changes...")
        result = self.repo.stash()
        if not result.succeeded:
            raise StashError(f"Error in stash: {result.output}", output=result.output,
                             exit_code=result.exit_code, operation="stash")
        ctx.stashed = True
        return UpdateState.FETCH

    def _fetch(self, ctx: UpdateContext) -> UpdateState:
        # A branch that is not local yet only becomes available for checkout after fetching
        result = self.repo.fetch(ctx.remote)
        if not result.succeeded:
            raise FetchError(f"Error in fetch: {result.output}", output=result.output,
                             exit_code=result.exit_code, operation="fetch")
        if ctx.start.branch != ctx.branch:
            return UpdateState.CHECKOUT_TARGET
        return UpdateState.PULL

    def _checkout_target(self, ctx: UpdateContext) -> UpdateState:
        self.repo.checkout(ctx.branch)
        ctx.switched_branch = True
        return UpdateState.PULL

    def _pull(self, ctx: UpdateContext) -> UpdateState:
        result = self.repo.pull_rescuing(ctx.branch, ctx.remote)
        if not result.succeeded:
            raise PullError(f"Error in pull: {result.output}", output=result.output,
                            exit_code=result.exit_code, operation="pull")
        ctx.pull_output = result.output
        return self._after_pull(ctx)

    def _after_pull(self, ctx: UpdateContext) -> UpdateState:
        if ctx.switched_branch:
            return UpdateState.CHECKOUT_BACK
        return self._after_checkout_back(ctx)

    def _checkout_back(self, ctx: UpdateContext) -> UpdateState:
        self.repo.checkout(ctx.restore_ref)
        ctx.branch_restored = True
        return self._after_checkout_back(ctx)

    def _after_checkout_back(self, ctx: UpdateContext) -> UpdateState:
        if ctx.stashed:
            return UpdateState.STASH_POP
        return UpdateState.DONE

    def _stash_pop(self, ctx: UpdateContext) -> UpdateState:
        result = self.repo.stash_pop()
        if not result.succeeded:
            # Conflicts here need manual resolution; the output is passed on untouched
            raise StashPopError(f"Error in stash pop: {result.output}", output=result.output,
                                exit_code=result.exit_code, operation="stash_pop")
        ctx.stash_popped = True
        self.logger.info("Local changes from stash restored...")
        return UpdateState.DONE
