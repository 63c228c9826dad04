"""Bulk stage, unstage and discard of file status records."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Tuple, TYPE_CHECKING

from .error_types import FileActionError
from .status import FileState, FileStatus

if TYPE_CHECKING:
    from .repository import Repository


class FileAction(Enum):
    """What to do with a batch of file status records."""
    STAGE = "stage"
    UNSTAGE = "unstage"
    DISCARD = "discard"


# Execution order of the sub-commands and the git arguments for each
SUB_COMMANDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("rm", ("rm", "--")),
    ("rm_cached", ("rm", "--cached", "--")),
    ("add", ("add", "--")),
    ("reset", ("reset", "--")),
    ("checkout", ("checkout", "--")),
)

_FILTERS: Dict[FileAction, Callable[[FileStatus], bool]] = {
    FileAction.STAGE: lambda record: record.status is FileState.UNSTAGED,
    FileAction.UNSTAGE: lambda record: record.status is FileState.STAGED,
    FileAction.DISCARD: lambda record: True,
}


@dataclass
class ActionPlan:
    """Paths grouped by the git sub-command that handles them."""
    action: FileAction
    groups: Dict[str, List[str]] = field(
        default_factory=lambda: {name: [] for name, _ in SUB_COMMANDS}
    )

    def add_path(self, group: str, path: str) -> None:
        paths = self.groups[group]
        if path not in paths:
            paths.append(path)

    def commands(self) -> List[Tuple[str, List[str]]]:
        """Non-empty groups as (name, git arguments), in execution order."""
        return [
            (name, [*args, *self.groups[name]])
            for name, args in SUB_COMMANDS
            if self.groups[name]
        ]

    @property
    def is_empty(self) -> bool:
        return not any(self.groups.values())


def plan_file_action(action: FileAction, records: Iterable[FileStatus]) -> ActionPlan:
    """
    Group records into the sub-commands needed for ``action``.

    Args:
        action: stage, unstage or discard
        records: Records from ``Repository.file_status``

    Returns:
        ActionPlan with at most five non-empty groups
    """
    action = FileAction(action)
    keep = _FILTERS[action]
    plan = ActionPlan(action=action)

    for record in records:
        if not keep(record):
            continue

        groups = []
        if action in (FileAction.UNSTAGE, FileAction.DISCARD):
            groups.append("reset")
        if action is FileAction.DISCARD:
            groups.append("checkout")
        if (action in (FileAction.UNSTAGE, FileAction.DISCARD)
                and record.status is FileState.STAGED and record.change == "added"):
            # A plain reset would leave a never-committed file dangling in the index
            groups.append("rm_cached")
        if action is FileAction.STAGE:
            if record.status is FileState.UNSTAGED and record.change == "deleted":
                groups.append("rm")
            else:
                groups.append("add")

        for group in groups:
            plan.add_path(group, record.file_name)

    return plan


class ChangeActionDispatcher:
    """Runs an ActionPlan against a repository, one sub-command at a time."""

    def __init__(self, repo: "Repository"):
        self.repo = repo
        self.logger = logging.getLogger('reposync.git_sync.actions')

    def apply(self, action: FileAction, records: Iterable[FileStatus]) -> ActionPlan:
        """
        Stage, unstage or discard ``records``.

        Raises:
            FileActionError: a sub-command failed; the ones before it stay applied
        """
        plan = plan_file_action(action, records)
        if plan.is_empty:
            self.logger.debug(f"Nothing to {plan.action.value} in {self.repo.directory}")
            return plan

        for name, args in plan.commands():
            result = self.repo.git(*args, mutating=True)
            if not result.succeeded:
                self.logger.error(f"git {name} failed during {plan.action.value} in {self.repo.directory}")
                raise FileActionError(name, output=result.output, exit_code=result.exit_code)

        self.logger.info(f"Applied {plan.action.value} in {self.repo.directory}")
        return plan
