"""Pulling past untracked files that would otherwise be overwritten."""

import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, List, TYPE_CHECKING

from .error_types import RescueError
from .runner import CommandResult

if TYPE_CHECKING:
    from .repository import Repository


UNTRACKED_OVERWRITE_SIGNATURE = "untracked working tree files would be overwritten"


def is_untracked_overwrite_failure(result: CommandResult) -> bool:
    return not result.succeeded and UNTRACKED_OVERWRITE_SIGNATURE in result.output


def parse_overwritten_files(output: str) -> List[str]:
    """
    Extract the offending paths from a failed pull.

    git lists them indented on the lines following the signature line::

        error: The following untracked working tree files would be overwritten by merge:
                data.txt
        Please move or remove them before you merge.
    """
    lines = output.strip().split("\n")
    index = next(
        (i for i, line in enumerate(lines) if UNTRACKED_OVERWRITE_SIGNATURE in line),
        None
    )
    if index is None:
        return []
    return [line.strip() for line in lines[index + 1:] if line[:1].isspace() and line.strip()]


class UntrackedFileRescue:
    """Moves blocking untracked files aside for the duration of a pull."""

    def __init__(self, repo: "Repository"):
        self.repo = repo
        self.logger = logging.getLogger('reposync.git_sync.rescue')

    @property
    def quarantine_dir(self) -> Path:
        return self.repo.directory / self.repo.config.rescue_dir_name

    @contextmanager
    def files_moved_elsewhere(self, files: List[str]) -> Generator[List[str], None, None]:
        """
        Move ``files`` into the quarantine directory and always move them back.

        Relative directory structure is preserved inside the quarantine.
        Files that cannot be moved back stay in quarantine and are reported
        with a RescueError once every restore has been attempted. When moving
        a file aside fails, the files moved so far are put back and a
        RescueError is raised before the body runs.
        """
        moved: List[str] = []
        try:
            for name in files:
                source = self.repo.directory / name
                target = self.quarantine_dir / name
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(source), str(target))
                moved.append(name)
                self.logger.debug(f"Moved {name} to {target}")
        except OSError as e:
            self.logger.error(f"Could not move untracked files into {self.quarantine_dir}: {e}")
            self._restore(moved)
            raise RescueError(
                f"Could not move untracked files into {self.quarantine_dir}: {e}",
                unrestored=[],
                restored=list(moved)
            ) from e

        try:
            yield moved
        finally:
            self._restore(moved)

    def _restore(self, moved: List[str]) -> None:
        unrestored = []
        for name in moved:
            source = self.quarantine_dir / name
            target = self.repo.directory / name
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(source), str(target))
            except OSError as e:
                self.logger.error(f"Could not restore {name} from {self.quarantine_dir}: {e}")
                unrestored.append(name)

        if unrestored:
            raise RescueError(
                f"Untracked files left in {self.quarantine_dir}: {', '.join(unrestored)}",
                unrestored=unrestored,
                restored=[name for name in moved if name not in unrestored]
            )

        if moved:
            self.logger.info(f"Restored {len(moved)} untracked file(s) in {self.repo.directory}")
        self._prune_empty_dirs(moved)

    def _prune_empty_dirs(self, moved: List[str]) -> None:
        """Remove quarantine directories left empty; anything else stays put."""
        candidates = set()
        for name in moved:
            parent = (self.quarantine_dir / name).parent
            while parent != self.quarantine_dir and self.quarantine_dir in parent.parents:
                candidates.add(parent)
                parent = parent.parent
        candidates.add(self.quarantine_dir)

        # Deepest first so parents are empty by the time they are reached
        for directory in sorted(candidates, key=lambda p: len(p.parts), reverse=True):
            try:
                directory.rmdir()
            except OSError:
                pass

    def pull(self, branch: str, remote: str) -> CommandResult:
        """
        Pull, retrying once with blocking untracked files moved out of the way.

        Returns:
            The first pull's result when it succeeded or failed for another
            reason, otherwise the retried pull's result
        """
        initial_pull = self.repo.pull(branch, remote)
        if initial_pull.succeeded or not is_untracked_overwrite_failure(initial_pull):
            return initial_pull

        overwritten_files = parse_overwritten_files(initial_pull.output)
        self.logger.warning(
            f"Pull into {self.repo.directory} blocked by untracked files: {', '.join(overwritten_files)}"
        )

        with self.files_moved_elsewhere(overwritten_files):
            retried_pull = self.repo.pull(branch, remote)

        if not retried_pull.succeeded:
            self.logger.error(f"Pull into {self.repo.directory} failed after moving untracked files")
        return retried_pull
