"""Command execution for git working copies."""

import logging
import os
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .performance_logger import get_performance_logger


# Keeps git's messages in English so output signatures can be matched
COMMAND_ENVIRONMENT = {
    "LC_ALL": "C",
    "LANG": "C",
    "GIT_TERMINAL_PROMPT": "0",
}

MISSING_DIRECTORY_EXIT_CODE = 127


@dataclass(frozen=True)
class CommandSuccess:
    """A command that exited with status 0."""
    command: Tuple[str, ...]
    output: str

    @property
    def exit_code(self) -> int:
        return 0

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class CommandFailure:
    """A command that exited with a non-zero status, or could not be started."""
    command: Tuple[str, ...]
    exit_code: int
    output: str

    @property
    def succeeded(self) -> bool:
        return False


CommandResult = Union[CommandSuccess, CommandFailure]


class LogSink:
    """
    Append-only transcript of commands and their output.

    A sink may be shared between repository handles running in different
    threads; every append happens under a lock and entries are never
    modified afterwards.
    """

    def __init__(self):
        self._entries: List[str] = []
        self._lock = threading.Lock()

    def append(self, text: str) -> None:
        with self._lock:
            self._entries.append(text)

    def entries(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def text(self) -> str:
        return "".join(self.entries())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def format_command(command: Sequence[str]) -> str:
    """Render an argument list the way a user would type it."""
    return shlex.join(command)


class CommandRunner:
    """
    Runs structured argument lists and reports a tagged result.

    Standard output and standard error are captured together. A non-zero
    exit status is reported as a CommandFailure and never raised, since
    callers inspect exit codes themselves.
    """

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self.logger = logging.getLogger('reposync.git_sync.runner')
        self.perf_logger = get_performance_logger()
        self._env = dict(os.environ)
        self._env.update(COMMAND_ENVIRONMENT)
        if env:
            self._env.update(env)

    def run(
        self,
        command: Sequence[str],
        cwd: Path,
        log_sink: Optional[LogSink] = None
    ) -> CommandResult:
        """
        Run ``command`` in ``cwd``.

        Args:
            command: Program and arguments; no shell is involved
            cwd: Working directory, which may differ from the repository directory
            log_sink: Transcript receiving the command line and its output

        Returns:
            CommandSuccess or CommandFailure
        """
        command = tuple(command)
        cwd = Path(cwd)
        command_text = format_command(command)
        self.logger.debug(f"Running '{command_text}' in {cwd}")

        if not cwd.is_dir():
            result: CommandResult = CommandFailure(
                command=command,
                exit_code=MISSING_DIRECTORY_EXIT_CODE,
                output=f"{cwd} does not exist"
            )
            self._record(result, log_sink)
            return result

        start_time = time.time()
        try:
            completed = subprocess.run(
                list(command),
                cwd=str(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                env=self._env,
            )
        except FileNotFoundError:
            result = CommandFailure(
                command=command,
                exit_code=MISSING_DIRECTORY_EXIT_CODE,
                output=f"{command[0]}: command not found"
            )
        except OSError as e:
            result = CommandFailure(command=command, exit_code=1, output=str(e))
        else:
            if completed.returncode == 0:
                result = CommandSuccess(command=command, output=completed.stdout)
            else:
                result = CommandFailure(
                    command=command,
                    exit_code=completed.returncode,
                    output=completed.stdout
                )

        self.perf_logger.log_git_command_performance(command, time.time() - start_time, result.succeeded)
        self._record(result, log_sink)
        return result

    def _record(self, result: CommandResult, log_sink: Optional[LogSink]) -> None:
        if not result.succeeded:
            self.logger.debug(f"Command '{format_command(result.command)}' exited with {result.exit_code}")
        if log_sink is not None:
            log_sink.append(f"$ {format_command(result.command)}\n{result.output}")
