"""Scripted command runner shared by the unit tests."""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from reposync.git_sync.runner import CommandFailure, CommandRunner, CommandSuccess, LogSink, format_command
from reposync.platform import get_git_executable


class ScriptedRunner(CommandRunner):
    """
    Answers commands from a script instead of running them.

    Responses are matched by argument prefix, git executable stripped.
    ``once`` responses are consumed by their first match and take priority
    over standing ones; anything unmatched succeeds with empty output.
    """

    def __init__(self):
        super().__init__()
        self.calls: List[Tuple[Tuple[str, ...], Path]] = []
        self._once: List[Tuple[Tuple[str, ...], int, str]] = []
        self._standing: List[Tuple[Tuple[str, ...], int, str]] = []

    def respond(self, prefix: Sequence[str], output: str = "", exit_code: int = 0, once: bool = False):
        entry = (tuple(prefix), exit_code, output)
        (self._once if once else self._standing).append(entry)
        return self

    def head_refs(self, local: str, remote: str, once: bool = False):
        """Script the combined head query to print the given hashes."""
        remote_line = f"{remote}\trefs/heads/master" if remote else ""
        payload = f'{{"remote": "{remote_line}", "local": "{local}"}}\n'
        return self.respond(["sh"], payload, once=once)

    def run(self, command: Sequence[str], cwd: Path, log_sink: Optional[LogSink] = None):
        command = tuple(command)
        args = command[1:] if command and command[0] == get_git_executable() else command
        self.calls.append((args, Path(cwd)))

        exit_code, output = 0, ""
        for i, (prefix, code, text) in enumerate(self._once):
            if args[:len(prefix)] == prefix:
                exit_code, output = code, text
                del self._once[i]
                break
        else:
            for prefix, code, text in self._standing:
                if args[:len(prefix)] == prefix:
                    exit_code, output = code, text
                    break

        if exit_code == 0:
            result = CommandSuccess(command=command, output=output)
        else:
            result = CommandFailure(command=command, exit_code=exit_code, output=output)
        if log_sink is not None:
            log_sink.append(f"$ {format_command(command)}\n{output}")
        return result

    @property
    def commands(self) -> List[Tuple[str, ...]]:
        return [args for args, _ in self.calls]

    def git_commands(self, *names: str) -> List[Tuple[str, ...]]:
        """Recorded commands whose first argument is one of ``names``."""
        return [args for args in self.commands if args and args[0] in names]


MUTATING = ("stash", "fetch", "checkout", "pull", "add", "rm", "reset", "commit", "push", "clone", "init")


def mutating_commands(runner: ScriptedRunner) -> List[Tuple[str, ...]]:
    return [args for args in runner.commands if args and args[0] in MUTATING]
