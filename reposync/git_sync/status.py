"""Parsing of ``git status --porcelain`` output into file status records."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List


class FileState(Enum):
    """Which side of the index a record describes."""
    STAGED = "staged"
    UNSTAGED = "unstaged"
    UNTRACKED = "untracked"


# Flag pairs git reports for unmerged paths
CONFLICT_LABELS = {
    "DD": "unmerged, deleted locally and remotely",
    "AU": "unmerged, added locally and modified remotely",
    "UD": "unmerged, modified locally and deleted remotely",
    "UA": "unmerged, modified locally and added remotely",
    "DU": "unmerged, deleted locally and modified remotely",
    "AA": "unmerged, added locally and remotely",
    "UU": "unmerged, modified locally and remotely",
}

CHANGE_LABELS = {
    "M": "modified",
    "R": "renamed",
    "C": "copied",
    "A": "added",
    "D": "deleted",
}

_UNSTAGED_RE = re.compile(r"^(\s[A-Z]|[A-Z]{2})")
_STAGED_RE = re.compile(r"^[A-Z]{1,2}")
_UNTRACKED_RE = re.compile(r"^\s*\?\?")


@dataclass
class FileStatus:
    """One changed path as seen from one side of the index."""
    status: FileState
    status_string: str
    change: str = ""
    file_name: str = ""

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "status_string": self.status_string,
            "change": self.change,
            "file_name": self.file_name,
        }


def classify_line(line: str) -> List[FileStatus]:
    """
    Classify one porcelain line.

    The clauses are evaluated independently, so a path changed in both
    the index and the work tree produces a staged and an unstaged record.
    """
    records = []
    if _UNSTAGED_RE.match(line):
        records.append(FileStatus(status=FileState.UNSTAGED, status_string=line))
    if _STAGED_RE.match(line):
        records.append(FileStatus(status=FileState.STAGED, status_string=line))
    if _UNTRACKED_RE.match(line):
        records.append(FileStatus(status=FileState.UNTRACKED, status_string=line))
    return records


def describe_change(status: FileState, flags: str) -> str:
    """Human label for a flag pair; conflict pairs win over single flags."""
    if flags in CONFLICT_LABELS:
        return CONFLICT_LABELS[flags]
    if len(flags) < 2:
        return ""
    flag = flags[1] if status is FileState.UNSTAGED else flags[0]
    return CHANGE_LABELS.get(flag, "")


_C_ESCAPES = {
    "a": 0x07, "b": 0x08, "t": 0x09, "n": 0x0A, "v": 0x0B, "f": 0x0C, "r": 0x0D,
    '"': 0x22, "\\": 0x5C,
}
_OCTAL_ESCAPE_RE = re.compile(r"[0-7]{3}")


def _closing_quote(text: str) -> int:
    """Index of the quote ending the quoted path that starts ``text``, or -1."""
    i = 1
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == '"':
            return i
        i += 1
    return -1


def unquote_path(path: str) -> str:
    """
    Undo git's C-style quoting of a path.

    git wraps paths holding spaces, quotes, control or non-ASCII characters
    in double quotes and escapes the bytes, e.g. ``"\\303\\251t\\303\\251.txt"``.
    Unquoted paths are returned unchanged. Bytes that are not valid UTF-8
    are kept with surrogateescape so the name still reaches the filesystem.
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path

    body = path[1:-1]
    decoded = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char != "\\" or i + 1 >= len(body):
            decoded.extend(char.encode("utf-8"))
            i += 1
            continue
        octal = _OCTAL_ESCAPE_RE.match(body, i + 1)
        if octal:
            decoded.append(int(octal.group(), 8) & 0xFF)
            i = octal.end()
        elif body[i + 1] in _C_ESCAPES:
            decoded.append(_C_ESCAPES[body[i + 1]])
            i += 2
        else:
            decoded.extend(body[i:i + 2].encode("utf-8"))
            i += 2
    return decoded.decode("utf-8", errors="surrogateescape")


def split_rename(paths: str) -> str:
    """Destination of a ``source -> destination`` pair, either side possibly quoted."""
    if paths.startswith('"'):
        end = _closing_quote(paths)
        if end != -1 and paths[end + 1:].startswith(" -> "):
            return paths[end + 5:]
    elif " -> " in paths:
        return paths.split(" -> ", 1)[1]
    return paths


def add_file_name_and_change(record: FileStatus) -> FileStatus:
    """Fill in ``change`` and ``file_name`` from the raw status string."""
    # status_string looks like "R  bar.txt -> foo.txt"
    line = record.status_string
    flags = line[:2]
    record.change = describe_change(record.status, flags)

    file_name = line[3:]
    # Both records of an "RM" line name the destination, whatever their label
    if "R" in flags or "C" in flags:
        file_name = split_rename(file_name)
    record.file_name = unquote_path(file_name)
    return record


def parse_file_status(output: str) -> List[FileStatus]:
    """
    Parse porcelain status text into records, preserving output order.

    Args:
        output: Raw output of ``git status --porcelain``

    Returns:
        List of FileStatus records; an empty list for a clean tree
    """
    records: List[FileStatus] = []
    for raw_line in output.split("\n"):
        line = raw_line.rstrip()
        if not line:
            continue
        records.extend(classify_line(line))
    return [add_file_name_and_change(record) for record in records]
