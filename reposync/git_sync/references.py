"""Branch, remote and head reference resolution for a working copy."""

import json
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, TYPE_CHECKING

from .error_types import HeadPayloadError

if TYPE_CHECKING:
    from .repository import Repository


# Prints {"remote": ..., "local": ...}; remote and branch arrive as $1 and $2
HEAD_REF_SCRIPT = (
    'remote=$(git ls-remote "$1" "$2"); '
    'local=$(git show-ref --hash "$2" | head -n 1); '
    'printf \'{"remote": "%s", "local": "%s"}\\n\' "$remote" "$local"'
)

_MISSING_REMOTE_RE = re.compile(r"does not exist|does not appear to be a git repository")


@dataclass
class BranchInfo:
    """Live branch state of a working copy."""
    branch: Optional[str]
    remote: Optional[str]
    head_hash: str


@dataclass
class RemoteDescriptor:
    """A configured remote."""
    name: str
    url: str


@dataclass
class HeadComparison:
    """Local and remote head of a branch; equal strings mean no divergence."""
    local: str
    remote: str

    @property
    def diverged(self) -> bool:
        return self.local != self.remote


def parse_current_branch(output: str) -> Optional[str]:
    """Pick the branch marked with ``*`` out of ``git branch`` output."""
    for line in output.split("\n"):
        line = line.strip()
        if not line.startswith("*"):
            continue
        name = re.sub(r"^\*\s*", "", line)
        # "(HEAD detached at 1a2b3c4)" and friends
        if not name or name.startswith("("):
            return None
        return name
    return None


def parse_remotes(output: str) -> List[RemoteDescriptor]:
    """Parse ``git remote -v`` output, keeping one descriptor per remote name."""
    remotes = []
    seen = set()
    for line in output.split("\n"):
        line = line.strip()
        if not line or re.search(r"\(fetch\)$", line):
            continue
        parts = line.split()
        if len(parts) < 2 or parts[0] in seen:
            continue
        seen.add(parts[0])
        remotes.append(RemoteDescriptor(name=parts[0], url=parts[1]))
    return remotes


def parse_head_payload(output: str) -> HeadComparison:
    """
    Parse the one-line head comparison payload.

    Whitespace (including embedded newlines and the tab that ls-remote
    prints between hash and ref name) is normalized to single spaces before
    decoding; each value is reduced to its first token.

    Raises:
        HeadPayloadError: the output is not the expected payload
    """
    normalized = re.sub(r"\s", " ", output).strip()
    try:
        payload = json.loads(normalized)
    except ValueError:
        raise HeadPayloadError(output, output=output, operation="head_ref")

    if not isinstance(payload, dict):
        raise HeadPayloadError(output, output=output, operation="head_ref")

    def first_token(value) -> str:
        if not isinstance(value, str):
            raise HeadPayloadError(output, output=output, operation="head_ref")
        stripped = value.strip()
        return stripped.split(" ")[0] if stripped else ""

    return HeadComparison(
        local=first_token(payload.get("local") or ""),
        remote=first_token(payload.get("remote") or ""),
    )


class ReferenceResolver:
    """Answers branch and remote questions about one repository handle."""

    def __init__(self, repo: "Repository"):
        self.repo = repo
        self.logger = logging.getLogger('reposync.git_sync.references')

    def current_branch(self) -> Optional[str]:
        """Name of the checked out branch, or None when HEAD is detached."""
        result = self.repo.git("branch", "--no-color")
        return parse_current_branch(result.output)

    def remote_of_branch(self, branch: str) -> Optional[str]:
        """Remote configured as upstream of ``branch``, if any."""
        result = self.repo.git("config", f"branch.{branch}.remote")
        remote = result.output.strip()
        if not result.succeeded or not remote:
            return None
        return remote

    def local_branch_info(self) -> BranchInfo:
        """Current branch, its tracking remote and the head commit."""
        ref = self.repo.git("symbolic-ref", "HEAD")
        branch = None
        if ref.succeeded:
            branch = ref.output.strip().removeprefix("refs/heads/") or None
        else:
            self.logger.debug(f"HEAD is detached in {self.repo.directory}")

        head = self.repo.git("rev-parse", "HEAD")
        return BranchInfo(
            branch=branch,
            remote=self.remote_of_branch(branch) if branch else None,
            head_hash=head.output.strip() if head.succeeded else "",
        )

    def list_remotes(self) -> List[RemoteDescriptor]:
        result = self.repo.git("remote", "-v")
        return parse_remotes(result.output)

    def remote_and_local_head_ref(self, branch: str, remote: str) -> HeadComparison:
        """
        Compare the remote's head of ``branch`` with the local one.

        A missing working copy or remote is an expected state during first
        time setup and yields a sentinel comparison instead of an error.

        Raises:
            HeadPayloadError: the combined query printed a malformed payload
        """
        missing = HeadComparison(local=f"{self.repo.directory} does not exist", remote="")
        if not self.repo.directory.is_dir():
            return missing

        result = self.repo.cmd(["sh", "-c", HEAD_REF_SCRIPT, "reposync-head-ref", remote, branch])
        if _MISSING_REMOTE_RE.search(result.output):
            self.logger.debug(f"Remote {remote} not available for {self.repo.directory}")
            return missing

        return parse_head_payload(result.output)

    def has_remote_changes(self, branch: str, remote: str) -> bool:
        """
        True when the local and remote heads of ``branch`` differ.

        Whether the local side is ahead, behind or diverged is not computed.
        """
        comparison = self.remote_and_local_head_ref(branch, remote)
        return comparison.diverged
