"""Error types and categorization for Git synchronization operations."""

from enum import Enum
from typing import Any, List, Optional


class ErrorCategory(Enum):
    """Categories of Git sync errors for appropriate handling."""
    OPERATION_FAILURE = "operation_failure"
    CONTRACT_VIOLATION = "contract_violation"
    RESCUE = "rescue"
    PRECONDITION = "precondition"


class GitSyncError(Exception):
    """
    A git command failed in a way the caller has to deal with.

    The raw combined output of the failing command is kept verbatim in
    ``output`` so that conflicts can be resolved by hand.
    """

    error_code = "GIT_OPERATION_FAILED"
    category = ErrorCategory.OPERATION_FAILURE

    def __init__(
        self,
        message: str,
        output: str = "",
        exit_code: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.output = output
        self.exit_code = exit_code
        self.operation = operation
        # Set by the safe-update orchestrator to the UpdateContext at the point of failure
        self.context: Any = None


class StatusError(GitSyncError):
    error_code = "GIT_STATUS_FAILED"


class FileActionError(GitSyncError):
    """A stage/unstage/discard sub-command failed; earlier ones are not rolled back."""

    error_code = "GIT_FILE_ACTION_FAILED"

    def __init__(self, sub_operation: str, output: str = "", exit_code: Optional[int] = None):
        super().__init__(
            f"Error when trying to do git {sub_operation}: {output}",
            output=output,
            exit_code=exit_code,
            operation=sub_operation,
        )
        self.sub_operation = sub_operation


class StashError(GitSyncError):
    error_code = "GIT_STASH_FAILED"


class StashPopError(GitSyncError):
    error_code = "GIT_STASH_POP_FAILED"


class FetchError(GitSyncError):
    error_code = "GIT_FETCH_FAILED"


class CheckoutError(GitSyncError):
    error_code = "GIT_CHECKOUT_FAILED"

    def __init__(self, ref: str, output: str = "", exit_code: Optional[int] = None):
        super().__init__(f"Failed to checkout {ref}: {output}", output=output,
                         exit_code=exit_code, operation="checkout")
        self.ref = ref


class PullError(GitSyncError):
    error_code = "GIT_PULL_FAILED"


class PushError(GitSyncError):
    error_code = "GIT_PUSH_FAILED"
    category = ErrorCategory.PRECONDITION


class CommitError(GitSyncError):
    error_code = "GIT_COMMIT_FAILED"


class CloneError(GitSyncError):
    error_code = "GIT_CLONE_FAILED"


class InitError(GitSyncError):
    error_code = "GIT_INIT_FAILED"


class RescueError(GitSyncError):
    """
    Moving untracked files aside or back failed.

    ``unrestored`` lists files left in quarantine, ``restored`` the ones
    that are back at their original path.
    """

    error_code = "GIT_RESCUE_RESTORE_FAILED"
    category = ErrorCategory.RESCUE

    def __init__(
        self,
        message: str,
        unrestored: List[str],
        output: str = "",
        restored: Optional[List[str]] = None,
    ):
        super().__init__(message, output=output, operation="rescue")
        self.unrestored = unrestored
        self.restored = restored or []


class HeadPayloadError(GitSyncError):
    """The head-comparison query printed something that is not the expected payload."""

    error_code = "GIT_HEAD_PAYLOAD_MALFORMED"
    category = ErrorCategory.CONTRACT_VIOLATION
