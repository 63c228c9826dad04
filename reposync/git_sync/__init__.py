"""Git working-copy synchronization for reposync."""

from .actions import ActionPlan, FileAction, plan_file_action
from .error_types import (
    ErrorCategory, GitSyncError, StatusError, FileActionError, StashError, StashPopError,
    FetchError, CheckoutError, PullError, PushError, CommitError, CloneError, InitError,
    RescueError, HeadPayloadError
)
from .manager import RepositoryManager, get_repository_manager
from .references import BranchInfo, HeadComparison, RemoteDescriptor
from .repository import Repository
from .runner import CommandFailure, CommandResult, CommandRunner, CommandSuccess, LogSink
from .status import FileState, FileStatus, parse_file_status
from .update import UpdateContext, UpdateState
from .utils import UpdateResult

__all__ = [
    'ActionPlan',
    'BranchInfo',
    'CheckoutError',
    'CloneError',
    'CommandFailure',
    'CommandResult',
    'CommandRunner',
    'CommandSuccess',
    'CommitError',
    'ErrorCategory',
    'FetchError',
    'FileAction',
    'FileActionError',
    'FileState',
    'FileStatus',
    'GitSyncError',
    'HeadComparison',
    'HeadPayloadError',
    'InitError',
    'LogSink',
    'PullError',
    'PushError',
    'RemoteDescriptor',
    'Repository',
    'RepositoryManager',
    'RescueError',
    'StashError',
    'StashPopError',
    'StatusError',
    'UpdateContext',
    'UpdateResult',
    'UpdateState',
    'get_repository_manager',
    'parse_file_status',
    'plan_file_action',
]
