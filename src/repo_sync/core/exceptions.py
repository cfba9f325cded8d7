"""Error taxonomy and process exit codes for repository synchronization."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Optional


class ExitCode(IntEnum):
    """Process exit codes, one per distinguishable outcome."""

    OK = 0
    USAGE = 2
    INPUT_ABORTED = 3
    EMPTY_SECRET = 4
    INVALID_REPOSITORY_URL = 5
    INVALID_PORT = 6
    DIRECTORY_CONFLICT = 10
    INVALID_USERNAME = 11
    SCOPE_CREATION = 12
    REPOSITORY_ACCESS = 13
    REMOTE_CORRECTION = 14
    FETCH = 15
    CHECKOUT = 16
    LOCAL_CHECKOUT = 17
    BRANCH_NOT_FOUND = 18
    PULL = 19
    CLONE = 20
    CLONE_CHECKOUT = 22
    POST_SYNC_DIRECTORY_MISSING = 24
    DIVERGED_HISTORY = 25
    INTERRUPTED = 130


class ErrorKind(str, Enum):
    """Failure kinds reported in a SyncResult."""

    INPUT_ABORTED = "input_aborted"
    EMPTY_SECRET = "empty_secret"
    INVALID_USERNAME = "invalid_username"
    INVALID_REPOSITORY_URL = "invalid_repository_url"
    INVALID_PORT = "invalid_port"
    SCOPE_CREATION = "scope_creation"
    DIRECTORY_CONFLICT = "directory_conflict"
    REPOSITORY_ACCESS = "repository_access"
    REMOTE_CORRECTION = "remote_correction"
    FETCH_FAILURE = "fetch_failure"
    BRANCH_NOT_FOUND = "branch_not_found"
    CHECKOUT_FAILURE = "checkout_failure"
    LOCAL_CHECKOUT_FAILURE = "local_checkout_failure"
    CLONE_CHECKOUT_FAILURE = "clone_checkout_failure"
    DIVERGED_HISTORY = "diverged_history"
    PULL_FAILURE = "pull_failure"
    CLONE_FAILURE = "clone_failure"
    POST_SYNC_DIRECTORY_MISSING = "post_sync_directory_missing"
    INTERRUPTED = "interrupted"


class RepoSyncError(Exception):
    """Base error for repository synchronization failures."""

    error_kind: Optional[ErrorKind] = None
    exit_code: ExitCode = ExitCode.USAGE

    def __init__(self, message: str, *, command: Optional[str] = None) -> None:
        super().__init__(message)
        self.command = command


class InputAborted(RepoSyncError):
    """Input stream closed while a value was being collected."""

    error_kind = ErrorKind.INPUT_ABORTED
    exit_code = ExitCode.INPUT_ABORTED


class EmptySecret(RepoSyncError):
    """An access token is required but none was supplied."""

    error_kind = ErrorKind.EMPTY_SECRET
    exit_code = ExitCode.EMPTY_SECRET


class InvalidUsername(RepoSyncError):
    """The credential principal could not be read or is malformed."""

    error_kind = ErrorKind.INVALID_USERNAME
    exit_code = ExitCode.INVALID_USERNAME


class InvalidRepositoryURL(RepoSyncError):
    """Repository URL uses an unsupported scheme or has no usable name."""

    error_kind = ErrorKind.INVALID_REPOSITORY_URL
    exit_code = ExitCode.INVALID_REPOSITORY_URL


class InvalidPort(RepoSyncError):
    """Container port is not a number in the TCP range."""

    error_kind = ErrorKind.INVALID_PORT
    exit_code = ExitCode.INVALID_PORT


class ScopeCreationError(RepoSyncError):
    """The temporary credential home could not be created."""

    error_kind = ErrorKind.SCOPE_CREATION
    exit_code = ExitCode.SCOPE_CREATION


class DirectoryConflict(RepoSyncError):
    """Target directory exists but is not a managed checkout."""

    error_kind = ErrorKind.DIRECTORY_CONFLICT
    exit_code = ExitCode.DIRECTORY_CONFLICT


class RepositoryAccessError(RepoSyncError):
    """Managed checkout exists but cannot be entered."""

    error_kind = ErrorKind.REPOSITORY_ACCESS
    exit_code = ExitCode.REPOSITORY_ACCESS


class RemoteCorrectionFailure(RepoSyncError):
    """The origin remote could not be pointed at the requested URL."""

    error_kind = ErrorKind.REMOTE_CORRECTION
    exit_code = ExitCode.REMOTE_CORRECTION


class FetchFailure(RepoSyncError):
    """Fetching remote references failed."""

    error_kind = ErrorKind.FETCH_FAILURE
    exit_code = ExitCode.FETCH


class BranchNotFound(RepoSyncError):
    """Requested branch exists neither on the remote nor locally."""

    error_kind = ErrorKind.BRANCH_NOT_FOUND
    exit_code = ExitCode.BRANCH_NOT_FOUND


class CheckoutFailure(RepoSyncError):
    """Checking out the requested branch failed."""

    error_kind = ErrorKind.CHECKOUT_FAILURE
    exit_code = ExitCode.CHECKOUT


class LocalCheckoutFailure(CheckoutFailure):
    """Checking out a branch that exists only locally failed."""

    error_kind = ErrorKind.LOCAL_CHECKOUT_FAILURE
    exit_code = ExitCode.LOCAL_CHECKOUT


class CloneCheckoutFailure(CheckoutFailure):
    """Checking out the branch in a freshly cloned repository failed."""

    error_kind = ErrorKind.CLONE_CHECKOUT_FAILURE
    exit_code = ExitCode.CLONE_CHECKOUT


class DivergedHistory(RepoSyncError):
    """Local branch carries commits its upstream does not have."""

    error_kind = ErrorKind.DIVERGED_HISTORY
    exit_code = ExitCode.DIVERGED_HISTORY


class PullFailure(RepoSyncError):
    """Fast-forward pull failed for a reason other than divergence."""

    error_kind = ErrorKind.PULL_FAILURE
    exit_code = ExitCode.PULL


class CloneFailure(RepoSyncError):
    """Both the shallow clone and the full fallback clone failed."""

    error_kind = ErrorKind.CLONE_FAILURE
    exit_code = ExitCode.CLONE


class PostSyncDirectoryMissing(RepoSyncError):
    """No managed checkout present after clone/update."""

    error_kind = ErrorKind.POST_SYNC_DIRECTORY_MISSING
    exit_code = ExitCode.POST_SYNC_DIRECTORY_MISSING


class Interrupted(RepoSyncError):
    """Run terminated by a signal."""

    error_kind = ErrorKind.INTERRUPTED
    exit_code = ExitCode.INTERRUPTED

    def __init__(self, signum: int) -> None:
        super().__init__(f"interrupted by signal {signum}")
        self.signum = signum


_EXIT_CODES = {
    cls.error_kind: cls.exit_code
    for cls in (
        InputAborted,
        EmptySecret,
        InvalidUsername,
        InvalidRepositoryURL,
        InvalidPort,
        ScopeCreationError,
        DirectoryConflict,
        RepositoryAccessError,
        RemoteCorrectionFailure,
        FetchFailure,
        BranchNotFound,
        CheckoutFailure,
        LocalCheckoutFailure,
        CloneCheckoutFailure,
        DivergedHistory,
        PullFailure,
        CloneFailure,
        PostSyncDirectoryMissing,
        Interrupted,
    )
}


def exit_code_for(error_kind: Optional[ErrorKind]) -> ExitCode:
    """Map a failure kind to its process exit code (OK for no failure)."""
    if error_kind is None:
        return ExitCode.OK
    return _EXIT_CODES[error_kind]
