"""
Run orchestration: scope acquisition, synchronization and guaranteed cleanup.
"""

from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path
from typing import Optional

from repo_sync.config import Settings, settings as default_settings
from repo_sync.core.exceptions import Interrupted, PostSyncDirectoryMissing, RepoSyncError
from repo_sync.core.lifecycle import interrupt_guard
from repo_sync.schemas.sync import InputRecord, SyncResult, SyncState, Transport
from repo_sync.services.credential_scope import CredentialScope
from repo_sync.services.git_runner import GitRunner
from repo_sync.services.masking import mask_secret, mask_url_credentials
from repo_sync.services.operation_log import OperationLog
from repo_sync.services.repository_sync import RepositorySync


def execute_sync(
    record: InputRecord,
    settings: Optional[Settings] = None,
    *,
    work_dir: Optional[Path] = None,
    log: Optional[OperationLog] = None,
) -> SyncResult:
    """Synchronize ``record`` into ``work_dir`` and return the run's result.

    The credential scope (HTTPS only) is released before this function
    returns or raises, including when the run is interrupted by a signal.
    Domain failures are reported through the result; ``Interrupted``
    propagates once cleanup is done.
    """
    settings = settings or default_settings
    work_dir = Path(work_dir if work_dir is not None else settings.work_dir)

    with ExitStack() as stack:
        if log is None:
            log = stack.enter_context(OperationLog.for_run(settings))
        _record_parameters(log, record)
        stack.enter_context(interrupt_guard())

        overlay = {}
        if record.transport is Transport.HTTPS:
            try:
                scope = CredentialScope.acquire(
                    record.credential_principal,
                    record.secret.get_secret_value(),
                    record.host,
                    settings=settings,
                )
            except Interrupted:
                raise
            except RepoSyncError as exc:
                log.error(str(exc))
                return _failure(record, work_dir, exc)
            stack.callback(_note_scope_removed, log)
            stack.enter_context(scope)
            overlay = scope.bind()
            log.record(f"Created temporary HOME for git with {settings.credential_file_name} for {record.host} (secure)")
            if record.repository_url.lower().startswith("http://"):
                log.warning("repository URL is plain http; the token travels unencrypted")

        runner = GitRunner(log, settings=settings, env_overlay=overlay)
        sync = RepositorySync(record, runner, work_dir, settings=settings)
        result = sync.run()
        if result.ok:
            result = _post_sync_check(sync, result, log)
        return result


def _record_parameters(log: OperationLog, record: InputRecord) -> None:
    log.record("START: repository sync")
    parameters = (
        f"Parameters: repo={mask_url_credentials(record.repository_url)}, "
        f"branch={record.branch}, local_dir={record.local_directory_name}"
    )
    if record.deployment is not None:
        target = record.deployment
        parameters += (
            f", remote={target.ssh_user}@{target.host}, ssh_key={target.ssh_key_path}, "
            f"container_port={target.container_port}"
        )
    log.record(parameters)
    if record.transport is Transport.HTTPS:
        log.record(f"Masked PAT: {mask_secret(record.secret.get_secret_value())}")
    log.record(
        f"Section 2: Clone/Update repository: {mask_url_credentials(record.repository_url)} "
        f"-> local dir: {record.local_directory_name} (branch: {record.branch})"
    )


def _post_sync_check(sync: RepositorySync, result: SyncResult, log: OperationLog) -> SyncResult:
    if (sync.target / ".git").is_dir():
        log.record(f"Repository ready at {sync.target.resolve()} (commit: {result.resolved_commit})")
        return result
    exc = PostSyncDirectoryMissing("repository not present after clone/update")
    log.error(str(exc))
    return result.model_copy(
        update={
            "final_state": SyncState.FAILED,
            "resolved_commit": None,
            "error_kind": exc.error_kind,
            "error_message": str(exc),
        }
    )


def _note_scope_removed(log: OperationLog) -> None:
    log.record("Note: temporary HOME removed (sensitive creds not persisted)")


def _failure(record: InputRecord, work_dir: Path, exc: RepoSyncError) -> SyncResult:
    return SyncResult(
        final_state=SyncState.FAILED,
        local_path=work_dir / record.local_directory_name,
        branch=record.branch,
        error_kind=exc.error_kind,
        error_message=str(exc),
    )
