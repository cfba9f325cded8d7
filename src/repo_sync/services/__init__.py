"""Synchronization services."""

from repo_sync.services.credential_scope import CredentialScope
from repo_sync.services.git_runner import GitRunner
from repo_sync.services.masking import mask_secret, mask_sensitive_text, mask_url_credentials
from repo_sync.services.operation_log import LogEntry, OperationLog
from repo_sync.services.repository_sync import RepositorySync
from repo_sync.services.sync_job import execute_sync

__all__ = [
    "CredentialScope",
    "GitRunner",
    "LogEntry",
    "OperationLog",
    "RepositorySync",
    "execute_sync",
    "mask_secret",
    "mask_sensitive_text",
    "mask_url_credentials",
]
