"""Schemas for repository synchronization."""

from repo_sync.schemas.sync import (
    DeploymentTarget,
    InputRecord,
    RepositoryState,
    SyncResult,
    SyncState,
    Transport,
    derive_directory_name,
    detect_transport,
)

__all__ = [
    "DeploymentTarget",
    "InputRecord",
    "RepositoryState",
    "SyncResult",
    "SyncState",
    "Transport",
    "derive_directory_name",
    "detect_transport",
]
