"""
repo-sync - credential-scoped repository synchronization.

Prepares a local working copy of a remote repository before a deployment
step runs, keeping the access token confined to a throwaway credential home.
"""

from repo_sync.__version__ import (
    __version__,
    __version_info__,
    get_version,
    get_version_info,
    TRANSPORTS,
)

__all__ = [
    "__version__",
    "__version_info__",
    "get_version",
    "get_version_info",
    "TRANSPORTS",
]
