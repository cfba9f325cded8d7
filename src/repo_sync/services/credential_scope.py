"""
Ephemeral credential home for git over HTTPS.

The access token is written to a ``.netrc`` file inside a private temporary
directory. Git subprocesses see it only through the environment overlay
returned by :meth:`CredentialScope.bind`, which points ``HOME`` at that
directory. The directory is wiped on release, and release runs exactly once:
from the context manager, an explicit call, or the ``atexit`` backstop.
"""

from __future__ import annotations

import atexit
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from repo_sync.config import Settings, settings as default_settings
from repo_sync.core.exceptions import RepoSyncError, ScopeCreationError


class CredentialScope:
    """Private directory holding a single machine credential record."""

    def __init__(self, directory: Path, credential_file: Path) -> None:
        self.directory = directory
        self.credential_file = credential_file
        self.is_released = False
        atexit.register(self.release)

    @classmethod
    def acquire(
        cls,
        principal: Optional[str],
        secret: str,
        host: str,
        settings: Optional[Settings] = None,
    ) -> "CredentialScope":
        """Create the scope directory and write the credential file into it."""
        settings = settings or default_settings
        login = principal or settings.default_principal
        parent = str(settings.scope_parent) if settings.scope_parent else None

        try:
            directory = Path(tempfile.mkdtemp(prefix=settings.scope_prefix, dir=parent))
        except OSError as exc:
            raise ScopeCreationError(f"Failed to create temp dir: {exc.strerror or exc}") from None

        credential_file = directory / settings.credential_file_name
        try:
            os.chmod(directory, stat.S_IRWXU)
            fd = os.open(
                credential_file,
                os.O_WRONLY | os.O_CREAT | os.O_EXCL,
                stat.S_IRUSR | stat.S_IWUSR,
            )
            try:
                os.write(fd, _netrc_record(host, login, secret).encode("utf-8"))
                os.fsync(fd)
            finally:
                os.close(fd)
            # exact owner read/write regardless of umask
            os.chmod(credential_file, stat.S_IRUSR | stat.S_IWUSR)
        except OSError as exc:
            shutil.rmtree(directory, ignore_errors=True)
            raise ScopeCreationError(
                f"Failed to write credential file: {exc.strerror or exc}"
            ) from None
        except BaseException:
            shutil.rmtree(directory, ignore_errors=True)
            raise

        return cls(directory, credential_file)

    def bind(self) -> Dict[str, str]:
        """Environment overlay that makes git resolve credentials from the scope."""
        if self.is_released:
            raise RepoSyncError("credential scope already released")
        return {
            "HOME": str(self.directory),
            "GIT_TERMINAL_PROMPT": "0",
        }

    def release(self) -> None:
        """Shred the credential file and remove the scope directory."""
        if self.is_released:
            return

        if self.credential_file.exists():
            try:
                _overwrite(self.credential_file)
            except OSError as exc:
                logger.warning(f"Failed to overwrite credential file before removal: {exc}")
            try:
                self.credential_file.unlink()
            except FileNotFoundError:
                pass

        if self.directory.exists():
            try:
                shutil.rmtree(self.directory)
            except OSError:
                _make_writable(self.directory)
                shutil.rmtree(self.directory)

        self.is_released = True
        atexit.unregister(self.release)

    def __enter__(self) -> "CredentialScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.is_released else "active"
        return f"CredentialScope({str(self.directory)!r}, {state})"


def _netrc_record(host: str, login: str, secret: str) -> str:
    return f"machine {host}\nlogin {login}\npassword {secret}\n"


def _overwrite(path: Path) -> None:
    size = path.stat().st_size
    fd = os.open(path, os.O_WRONLY)
    try:
        os.write(fd, b"\x00" * size)
        os.fsync(fd)
    finally:
        os.close(fd)


def _make_writable(directory: Path) -> None:
    # git may leave read-only files under the scope home
    for root, dirs, files in os.walk(directory):
        os.chmod(root, stat.S_IRWXU)
        for name in files:
            os.chmod(os.path.join(root, name), stat.S_IRUSR | stat.S_IWUSR)
