"""Pydantic models for repository synchronization input and results."""

from __future__ import annotations

import datetime as dt
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from repo_sync.core.exceptions import (
    EmptySecret,
    ErrorKind,
    InvalidPort,
    InvalidRepositoryURL,
    InvalidUsername,
    RepoSyncError,
)

_SCP_LIKE_URL = re.compile(r"^[\w.\-]+@[\w.\-]+:.+")
_PRINCIPAL_PATTERN = re.compile(r"^[^\s:@/]+$")


class Transport(str, Enum):
    """How the repository is reached."""

    HTTPS = "https"
    SSH = "ssh"
    LOCAL = "local"


class RepositoryState(str, Enum):
    """Classification of the target directory before a run."""

    ABSENT = "absent"
    PRESENT_MANAGED = "present_managed"
    PRESENT_UNMANAGED = "present_unmanaged"


class SyncState(str, Enum):
    """States of the reconciliation machine."""

    START = "start"
    CLONE_FRESH = "clone_fresh"
    UPDATE_EXISTING = "update_existing"
    BRANCH_RESOLUTION = "branch_resolution"
    FAST_FORWARD = "fast_forward"
    READY = "ready"
    FAILED = "failed"


def detect_transport(repo_url: str) -> Transport:
    """Classify ``repo_url`` or raise InvalidRepositoryURL."""
    lowered = repo_url.lower()
    if lowered.startswith(("http://", "https://")):
        if "@" in urlparse(repo_url).netloc:
            raise InvalidRepositoryURL(
                "Repository URL must not embed credentials; the token is prompted for separately"
            )
        return Transport.HTTPS
    if lowered.startswith("ssh://") or _SCP_LIKE_URL.match(repo_url):
        return Transport.SSH
    if lowered.startswith("file://"):
        return Transport.LOCAL
    raise InvalidRepositoryURL(
        "Repository URL must start with http(s)://, ssh://, file:// or git@ (SSH)"
    )


def derive_directory_name(repo_url: str) -> str:
    """Last path segment of the URL without a trailing slash or ``.git``."""
    tail = re.split(r"[/:]", repo_url.rstrip("/"))[-1]
    if tail.endswith(".git"):
        tail = tail[:-4]
    tail = tail.rstrip("/")
    if not tail or tail in {".", ".."}:
        raise InvalidRepositoryURL("Cannot derive a directory name from the repository URL")
    return tail


class DeploymentTarget(BaseModel):
    """Remote host details handed through to the deployment step."""

    model_config = ConfigDict(frozen=True)

    ssh_user: str = Field(..., min_length=1, description="Remote SSH username")
    host: str = Field(..., min_length=1, description="Remote server IP or hostname")
    ssh_key_path: Path = Field(..., description="SSH private key path")
    container_port: int = Field(..., ge=1, le=65535, description="Application container port")

    @field_validator("ssh_key_path", mode="before")
    @classmethod
    def _expand_key_path(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Path(os.path.expanduser(value))
        return value

    @field_validator("container_port", mode="before")
    @classmethod
    def _numeric_port(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value.isdigit():
                raise ValueError("Port must be a number")
            return int(value)
        return value


class InputRecord(BaseModel):
    """Validated, immutable description of one synchronization run."""

    model_config = ConfigDict(frozen=True)

    repository_url: str = Field(..., min_length=1, description="Repository URL")
    branch: str = Field("main", min_length=1, description="Branch to synchronize")
    credential_principal: Optional[str] = Field(None, description="Username for the credential file")
    secret: SecretStr = Field(SecretStr(""), description="Access token")
    local_directory_name: str = Field("", description="Directory the checkout lives in")
    deployment: Optional[DeploymentTarget] = None

    @field_validator("repository_url")
    @classmethod
    def _supported_url(cls, value: str) -> str:
        value = value.strip()
        detect_transport(value)
        return value

    @field_validator("credential_principal")
    @classmethod
    def _valid_principal(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not _PRINCIPAL_PATTERN.match(value):
            raise InvalidUsername("Username must not contain whitespace, ':', '@' or '/'")
        return value

    @model_validator(mode="before")
    @classmethod
    def _derive_directory(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("local_directory_name"):
            url = data.get("repository_url")
            if isinstance(url, str) and url.strip():
                data = {**data, "local_directory_name": derive_directory_name(url.strip())}
        return data

    @model_validator(mode="after")
    def _require_secret(self) -> "InputRecord":
        if self.transport is Transport.HTTPS and not self.secret.get_secret_value():
            raise EmptySecret("Access token cannot be empty for HTTP(S) repositories")
        return self

    @property
    def transport(self) -> Transport:
        return detect_transport(self.repository_url)

    @property
    def host(self) -> str:
        """Hostname used as the credential file's machine matcher."""
        return urlparse(self.repository_url).hostname or ""

    @classmethod
    def build(cls, **values: Any) -> "InputRecord":
        """Construct a record, mapping validation failures to the error taxonomy."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise _taxonomy_error(exc) from None


_FIELD_ERRORS = {
    "repository_url": InvalidRepositoryURL,
    "credential_principal": InvalidUsername,
    "secret": EmptySecret,
    "container_port": InvalidPort,
}


def _taxonomy_error(exc: ValidationError) -> RepoSyncError:
    errors = exc.errors()
    for error in errors:
        for part in error.get("loc", ()):
            error_cls = _FIELD_ERRORS.get(part)
            if error_cls is not None:
                return error_cls(f"{part}: {error.get('msg')}")
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return RepoSyncError(f"{location}: {first.get('msg', 'invalid value')}")


class SyncResult(BaseModel):
    """Outcome of one synchronization run."""

    model_config = ConfigDict(frozen=True)

    final_state: SyncState
    local_path: Path
    branch: str
    resolved_commit: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    finished_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))

    @property
    def ok(self) -> bool:
        return self.final_state is SyncState.READY

    def summary(self) -> Dict[str, Any]:
        return {
            "state": self.final_state.value,
            "path": str(self.local_path),
            "branch": self.branch,
            "commit": self.resolved_commit,
            "error": self.error_kind.value if self.error_kind else None,
        }
