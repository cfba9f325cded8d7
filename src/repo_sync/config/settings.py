"""
Configuration settings for repo-sync.

This module defines all application settings using Pydantic Settings.
Settings can be configured via environment variables or .env file.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application Settings
    app_name: str = "Repository Sync"
    debug: bool = Field(default=False, description="Verbose diagnostics", alias="REPO_SYNC_DEBUG")

    # Git Settings
    git_binary: str = Field(default="git", description="git executable", alias="REPO_SYNC_GIT_BINARY")
    clone_depth: int = Field(default=1, ge=1, description="Depth of the shallow branch clone", alias="REPO_SYNC_CLONE_DEPTH")
    command_timeout: Optional[int] = Field(
        default=600,
        description="Timeout in seconds for a single git command (None disables)",
        alias="REPO_SYNC_COMMAND_TIMEOUT",
    )
    remote_name: str = Field(default="origin", description="Name of the managed remote", alias="REPO_SYNC_REMOTE_NAME")
    default_branch: str = Field(default="main", description="Branch used when none is requested", alias="REPO_SYNC_DEFAULT_BRANCH")
    require_branch_on_clone: bool = Field(
        default=False,
        description="Fail instead of staying on the default branch when a fresh clone lacks the branch",
        alias="REPO_SYNC_REQUIRE_BRANCH_ON_CLONE",
    )

    # Credential Scope Settings
    default_principal: str = Field(
        default="x-access-token",
        description="Login written to the credential file when no username is given",
        alias="REPO_SYNC_DEFAULT_PRINCIPAL",
    )
    credential_file_name: str = Field(default=".netrc", description="Credential file inside the scope", alias="REPO_SYNC_CREDENTIAL_FILE")
    scope_prefix: str = Field(default="repo-sync-", description="Prefix of the scope directory", alias="REPO_SYNC_SCOPE_PREFIX")
    scope_parent: Optional[Path] = Field(
        default=None,
        description="Parent directory for credential scopes (system temp dir if unset)",
        alias="REPO_SYNC_SCOPE_PARENT",
    )

    # Working Directory
    work_dir: Path = Field(default=Path("."), description="Directory the checkout is placed in", alias="REPO_SYNC_WORK_DIR")

    # logging
    log_dir: Path = Field(default=Path("."), description="Directory for operation logs", alias="REPO_SYNC_LOG_DIR")
    log_file_prefix: str = Field(default="deploy", description="Operation log file prefix", alias="REPO_SYNC_LOG_PREFIX")
    log_file: Optional[str] = Field(default=None, description="Application log file path", alias="REPO_SYNC_LOG_FILE")
    log_level: str = Field(default="INFO", description="Log level", alias="REPO_SYNC_LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields to avoid validation errors
        populate_by_name = True


# Global settings instance
settings = Settings()
