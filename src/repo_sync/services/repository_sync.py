"""
Repository reconciliation state machine.

Brings ``<work_dir>/<local_directory_name>`` in line with the requested
remote branch:

    START -> CLONE_FRESH ----------------------------------------> READY
    START -> UPDATE_EXISTING -> BRANCH_RESOLUTION -> FAST_FORWARD -> READY

Any state may move to FAILED. History is never rewritten: divergent local
branches are reported, not merged, rebased or reset.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional, Type

from repo_sync.config import Settings, settings as default_settings
from repo_sync.core.exceptions import (
    BranchNotFound,
    CheckoutFailure,
    CloneCheckoutFailure,
    CloneFailure,
    DirectoryConflict,
    DivergedHistory,
    FetchFailure,
    Interrupted,
    LocalCheckoutFailure,
    PullFailure,
    RemoteCorrectionFailure,
    RepoSyncError,
    RepositoryAccessError,
)
from repo_sync.schemas.sync import InputRecord, RepositoryState, SyncResult, SyncState
from repo_sync.services.git_runner import GitRunner
from repo_sync.services.masking import mask_url_credentials

UNKNOWN_COMMIT = "unknown"

ALLOWED_TRANSITIONS: Dict[SyncState, FrozenSet[SyncState]] = {
    SyncState.START: frozenset({SyncState.CLONE_FRESH, SyncState.UPDATE_EXISTING, SyncState.FAILED}),
    SyncState.CLONE_FRESH: frozenset({SyncState.READY, SyncState.FAILED}),
    SyncState.UPDATE_EXISTING: frozenset({SyncState.BRANCH_RESOLUTION, SyncState.FAILED}),
    SyncState.BRANCH_RESOLUTION: frozenset({SyncState.FAST_FORWARD, SyncState.FAILED}),
    SyncState.FAST_FORWARD: frozenset({SyncState.READY, SyncState.FAILED}),
    SyncState.READY: frozenset(),
    SyncState.FAILED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when the machine is asked to take an undefined transition."""


class RepositorySync:
    """Clone-or-update reconciliation for a single repository and branch."""

    def __init__(
        self,
        record: InputRecord,
        runner: GitRunner,
        work_dir: Path,
        settings: Optional[Settings] = None,
    ) -> None:
        self.record = record
        self.runner = runner
        self.log = runner.log
        self.settings = settings or default_settings
        self.work_dir = Path(work_dir)
        self.target = self.work_dir / record.local_directory_name
        self.state = SyncState.START
        self.history: List[SyncState] = [SyncState.START]
        self.warnings: List[str] = []
        self._target_preexisted = False
        self._remote_branch_present = False

    @property
    def remote(self) -> str:
        return self.settings.remote_name

    @property
    def branch(self) -> str:
        return self.record.branch

    @property
    def remote_ref(self) -> str:
        return f"refs/remotes/{self.remote}/{self.branch}"

    @property
    def local_ref(self) -> str:
        return f"refs/heads/{self.branch}"

    # ------------------------------------------------------------------
    # driver
    # ------------------------------------------------------------------

    def run(self) -> SyncResult:
        handlers: Dict[SyncState, Callable[[], SyncState]] = {
            SyncState.CLONE_FRESH: self._clone_fresh,
            SyncState.UPDATE_EXISTING: self._update_existing,
            SyncState.BRANCH_RESOLUTION: self._resolve_branch,
            SyncState.FAST_FORWARD: self._fast_forward,
        }
        try:
            next_state = self._entry_state(self.inspect())
            while next_state is not SyncState.READY:
                self._transition(next_state)
                next_state = handlers[next_state]()
            self._transition(SyncState.READY)
        except Interrupted:
            raise
        except RepoSyncError as exc:
            return self._failed(exc)

        return SyncResult(
            final_state=SyncState.READY,
            local_path=self.target,
            branch=self.branch,
            resolved_commit=self.resolve_commit(),
            warnings=tuple(self.warnings),
        )

    def inspect(self) -> RepositoryState:
        """Classify the target directory. Never cached between runs."""
        target = self.target
        if not target.exists():
            return RepositoryState.ABSENT
        if not target.is_dir():
            return RepositoryState.PRESENT_UNMANAGED
        if not os.access(target, os.R_OK | os.X_OK):
            raise RepositoryAccessError(f"failed to cd into {target}")
        if not any(target.iterdir()):
            self._target_preexisted = True
            return RepositoryState.ABSENT
        git_dir = target / ".git"
        if not git_dir.is_dir():
            return RepositoryState.PRESENT_UNMANAGED

        probe = self.runner.probe("rev-parse", "--absolute-git-dir", cwd=target)
        if probe.returncode != 0:
            return RepositoryState.PRESENT_UNMANAGED
        reported = Path(probe.stdout.strip())
        if reported.resolve() != git_dir.resolve():
            return RepositoryState.PRESENT_UNMANAGED
        return RepositoryState.PRESENT_MANAGED

    def resolve_commit(self) -> str:
        result = self.runner.probe("rev-parse", "--short", "HEAD", cwd=self.target)
        commit = result.stdout.strip() if result.returncode == 0 else ""
        return commit or UNKNOWN_COMMIT

    def _entry_state(self, repository_state: RepositoryState) -> SyncState:
        self.log.record(f"Local directory {self.target} is {repository_state.value}")
        if repository_state is RepositoryState.ABSENT:
            return SyncState.CLONE_FRESH
        if repository_state is RepositoryState.PRESENT_MANAGED:
            return SyncState.UPDATE_EXISTING
        raise DirectoryConflict(
            f"{self.target} exists but is not a git checkout; refusing to overwrite it"
        )

    def _transition(self, new_state: SyncState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"{self.state.value} -> {new_state.value}")
        self.log.record(f"State: {self.state.value} -> {new_state.value}", level="DEBUG")
        self.state = new_state
        self.history.append(new_state)

    def _failed(self, exc: RepoSyncError) -> SyncResult:
        self.log.error(str(exc))
        if self.state is not SyncState.FAILED:
            self._transition(SyncState.FAILED)
        return SyncResult(
            final_state=SyncState.FAILED,
            local_path=self.target,
            branch=self.branch,
            resolved_commit=None,
            error_kind=exc.error_kind,
            error_message=str(exc),
            warnings=tuple(self.warnings),
        )

    # ------------------------------------------------------------------
    # CLONE_FRESH
    # ------------------------------------------------------------------

    def _clone_fresh(self) -> SyncState:
        url = self.record.repository_url
        self.log.record("Cloning repository...")
        try:
            shallow = self.runner.run(
                "clone",
                "--depth",
                str(self.settings.clone_depth),
                "--no-single-branch",
                "--branch",
                self.branch,
                "--",
                url,
                str(self.target),
                cwd=self.work_dir,
            )
            if shallow.returncode == 0:
                self.log.record("Clone succeeded")
                return SyncState.READY

            self.log.record("Clone with branch failed; trying full clone to recover...")
            self._discard_partial_clone()
            full = self.runner.run("clone", "--", url, str(self.target), cwd=self.work_dir)
            if full.returncode != 0:
                raise CloneFailure(
                    "git clone failed",
                    command=f"git clone {mask_url_credentials(url)}",
                )

            if self.runner.succeeds("rev-parse", "--verify", "--quiet", self.remote_ref, cwd=self.target):
                self._checkout_from_remote(CloneCheckoutFailure)
            elif self.settings.require_branch_on_clone:
                raise BranchNotFound(f"branch '{self.branch}' not found on remote after full clone")
            else:
                message = f"branch '{self.branch}' not found; staying on default branch"
                self.warnings.append(message)
                self.log.warning(message)
            return SyncState.READY
        except BaseException:
            self._discard_partial_clone()
            raise

    def _discard_partial_clone(self) -> None:
        if self.target.exists():
            shutil.rmtree(self.target)
        if self._target_preexisted:
            self.target.mkdir()

    # ------------------------------------------------------------------
    # UPDATE_EXISTING
    # ------------------------------------------------------------------

    def _update_existing(self) -> SyncState:
        url = self.record.repository_url
        self.log.record("Repository already exists locally. Updating...")

        current = self.runner.probe("remote", "get-url", self.remote, cwd=self.target)
        current_url = current.stdout.strip() if current.returncode == 0 else ""
        if not current_url:
            self.log.record(f"Remote '{self.remote}' missing. Adding it as {mask_url_credentials(url)}")
            if self.runner.run("remote", "add", self.remote, url, cwd=self.target).returncode != 0:
                raise RemoteCorrectionFailure(f"failed to add {self.remote} url")
        elif current_url != url:
            self.log.record(
                f"Remote '{self.remote}' URL differs ({mask_url_credentials(current_url)}). "
                f"Setting {self.remote} to {mask_url_credentials(url)}"
            )
            if self.runner.run("remote", "set-url", self.remote, url, cwd=self.target).returncode != 0:
                raise RemoteCorrectionFailure(f"failed to set {self.remote} url")

        if self.runner.run("fetch", "--all", "--prune", cwd=self.target).returncode != 0:
            raise FetchFailure("git fetch failed", command="git fetch --all --prune")
        return SyncState.BRANCH_RESOLUTION

    # ------------------------------------------------------------------
    # BRANCH_RESOLUTION
    # ------------------------------------------------------------------

    def _resolve_branch(self) -> SyncState:
        self._remote_branch_present = self.runner.succeeds(
            "rev-parse", "--verify", "--quiet", self.remote_ref, cwd=self.target
        )
        if self._remote_branch_present:
            self._checkout_from_remote(CheckoutFailure)
        elif self._local_branch_exists():
            self.log.record(f"Branch '{self.branch}' not on remote; using local branch")
            self._checkout_local(LocalCheckoutFailure, "checkout existing local branch failed")
        else:
            raise BranchNotFound(f"branch '{self.branch}' not found on remote or locally")
        return SyncState.FAST_FORWARD

    def _local_branch_exists(self) -> bool:
        return self.runner.succeeds("rev-parse", "--verify", "--quiet", self.local_ref, cwd=self.target)

    def _checkout_from_remote(self, error_cls: Type[CheckoutFailure]) -> None:
        if self._local_branch_exists():
            self._checkout_local(error_cls, "checkout failed")
            return
        result = self.runner.run(
            "checkout",
            "-b",
            self.branch,
            "--track",
            f"{self.remote}/{self.branch}",
            cwd=self.target,
        )
        if result.returncode != 0:
            raise error_cls("checkout failed", command=f"git checkout -b {self.branch}")

    def _checkout_local(self, error_cls: Type[CheckoutFailure], failure: str) -> None:
        if self.runner.run("checkout", self.branch, "--", cwd=self.target).returncode != 0:
            raise error_cls(failure, command=f"git checkout {self.branch}")

    # ------------------------------------------------------------------
    # FAST_FORWARD
    # ------------------------------------------------------------------

    def _fast_forward(self) -> SyncState:
        if not self._remote_branch_present:
            self.log.record(f"Branch '{self.branch}' has no remote counterpart; nothing to fast-forward")
            return SyncState.READY

        upstream = self.remote_ref
        contained = self.runner.probe("merge-base", "--is-ancestor", "HEAD", upstream, cwd=self.target)
        if contained.returncode == 1:
            raise DivergedHistory(
                f"local branch '{self.branch}' has commits not on {self.remote}/{self.branch}; "
                "refusing to merge, rebase or push"
            )

        if self.runner.run("pull", "--ff-only", self.remote, self.branch, cwd=self.target).returncode != 0:
            raise PullFailure("git pull failed", command="git pull --ff-only")
        self.log.record("Repository updated successfully")
        return SyncState.READY
