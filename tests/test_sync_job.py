"""
Tests for run orchestration and credential cleanup guarantees
"""

import os
import signal

import pytest

from conftest import requires_git
from repo_sync.core.exceptions import ErrorKind, Interrupted
from repo_sync.schemas.sync import InputRecord, SyncResult, SyncState
from repo_sync.services import sync_job
from repo_sync.services.sync_job import execute_sync

SECRET = "ghp_verysecrettoken9876"


def _https_record(**overrides):
    values = {
        "repository_url": "https://example.com/org/app.git",
        "secret": SECRET,
        "credential_principal": "deployer",
    }
    values.update(overrides)
    return InputRecord.build(**values)


class FakeSync:
    """Replaces RepositorySync; behaviour is supplied per test."""

    behaviour = None
    instances = []

    def __init__(self, record, runner, work_dir, settings=None):
        self.record = record
        self.runner = runner
        self.target = work_dir / record.local_directory_name
        FakeSync.instances.append(self)

    def run(self):
        return FakeSync.behaviour(self)


def _ready(sync, make_checkout=True):
    if make_checkout:
        (sync.target / ".git").mkdir(parents=True)
    return SyncResult(
        final_state=SyncState.READY,
        local_path=sync.target,
        branch=sync.record.branch,
        resolved_commit="abc1234",
    )


@pytest.fixture
def fake_sync(monkeypatch):
    FakeSync.instances = []
    FakeSync.behaviour = _ready
    monkeypatch.setattr(sync_job, "RepositorySync", FakeSync)
    return FakeSync


class TestCredentialLifecycle:
    """Test the scope exists exactly for the duration of the sync"""

    @pytest.mark.unit
    def test_scope_bound_during_sync_and_removed_after(self, fake_sync, test_settings, scope_parent):
        """Test git sees the scope while syncing and nothing survives the run"""
        seen = {}

        def behaviour(sync):
            home = sync.runner.env_overlay["HOME"]
            seen["home"] = home
            seen["netrc"] = open(os.path.join(home, ".netrc")).read()
            return _ready(sync)

        fake_sync.behaviour = behaviour

        result = execute_sync(_https_record(), test_settings)

        assert result.ok
        assert seen["home"].startswith(str(scope_parent))
        assert f"password {SECRET}" in seen["netrc"]
        assert list(scope_parent.iterdir()) == []

    @pytest.mark.unit
    def test_scope_removed_on_unexpected_error(self, fake_sync, test_settings, scope_parent):
        """Test an unexpected exception still removes the scope"""
        def behaviour(sync):
            raise RuntimeError("unexpected")

        fake_sync.behaviour = behaviour

        with pytest.raises(RuntimeError):
            execute_sync(_https_record(), test_settings)

        assert list(scope_parent.iterdir()) == []

    @pytest.mark.unit
    @pytest.mark.skipif(not hasattr(signal, "SIGTERM"), reason="SIGTERM unavailable")
    def test_scope_removed_on_signal(self, fake_sync, test_settings, scope_parent):
        """Test SIGTERM mid-sync interrupts the run and removes the scope"""
        previous = signal.getsignal(signal.SIGTERM)

        def behaviour(sync):
            assert len(list(scope_parent.iterdir())) == 1
            os.kill(os.getpid(), signal.SIGTERM)
            raise AssertionError("signal did not interrupt the run")

        fake_sync.behaviour = behaviour

        with pytest.raises(Interrupted) as exc_info:
            execute_sync(_https_record(), test_settings)

        assert exc_info.value.signum == signal.SIGTERM
        assert list(scope_parent.iterdir()) == []
        assert signal.getsignal(signal.SIGTERM) == previous

    @pytest.mark.unit
    def test_no_scope_for_ssh(self, fake_sync, test_settings, scope_parent):
        """Test SSH URLs run without a credential scope"""
        result = execute_sync(InputRecord.build(repository_url="git@github.com:org/app.git"), test_settings)

        assert result.ok
        assert "HOME" not in FakeSync.instances[0].runner.env_overlay
        assert list(scope_parent.iterdir()) == []

    @pytest.mark.unit
    def test_scope_creation_failure(self, fake_sync, test_settings, tmp_path):
        """Test an unusable scope parent fails before any git command"""
        settings = test_settings.model_copy(update={"scope_parent": tmp_path / "nope" / "deeper"})

        result = execute_sync(_https_record(), settings)

        assert result.final_state is SyncState.FAILED
        assert result.error_kind is ErrorKind.SCOPE_CREATION
        assert FakeSync.instances == []


class TestRunOutcome:
    """Test result shaping and the operation log"""

    @pytest.mark.unit
    def test_post_sync_directory_missing(self, fake_sync, test_settings):
        """Test a READY sync without a checkout on disk is a failure"""
        fake_sync.behaviour = lambda sync: _ready(sync, make_checkout=False)

        result = execute_sync(_https_record(), test_settings)

        assert result.final_state is SyncState.FAILED
        assert result.error_kind is ErrorKind.POST_SYNC_DIRECTORY_MISSING
        assert result.resolved_commit is None

    @pytest.mark.unit
    def test_log_masks_secret(self, fake_sync, test_settings):
        """Test the run log records the masked token and never the token"""
        execute_sync(_https_record(), test_settings)

        logs = list(test_settings.log_dir.glob("deploy_*.log"))
        assert len(logs) == 1
        content = logs[0].read_text()
        assert SECRET not in content
        assert "Masked PAT: ****9876" in content
        assert "START: repository sync" in content
        assert "Repository ready at" in content

    @pytest.mark.unit
    def test_deployment_parameters_logged(self, fake_sync, test_settings, operation_log):
        """Test deployment target details are recorded for the downstream step"""
        record = _https_record(
            deployment={
                "ssh_user": "ubuntu",
                "host": "10.0.0.5",
                "ssh_key_path": "/keys/id_rsa",
                "container_port": 3000,
            }
        )

        execute_sync(record, test_settings, log=operation_log)

        parameters = [m for m in operation_log.messages() if m.startswith("Parameters:")]
        assert parameters == [
            "Parameters: repo=https://example.com/org/app.git, branch=main, local_dir=app, "
            "remote=ubuntu@10.0.0.5, ssh_key=/keys/id_rsa, container_port=3000"
        ]


@requires_git
class TestSyncJobIntegration:
    """End-to-end runs with real git"""

    @pytest.mark.integration
    def test_local_clone_end_to_end(self, upstream, test_settings, work_dir):
        """Test a file:// repository syncs to READY"""
        result = execute_sync(InputRecord.build(repository_url=upstream.url), test_settings)

        assert result.ok
        assert result.local_path == work_dir / "app"
        assert upstream.head().startswith(result.resolved_commit)

    @pytest.mark.integration
    def test_unreachable_https_cleans_up(self, test_settings, scope_parent, work_dir, monkeypatch):
        """Test failing clones over HTTPS leave no scope and no partial clone"""
        for name in ("HTTPS_PROXY", "https_proxy", "ALL_PROXY", "all_proxy"):
            monkeypatch.delenv(name, raising=False)
        record = _https_record(repository_url="https://127.0.0.1:9/org/app.git")

        result = execute_sync(record, test_settings)

        assert result.error_kind is ErrorKind.CLONE_FAILURE
        assert list(scope_parent.iterdir()) == []
        assert not (work_dir / "app").exists()
        content = next(test_settings.log_dir.glob("deploy_*.log")).read_text()
        assert SECRET not in content
        assert "Clone with branch failed; trying full clone to recover..." in content
