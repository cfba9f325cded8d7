"""
Pytest configuration and fixtures for repo-sync tests
"""
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Tuple

import pytest

# Ensure the `src/` directory is available for imports.
# pytest executes from the repository root, but our package lives in `src/`.
ROOT_DIR = Path(__file__).parent.parent
SRC_DIR = ROOT_DIR / "src"

for path in (SRC_DIR,):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from repo_sync.config import Settings
from repo_sync.services.operation_log import OperationLog

GIT_AVAILABLE = shutil.which("git") is not None

requires_git = pytest.mark.skipif(not GIT_AVAILABLE, reason="git executable not available")


def git(*args, cwd=None) -> str:
    """Run git for test setup and return stdout."""
    result = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", "-c", "commit.gpgsign=false", *args],
        cwd=str(cwd) if cwd else None,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


class UpstreamRepo:
    """A non-bare repository standing in for the remote."""

    def __init__(self, path: Path):
        self.path = path
        path.mkdir(parents=True)
        git("init", "-q", cwd=path)
        git("symbolic-ref", "HEAD", "refs/heads/main", cwd=path)
        self.commit("initial commit")

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def commit(self, message: str, branch: str = "main") -> str:
        current = git("symbolic-ref", "--short", "HEAD", cwd=self.path)
        if branch != current:
            git("checkout", "-q", branch, cwd=self.path)
        name = f"{message.replace(' ', '_')}.txt"
        (self.path / name).write_text(message)
        git("add", name, cwd=self.path)
        git("commit", "-q", "-m", message, cwd=self.path)
        sha = git("rev-parse", "HEAD", cwd=self.path)
        if branch != current:
            git("checkout", "-q", current, cwd=self.path)
        return sha

    def create_branch(self, name: str) -> None:
        git("branch", name, cwd=self.path)

    def head(self, branch: str = "main") -> str:
        return git("rev-parse", branch, cwd=self.path)


class ScriptedRunner:
    """Stand-in for GitRunner that answers from a script instead of running git.

    Keys are argument tuples; a key matches any call whose arguments start
    with it. Unmatched calls succeed with empty output.
    """

    def __init__(self, log: OperationLog):
        self.log = log
        self.calls: List[Tuple[str, ...]] = []
        self.script: Dict[Tuple[str, ...], Tuple[int, str]] = {}

    def answer(self, *args: str, returncode: int = 0, stdout: str = "") -> None:
        self.script[tuple(args)] = (returncode, stdout)

    def _respond(self, args) -> subprocess.CompletedProcess:
        self.calls.append(tuple(args))
        best = None
        for key, value in self.script.items():
            if tuple(args[: len(key)]) == key and (best is None or len(key) > len(best[0])):
                best = (key, value)
        returncode, stdout = best[1] if best else (0, "")
        return subprocess.CompletedProcess(["git", *args], returncode, stdout, "")

    def run(self, *args, cwd=None):
        return self._respond(args)

    def probe(self, *args, cwd=None):
        return self._respond(args)

    def succeeds(self, *args, cwd=None):
        return self.probe(*args, cwd=cwd).returncode == 0

    def called(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == prefix for call in self.calls)


@pytest.fixture
def work_dir(tmp_path):
    directory = tmp_path / "work"
    directory.mkdir()
    return directory


@pytest.fixture
def scope_parent(tmp_path):
    directory = tmp_path / "scopes"
    directory.mkdir()
    return directory


@pytest.fixture
def test_settings(tmp_path, work_dir, scope_parent):
    """Settings isolated to the test's temporary directory"""
    return Settings(
        log_dir=tmp_path / "logs",
        scope_parent=scope_parent,
        work_dir=work_dir,
        command_timeout=60,
    )


@pytest.fixture
def operation_log(tmp_path):
    log = OperationLog(tmp_path / "logs" / "test_run.log")
    yield log
    log.close()


@pytest.fixture
def scripted_runner(operation_log):
    return ScriptedRunner(operation_log)


@pytest.fixture
def upstream(tmp_path):
    """Upstream repository named `app` with a single commit on main"""
    if not GIT_AVAILABLE:
        pytest.skip("git executable not available")
    return UpstreamRepo(tmp_path / "remote" / "app")


# Test configuration
def pytest_configure(config):
    """Configure pytest"""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires git)"
    )
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
