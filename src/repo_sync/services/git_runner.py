"""Git subprocess execution with credential overlay and operation logging."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from repo_sync.config import Settings, settings as default_settings
from repo_sync.services.masking import mask_sensitive_text
from repo_sync.services.operation_log import OperationLog

COMMAND_NOT_FOUND = 127
COMMAND_TIMED_OUT = 124


class GitRunner:
    """Runs git commands in the scoped environment and records them.

    A non-zero exit never raises; callers branch on ``returncode``.
    """

    def __init__(
        self,
        log: OperationLog,
        settings: Optional[Settings] = None,
        env_overlay: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.log = log
        self.settings = settings or default_settings
        self.env_overlay: Dict[str, str] = dict(env_overlay or {})

    def environment(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.setdefault("GIT_TERMINAL_PROMPT", "0")
        env.update(self.env_overlay)
        return env

    def run(self, *args: str, cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        """Run a mutating git command, recording its command line and output."""
        display = self._display(args)
        self.log.record(f"+ {display}")
        result = self._execute(args, cwd)
        for line in _output_lines(result):
            self.log.record(mask_sensitive_text(line))
        if result.returncode != 0:
            self.log.error(f"git command failed: {display}")
        return result

    def probe(self, *args: str, cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        """Run a query command; only the command line is recorded."""
        self.log.record(f"+ {self._display(args)}", level="DEBUG")
        return self._execute(args, cwd)

    def succeeds(self, *args: str, cwd: Optional[Path] = None) -> bool:
        return self.probe(*args, cwd=cwd).returncode == 0

    def _display(self, args: Sequence[str]) -> str:
        return mask_sensitive_text(" ".join(["git", *args]))

    def _execute(self, args: Sequence[str], cwd: Optional[Path]) -> subprocess.CompletedProcess:
        command = [self.settings.git_binary, *args]
        try:
            return subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                env=self.environment(),
                capture_output=True,
                text=True,
                timeout=self.settings.command_timeout,
            )
        except FileNotFoundError as exc:
            return subprocess.CompletedProcess(command, COMMAND_NOT_FOUND, "", f"{exc.strerror}: {exc.filename}")
        except subprocess.TimeoutExpired:
            return subprocess.CompletedProcess(
                command,
                COMMAND_TIMED_OUT,
                "",
                f"timed out after {self.settings.command_timeout}s",
            )


def _output_lines(result: subprocess.CompletedProcess) -> List[str]:
    lines: List[str] = []
    for stream in (result.stdout, result.stderr):
        if stream:
            lines.extend(line for line in stream.splitlines() if line.strip())
    return lines
