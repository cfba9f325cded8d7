"""
Append-only operation log for a synchronization run.

Each entry is written as ``<timestamp> <message>`` to a per-run file through a
dedicated loguru sink and is mirrored to whatever diagnostic sinks
``setup_logging`` installed. The log does no redaction: callers mask secrets
and URLs before recording.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

from repo_sync.config import Settings

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    message: str

    def line(self) -> str:
        return f"{self.timestamp} {self.message}"


class OperationLog:
    """Durable, ordered record of state transitions and git invocations."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._token = uuid.uuid4().hex
        self._entries: List[LogEntry] = []
        self._logger = logger.bind(operation_log=self._token)
        # line buffered so an interrupted run keeps every completed entry
        self._sink_id: Optional[int] = logger.add(
            str(self.path),
            level="DEBUG",
            format="{extra[stamp]} {message}",
            filter=self._owns,
            colorize=False,
            encoding="utf-8",
            buffering=1,
        )

    @classmethod
    def for_run(cls, settings: Settings, started: Optional[dt.datetime] = None) -> "OperationLog":
        """Open the log file named after the run's start time."""
        started = started or dt.datetime.now()
        name = f"{settings.log_file_prefix}_{started:%Y%m%d_%H%M%S}.log"
        return cls(Path(settings.log_dir) / name)

    def _owns(self, record) -> bool:
        return record["extra"].get("operation_log") == self._token

    @property
    def entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)

    def messages(self) -> List[str]:
        return [entry.message for entry in self._entries]

    def record(self, message: str, level: str = "INFO") -> LogEntry:
        stamp = dt.datetime.now().astimezone().strftime(TIMESTAMP_FORMAT)
        entry = LogEntry(timestamp=stamp, message=message)
        self._entries.append(entry)
        self._logger.bind(stamp=stamp).opt(depth=1).log(level, message)
        return entry

    def warning(self, message: str) -> LogEntry:
        return self.record(f"Warning: {message}", level="WARNING")

    def error(self, message: str) -> LogEntry:
        return self.record(f"ERROR: {message}", level="ERROR")

    def close(self) -> None:
        if self._sink_id is not None:
            logger.remove(self._sink_id)
            self._sink_id = None

    def __enter__(self) -> "OperationLog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
