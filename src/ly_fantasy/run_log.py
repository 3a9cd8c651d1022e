"""Append-only JSONL log of sync and migration runs.

Every script invocation and cron refresh records one line: task name,
start/end, per-phase timings, status and task-specific counters.  The API
serves recent entries at ``GET /api/runs``.

Usage::

    from ly_fantasy.run_log import RunLogger

    with RunLogger("sync:propose") as log:
        with log.phase("Propose Bills", detail="113 legislators"):
            result = ...
        log.meta.update(result.to_dict())
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import config as cfg

LOGGER = logging.getLogger(__name__)


def get_log_path() -> Path:
    return cfg.RUN_LOG_PATH


@dataclass
class RunRecord:
    """One line in the run log."""

    run_id: str
    task: str
    started_at: str  # ISO
    ended_at: str | None = None
    duration_s: float | None = None
    status: str = "running"  # ok | error | running
    phases: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json_line(cls, line: str) -> RunRecord | None:
        line = line.strip()
        if not line:
            return None
        try:
            d = json.loads(line)
            return cls(
                run_id=d.get("run_id", ""),
                task=d.get("task", ""),
                started_at=d.get("started_at", ""),
                ended_at=d.get("ended_at"),
                duration_s=d.get("duration_s"),
                status=d.get("status", "ok"),
                phases=d.get("phases", []),
                error=d.get("error"),
                meta=d.get("meta", {}),
            )
        except (json.JSONDecodeError, TypeError, AttributeError):
            return None


class RunLogger:
    """Times one run and appends it to the log on exit."""

    def __init__(
        self, task: str, *, log_path: Path | None = None, meta: dict[str, Any] | None = None
    ):
        self.task = task
        self.log_path = log_path if log_path is not None else get_log_path()
        self.meta: dict[str, Any] = dict(meta or {})
        self.run_id = uuid.uuid4().hex[:8]
        self._started_at: str | None = None
        self._t0: float | None = None
        self._phases: list[dict[str, Any]] = []
        self._status = "ok"
        self._error: str | None = None

    def start(self) -> None:
        self._started_at = datetime.now(timezone.utc).isoformat()
        self._t0 = time.perf_counter()
        self._phases = []
        self._status = "ok"
        self._error = None

    @contextmanager
    def phase(self, name: str, detail: str | None = None) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._phases.append(
                {"name": name, "duration_s": round(time.perf_counter() - t0, 2), "detail": detail}
            )

    def fail(self, error: str) -> None:
        """Mark the run as failed without raising."""
        self._status = "error"
        self._error = error

    def end(self, status: str | None = None, error: str | None = None) -> RunRecord | None:
        if status is not None:
            self._status = status
        if error is not None:
            self._error = error
        if self._t0 is None:
            return None
        ended_at = datetime.now(timezone.utc).isoformat()
        record = RunRecord(
            run_id=self.run_id,
            task=self.task,
            started_at=self._started_at or ended_at,
            ended_at=ended_at,
            duration_s=round(time.perf_counter() - self._t0, 2),
            status=self._status,
            phases=self._phases,
            error=self._error,
            meta=self.meta,
        )
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(record.to_json_line() + "\n")
        except OSError as e:
            LOGGER.warning("Run log append failed: %s", e)
        return record

    def __enter__(self) -> RunLogger:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.fail(f"{exc_type.__name__}: {exc_val}" if exc_val else exc_type.__name__)
        self.end()


def load_recent_runs(
    n: int = 100, *, task: str | None = None, log_path: Path | None = None
) -> list[RunRecord]:
    """Last *n* runs, newest first, optionally filtered by task prefix."""
    path = log_path or get_log_path()
    if not path.exists():
        return []
    records: list[RunRecord] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            rec = RunRecord.from_json_line(line)
            if rec is None:
                continue
            if task is None or rec.task.startswith(task):
                records.append(rec)
    return records[::-1][:n]
