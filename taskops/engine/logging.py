"""
TaskOps Logging — Structured JSONL execution logs behind an async queue.

Implements:
- FileLogger: per-object-type, per-category files, rotated daily
  (``{log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl``)
- AsyncLogQueue: in-memory queue flushed by a background thread
- Entry builders for function calls, store operations, security and
  system events
- LogRetentionManager: gzip + delete by category retention

Operator-facing messages still go through stdlib ``logging`` loggers named
``taskops.<module>``; this module only handles the structured trail.
"""

from __future__ import annotations

import gzip
import json
import logging
import shutil
import threading
import time
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, IO, List, Optional

logger = logging.getLogger("taskops.engine.logging")

# Valid object types and their permitted categories
OBJECT_TYPE_CATEGORIES = {
    "functions": ["execution", "performance", "security"],
    "store": ["execution"],
    "notifications": ["execution"],
    "scheduler": ["execution"],
    "system": ["execution", "security"],
}

# Retention defaults (days)
DEFAULT_RETENTION = {
    "execution": 90,
    "performance": 30,
    "security": 365,
}


class LogEntry:
    """A structured log entry destined for a specific file."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """
    Writes structured JSON log entries to per-object-type, per-category files.

    Thread-safe: one lock per file path.
    """

    def __init__(self, log_dir: str = ".taskops/logs"):
        self._log_dir = Path(log_dir)
        self._file_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for cat in categories:
                (self._log_dir / obj_type / cat).mkdir(parents=True, exist_ok=True)

    def write(self, entry: LogEntry) -> None:
        """Write a single log entry to the appropriate file."""
        self.write_batch([entry])

    def write_batch(self, entries: List[LogEntry]) -> None:
        """Write a batch of entries, grouped by target file."""
        grouped: Dict[str, List[LogEntry]] = defaultdict(list)
        for entry in entries:
            grouped[str(self._resolve_path(entry.object_type, entry.category))].append(entry)

        for file_path, batch in grouped.items():
            with self._file_locks[file_path]:
                with open(file_path, "a", encoding="utf-8") as f:
                    for entry in batch:
                        f.write(entry.to_json())
                        f.write("\n")

    def _resolve_path(self, object_type: str, category: str) -> Path:
        if object_type not in OBJECT_TYPE_CATEGORIES:
            object_type = "system"
        folder = self._log_dir / object_type / category
        folder.mkdir(parents=True, exist_ok=True)
        return folder / f"{date.today().isoformat()}.jsonl"

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def query(
        self,
        object_type: str,
        category: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """
        Query entries for an object_type/category between two dates.

        ``filters`` is matched by exact equality on top-level keys. Reads both
        plain and gzipped daily files. Returns at most ``limit`` entries.
        """
        if end_date is None:
            end_date = date.today()
        if start_date is None:
            start_date = end_date - timedelta(days=7)

        log_base = self._log_dir / object_type / category
        if not log_base.exists():
            return []

        results: List[Dict[str, Any]] = []
        current = end_date
        while current >= start_date and len(results) < limit:
            file_path = log_base / f"{current.isoformat()}.jsonl"
            if file_path.exists():
                results.extend(
                    self._read_entries(file_path, open, filters, limit - len(results))
                )
            gz_path = file_path.with_suffix(".jsonl.gz")
            if gz_path.exists() and len(results) < limit:
                results.extend(
                    self._read_entries(gz_path, gzip.open, filters, limit - len(results))
                )
            current -= timedelta(days=1)

        results.reverse()
        return results[:limit]

    @staticmethod
    def _read_entries(
        path: Path,
        opener: Callable[..., IO[str]],
        filters: Optional[Dict[str, Any]],
        remaining: int,
    ) -> List[Dict[str, Any]]:
        entries: List[Dict[str, Any]] = []
        try:
            with opener(path, "rt", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if filters and not all(data.get(k) == v for k, v in filters.items()):
                        continue
                    entries.append(data)
                    if len(entries) >= remaining:
                        break
        except OSError as exc:
            logger.warning("Could not read log file %s: %s", path, exc)
        return entries


class AsyncLogQueue:
    """
    In-memory queue with a background flush thread.

    Entries are pushed non-blocking; the thread flushes every
    ``flush_interval_ms`` or once ``flush_batch_size`` entries accumulate.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self._logger = file_logger
        self._flush_interval = flush_interval_ms / 1000.0
        self._flush_batch_size = flush_batch_size
        self._queue: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        self._running = False
        self._flush_thread: Optional[threading.Thread] = None
        self._dropped_count = 0

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._flush_thread = threading.Thread(
            target=self._flush_loop,
            name="taskops-log-flush",
            daemon=True,
        )
        self._flush_thread.start()
        logger.info("Async log queue started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the flush thread and drain remaining entries."""
        self._running = False
        if self._flush_thread and self._flush_thread.is_alive():
            self._flush_thread.join(timeout=timeout)
        self._drain()
        logger.info(f"Async log queue stopped (dropped: {self._dropped_count})")

    def push(self, entry: LogEntry) -> bool:
        """Queue an entry. Returns False if it was dropped (queue full)."""
        try:
            self._queue.put_nowait(entry)
            return True
        except Full:
            self._dropped_count += 1
            return False

    def _flush_loop(self) -> None:
        while self._running:
            batch = self._collect_batch()
            if batch:
                try:
                    self._logger.write_batch(batch)
                except OSError as e:
                    logger.error(f"Log flush error: {e}")
            else:
                time.sleep(self._flush_interval)

    def _collect_batch(self) -> List[LogEntry]:
        batch: List[LogEntry] = []
        deadline = time.monotonic() + self._flush_interval

        while len(batch) < self._flush_batch_size:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                batch.append(self._queue.get(timeout=min(remaining, 0.01)))
            except Empty:
                if batch:
                    break
        return batch

    def _drain(self) -> None:
        batch: List[LogEntry] = []
        while not self._queue.empty():
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break
        if batch:
            try:
                self._logger.write_batch(batch)
            except OSError as e:
                logger.error(f"Log drain error: {e}")

    @property
    def dropped_count(self) -> int:
        return self._dropped_count


# ---------------------------------------------------------------------------
# Log Entry Builders
# ---------------------------------------------------------------------------

def _base_entry(
    event: str,
    level: str,
    object_ref: str,
    execution_id: Optional[str] = None,
    user_id: Optional[Any] = None,
    **extra: Any,
) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
        "object_ref": object_ref,
    }
    if execution_id:
        entry["execution_id"] = execution_id
    if user_id is not None:
        entry["user_id"] = user_id
    entry.update(extra)
    return entry


def log_function_execution(
    function_name: str,
    execution_id: str,
    triggered_by: str,
    status_code: int,
    duration_ms: float,
    user_id: Optional[Any] = None,
    inputs: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a function execution entry (one per invocation)."""
    data = _base_entry(
        event="function_executed",
        level="INFO" if status_code < 400 else "ERROR",
        object_ref=function_name,
        execution_id=execution_id,
        user_id=user_id,
        triggered_by=triggered_by,
        status_code=status_code,
        duration_ms=round(duration_ms, 3),
        success=status_code < 400,
    )
    if inputs:
        data["inputs"] = inputs
    if error:
        data["error"] = error
    return LogEntry("functions", "execution", data)


def log_function_performance(
    function_name: str,
    execution_id: str,
    duration_ms: float,
    rows_read: int = 0,
    rows_written: int = 0,
) -> LogEntry:
    data = _base_entry(
        event="function_performance",
        level="INFO",
        object_ref=function_name,
        execution_id=execution_id,
        duration_ms=round(duration_ms, 3),
        rows_read=rows_read,
        rows_written=rows_written,
    )
    return LogEntry("functions", "performance", data)


def log_store_operation(
    operation: str,
    table: str,
    execution_id: Optional[str] = None,
    user_id: Optional[Any] = None,
    record_ids: Optional[List[str]] = None,
    affected: Optional[int] = None,
    success: bool = True,
    error: Optional[str] = None,
) -> LogEntry:
    """Build a store mutation entry (status rollup write, bulk update, ...)."""
    data = _base_entry(
        event=f"store_{operation}",
        level="INFO" if success else "ERROR",
        object_ref=table,
        execution_id=execution_id,
        user_id=user_id,
        operation=operation,
        success=success,
    )
    if record_ids:
        data["record_ids"] = record_ids
    if affected is not None:
        data["affected"] = affected
    if error:
        data["error"] = error
    return LogEntry("store", "execution", data)


def log_notifications_created(
    function_name: str,
    execution_id: Optional[str],
    count: int,
    types: Dict[str, int],
) -> LogEntry:
    data = _base_entry(
        event="notifications_created",
        level="INFO",
        object_ref=function_name,
        execution_id=execution_id,
        count=count,
        types=types,
    )
    return LogEntry("notifications", "execution", data)


def log_security_event(
    event: str,
    function_name: str,
    user_id: Any,
    required_role: str,
    user_role: Optional[str] = None,
    execution_id: Optional[str] = None,
    level: str = "WARNING",
) -> LogEntry:
    """Build a security event entry (role check denied)."""
    data = _base_entry(
        event=event,
        level=level,
        object_ref=function_name,
        execution_id=execution_id,
        user_id=user_id,
        required_role=required_role,
        user_role=user_role,
    )
    return LogEntry("functions", "security", data)


def log_scheduler_event(
    event: str,
    function_name: str,
    trigger: str,
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    data = _base_entry(
        event=event,
        level="INFO",
        object_ref=function_name,
        trigger=trigger,
    )
    if details:
        data["details"] = details
    return LogEntry("scheduler", "execution", data)


def log_system_event(
    event: str,
    level: str = "INFO",
    details: Optional[Dict[str, Any]] = None,
) -> LogEntry:
    """Build a system event entry (startup, shutdown, config changes)."""
    data = _base_entry(event=event, level=level, object_ref="system")
    if details:
        data["details"] = details
    return LogEntry("system", "execution", data)


# ---------------------------------------------------------------------------
# Log Cleanup / Retention
# ---------------------------------------------------------------------------

class LogRetentionManager:
    """Deletes log files past their category's retention; gzips older files."""

    def __init__(
        self,
        log_dir: str = ".taskops/logs",
        retention_days: Optional[Dict[str, int]] = None,
        compress_after_days: int = 7,
    ):
        self._log_dir = Path(log_dir)
        self._retention = retention_days or DEFAULT_RETENTION.copy()
        self._compress_after = compress_after_days

    def cleanup(self, today: Optional[date] = None) -> Dict[str, int]:
        """Returns counts: {"deleted": N, "compressed": M}."""
        deleted = 0
        compressed = 0
        today = today or date.today()

        for obj_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for cat in categories:
                cat_dir = self._log_dir / obj_type / cat
                if not cat_dir.exists():
                    continue

                retention = self._retention.get(cat, 90)

                for file_path in cat_dir.iterdir():
                    if not file_path.is_file():
                        continue
                    file_date = self._parse_file_date(file_path)
                    if file_date is None:
                        continue

                    age_days = (today - file_date).days
                    if age_days > retention:
                        file_path.unlink()
                        deleted += 1
                    elif age_days > self._compress_after and file_path.suffix == ".jsonl":
                        if self._compress_file(file_path):
                            compressed += 1

        result = {"deleted": deleted, "compressed": compressed}
        logger.info(f"Log cleanup: {result}")
        return result

    @staticmethod
    def _parse_file_date(file_path: Path) -> Optional[date]:
        """2026-02-12.jsonl / 2026-02-12.jsonl.gz -> date."""
        try:
            return date.fromisoformat(file_path.name.split(".")[0])
        except ValueError:
            return None

    @staticmethod
    def _compress_file(file_path: Path) -> bool:
        gz_path = file_path.with_suffix(file_path.suffix + ".gz")
        try:
            with open(file_path, "rb") as f_in:
                with gzip.open(gz_path, "wb") as f_out:
                    shutil.copyfileobj(f_in, f_out)
            file_path.unlink()
            return True
        except OSError as e:
            logger.error(f"Failed to compress {file_path}: {e}")
            if gz_path.exists():
                gz_path.unlink()
            return False


# ---------------------------------------------------------------------------
# Global Log Queue Singleton
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = ".taskops/logs",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
    level: str = "INFO",
) -> AsyncLogQueue:
    """Configure ``taskops.*`` loggers and start the global async log queue."""
    global _global_queue
    logging.getLogger("taskops").setLevel(level.upper())
    if _global_queue is not None:
        return _global_queue
    _global_queue = AsyncLogQueue(
        file_logger=FileLogger(log_dir=log_dir),
        flush_interval_ms=flush_interval_ms,
        flush_batch_size=flush_batch_size,
        max_queue_size=max_queue_size,
    )
    _global_queue.start()
    return _global_queue


def get_log_queue() -> Optional[AsyncLogQueue]:
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Push a log entry to the global queue. Non-blocking."""
    if _global_queue is None:
        logger.debug("Log queue not initialized, entry dropped")
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    """Flush and stop the global log queue."""
    global _global_queue
    if _global_queue:
        _global_queue.stop()
        _global_queue = None
