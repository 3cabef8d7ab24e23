"""Logging setup and per-tool call metrics for the NexusNotes server.

Log records from every ``nexus_notes.*`` module go to a rotating file in the
log directory. Each MCP tool call is timed and counted by tool name, with
failures bucketed by their ``ErrorCode``.
"""
import json
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterator, Optional, Union

from nexus_notes.exceptions import NexusNotesError

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "nexus_notes"
LOG_FILENAME = "nexusnotes.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def configure_logging(
    log_dir: Union[str, Path],
    level: int = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Path:
    """Send the ``nexus_notes`` loggers to a rotating file under ``log_dir``.

    A console handler is added too unless ``console`` is False or one is
    already attached. Returns the log directory.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    handlers: list = [
        RotatingFileHandler(
            log_path / LOG_FILENAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    ]
    has_console = any(type(h) is logging.StreamHandler for h in package_logger.handlers)
    if console and not has_console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    package_logger.info(f"Writing logs to {log_path / LOG_FILENAME}")
    return log_path


def error_label(error: BaseException) -> str:
    """ErrorCode name for our own errors, exception class name otherwise."""
    if isinstance(error, NexusNotesError):
        return error.code.name
    return type(error).__name__


@dataclass
class ToolStats:
    """Aggregated outcome of every call to one MCP tool."""

    calls: int = 0
    failures: int = 0
    total_ms: float = 0.0
    slowest_ms: float = 0.0
    rows_returned: int = 0
    errors: Dict[str, int] = field(default_factory=dict)
    last_error: Optional[str] = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "calls": self.calls,
            "failures": self.failures,
            "avg_ms": round(self.total_ms / self.calls, 2) if self.calls else 0.0,
            "slowest_ms": round(self.slowest_ms, 2),
            "rows_returned": self.rows_returned,
            "errors": dict(self.errors),
            "last_error": self.last_error,
        }


class MetricsCollector:
    """Thread-safe per-tool counters, optionally persisted as JSON."""

    def __init__(self, metrics_file: Optional[Union[str, Path]] = None):
        self._lock = Lock()
        self._tools: Dict[str, ToolStats] = {}
        self._since = datetime.now(timezone.utc)
        self._metrics_file = Path(metrics_file) if metrics_file else None

    def set_metrics_file(self, metrics_file: Union[str, Path]) -> None:
        with self._lock:
            self._metrics_file = Path(metrics_file)

    def record(
        self,
        tool: str,
        duration_ms: float,
        rows: int = 0,
        error: Optional[BaseException] = None,
    ) -> None:
        """Count one call of ``tool``; ``error`` marks it as failed."""
        with self._lock:
            stats = self._tools.setdefault(tool, ToolStats())
            stats.calls += 1
            stats.total_ms += duration_ms
            stats.slowest_ms = max(stats.slowest_ms, duration_ms)
            stats.rows_returned += rows
            if error is not None:
                label = error_label(error)
                stats.failures += 1
                stats.errors[label] = stats.errors.get(label, 0) + 1
                message = getattr(error, "message", None) or str(error)
                stats.last_error = f"{label}: {message}"[:200]

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot keyed by tool name."""
        with self._lock:
            return {tool: stats.snapshot() for tool, stats in self._tools.items()}

    def reset(self) -> None:
        with self._lock:
            self._tools.clear()
            self._since = datetime.now(timezone.utc)

    def save_metrics(self) -> bool:
        """Write the current snapshot to the metrics file.

        Returns:
            False when no file is set or the write fails.
        """
        tools = self.get_metrics()
        with self._lock:
            target = self._metrics_file
            since = self._since
        if target is None:
            return False

        payload = {
            "since": since.isoformat(),
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "tools": tools,
        }
        tmp = target.with_suffix(".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp.replace(target)
        except OSError as e:
            logger.error(f"Could not write metrics to {target}: {e}")
            return False
        return True


metrics = MetricsCollector()


@contextmanager
def timed_operation(tool: str, **context) -> Iterator[Dict[str, Any]]:
    """Time one MCP tool call and record it in ``metrics``.

    The yielded dict lets the caller set ``rows`` (items returned) and
    ``error`` (an exception turned into an error reply rather than raised).
    Exceptions escaping the block are recorded and re-raised.

        with timed_operation("nn_search", query=query) as call:
            results = service.search(query)
            call["rows"] = len(results)
    """
    call_id = uuid.uuid4().hex[:8]
    call: Dict[str, Any] = {"call_id": call_id, "rows": 0, "error": None}
    args = ", ".join(f"{k}={v!r}" for k, v in context.items())
    logger.debug(f"[{call_id}] {tool}({args})")
    started = time.perf_counter()
    try:
        yield call
    except Exception as e:
        call["error"] = e
        raise
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        error = call["error"]
        metrics.record(tool, elapsed_ms, rows=call["rows"], error=error)
        if error is None:
            outcome = f"{call['rows']} row(s)"
        else:
            outcome = f"failed with {error_label(error)}"
        logger.debug(f"[{call_id}] {tool} {outcome} in {elapsed_ms:.2f}ms")
