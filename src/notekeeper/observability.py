"""Logging setup and operation metrics for the storage core.

Every ``NoteService`` operation runs under ``traced()``: it is timed,
logged at DEBUG with a short correlation ID, and counted in the process-wide
``metrics`` collector. Failures are counted per ``ErrorCode`` so a host can
tell validation mistakes from storage trouble.
"""
import functools
import logging
import time
import uuid
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, Union

from notekeeper.exceptions import NotekeeperError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
LOG_FILE_NAME = "notekeeper.log"

# Every module logger in the package is a child of this one
ROOT_LOGGER_NAME = "notekeeper"

F = TypeVar("F", bound=Callable[..., Any])


def configure_logging(
    log_dir: Union[str, Path],
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    console: bool = True,
) -> Path:
    """Send the package's log records to a rotating file.

    Handlers are attached to the ``notekeeper`` logger rather than the root
    logger, so a host keeps control of its own logging. Repeated calls
    reuse the handlers already attached.

    Args:
        log_dir: Directory for ``notekeeper.log`` and its rotations
        level: Level for the logger and all of its handlers
        max_bytes: Size at which the file is rotated
        backup_count: Number of rotated files kept
        console: Also log to stderr

    Returns:
        The log directory.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = (log_path / LOG_FILE_NAME).resolve()

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    file_handlers = [
        h for h in package_logger.handlers if isinstance(h, RotatingFileHandler)
    ]
    if not any(Path(h.baseFilename) == log_file for h in file_handlers):
        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    has_console = any(
        type(h) is logging.StreamHandler for h in package_logger.handlers
    )
    if console and not has_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    for handler in package_logger.handlers:
        handler.setLevel(level)

    package_logger.info(f"Logging to {log_file}")
    return log_path


@dataclass
class OperationStats:
    """Running totals for one operation name."""

    calls: int = 0
    failures: int = 0
    total_ms: float = 0.0
    slowest_ms: float = 0.0
    error_codes: Counter = field(default_factory=Counter)
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def snapshot(self) -> Dict[str, Any]:
        successes = self.calls - self.failures
        return {
            "count": self.calls,
            "success_count": successes,
            "error_count": self.failures,
            "success_rate": successes / self.calls if self.calls else 0,
            "avg_duration_ms": round(self.total_ms / self.calls, 2) if self.calls else 0,
            "max_duration_ms": round(self.slowest_ms, 2),
            "error_codes": dict(self.error_codes),
            "last_error": self.last_error,
            "last_error_time": (
                self.last_error_at.isoformat() if self.last_error_at else None
            ),
        }


class MetricsCollector:
    """In-memory, thread-safe counters keyed by operation name.

    Nothing is exported; hosts read ``get_metrics()`` or ``get_summary()``
    when they want to show or log them.
    """

    def __init__(self) -> None:
        self._stats: Dict[str, OperationStats] = {}
        self._lock = Lock()
        self._since = datetime.now(timezone.utc)

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        """Add one call to the totals for ``operation``.

        Args:
            operation: Operation name, e.g. ``save_note``
            duration_ms: Wall time of the call
            success: Whether the call returned normally
            error: Message of the raised exception
            error_code: ``ErrorCode`` name for package errors, else the
                exception class name
        """
        with self._lock:
            stats = self._stats.setdefault(operation, OperationStats())
            stats.calls += 1
            stats.total_ms += duration_ms
            stats.slowest_ms = max(stats.slowest_ms, duration_ms)
            if not success:
                stats.failures += 1
                stats.last_error = error
                stats.last_error_at = datetime.now(timezone.utc)
                if error_code:
                    stats.error_codes[error_code] += 1

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation snapshot."""
        with self._lock:
            return {op: stats.snapshot() for op, stats in self._stats.items()}

    def get_summary(self) -> Dict[str, Any]:
        """Totals across all operations since creation or the last reset."""
        with self._lock:
            calls = sum(s.calls for s in self._stats.values())
            failures = sum(s.failures for s in self._stats.values())
            return {
                "uptime_seconds": (datetime.now(timezone.utc) - self._since).total_seconds(),
                "total_operations": calls,
                "total_success": calls - failures,
                "total_errors": failures,
                "overall_success_rate": (calls - failures) / calls if calls else 1.0,
                "operations_tracked": list(self._stats),
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
            self._since = datetime.now(timezone.utc)


metrics = MetricsCollector()


def _error_code(error: Exception) -> str:
    if isinstance(error, NotekeeperError):
        return error.code.name
    return type(error).__name__


@contextmanager
def timed_operation(operation: str, **context: Any) -> Iterator[Dict[str, Any]]:
    """Time a block and record it in ``metrics``.

    Yields a dict the block may fill with result details (for example
    ``result_count``); they are included in the closing log line.

    Example:
        with timed_operation("reindex") as op:
            op["result_count"] = fts.rebuild()
    """
    correlation_id = uuid.uuid4().hex[:8]
    info: Dict[str, Any] = {}
    started = time.perf_counter()
    context_str = " ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{correlation_id}] {operation} start {context_str}".rstrip())

    try:
        yield info
    except Exception as e:
        duration_ms = (time.perf_counter() - started) * 1000
        code = _error_code(e)
        metrics.record_operation(operation, duration_ms, False, str(e), code)
        logger.debug(
            f"[{correlation_id}] {operation} failed after {duration_ms:.2f}ms: {code}"
        )
        raise

    duration_ms = (time.perf_counter() - started) * 1000
    metrics.record_operation(operation, duration_ms, True)
    result_str = " ".join(f"{k}={v}" for k, v in info.items())
    logger.debug(
        f"[{correlation_id}] {operation} ok in {duration_ms:.2f}ms {result_str}".rstrip()
    )


def _call_context(args: tuple) -> Dict[str, Any]:
    """Pick a loggable identifier out of a service call's arguments."""
    for arg in args[1:2]:
        if isinstance(arg, str):
            return {"target": arg[:100]}
        target = getattr(arg, "id", None)
        if isinstance(target, str):
            return {"target": target[:100]}
    return {}


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Decorate a service method so each call runs under ``timed_operation``.

    The first argument after ``self`` is logged as the call's target when it
    is an ID string or a model with an ``id``. List results log their length.
    """
    def decorator(func: F) -> F:
        op_name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with timed_operation(op_name, **_call_context(args)) as op:
                result = func(*args, **kwargs)
                if isinstance(result, list):
                    op["result_count"] = len(result)
                return result

        return wrapper  # type: ignore
    return decorator
