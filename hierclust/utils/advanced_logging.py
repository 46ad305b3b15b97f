"""
Logging setup for clustering runs.

stdlib logging carries the output; structlog adds structured fields:
- service identity (name, version, environment) on every event
- the run's correlation ID, so matrix, merge and split events group together
- timing for expensive steps and periodic progress for merge/split loops
"""

import contextlib
import functools
import logging
import logging.handlers
import time
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
from structlog.types import EventDict, Processor

LOG_FILE_MAX_BYTES = 100 * 1024 * 1024
LOG_FILE_BACKUPS = 5


# =============================================================================
# Structured Logging Configuration
# =============================================================================


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    service_name: str = "hierclust",
    service_version: Optional[str] = None,
    environment: Optional[str] = None,
) -> None:
    """
    Route stdlib and structlog output through one root handler.

    Call once at process start; the CLI does this from the loaded settings.
    ``log_format="json"`` renders one JSON object per event, anything else
    renders for a terminal. With ``log_file`` events are also written to a
    rotating file whose directory is created on demand.
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", level=level)
    if log_file:
        _add_rotating_file(log_file, level)

    processors = _shared_processors() + [add_run_context(service_name, service_version, environment)]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _add_rotating_file(log_file: str, level: int) -> None:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
    )
    handler.setLevel(level)
    logging.root.addHandler(handler)


def _shared_processors() -> list[Processor]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def add_run_context(
    service_name: str,
    service_version: Optional[str] = None,
    environment: Optional[str] = None,
) -> Processor:
    """
    Build a processor stamping service identity onto each event.

    The active correlation ID is added too, unless the event already
    carries one from a bound logger.
    """
    identity = {"service": service_name}
    if service_version:
        identity["version"] = service_version
    if environment:
        identity["environment"] = environment

    def processor(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.update(identity)
        correlation_id = LogContext.get_correlation_id()
        if correlation_id and "correlation_id" not in event_dict:
            event_dict["correlation_id"] = correlation_id
        return event_dict

    return processor


# =============================================================================
# Correlation ID Context
# =============================================================================


class LogContext:
    """Holds the correlation ID of the clustering run in progress."""

    _correlation_id: Optional[str] = None

    @classmethod
    def get_correlation_id(cls) -> Optional[str]:
        return cls._correlation_id

    @classmethod
    @contextlib.contextmanager
    def correlation_context(cls, correlation_id: str):
        """
        Scope a correlation ID to a block; nested scopes restore the outer ID.

        Example:
            with LogContext.correlation_context("agglomerative-3f2a"):
                logger.info("merge_progress")
        """
        previous_id = cls._correlation_id
        cls._correlation_id = correlation_id
        try:
            yield
        finally:
            cls._correlation_id = previous_id


def get_logger(name: str) -> structlog.BoundLogger:
    """structlog logger for ``name``, bound to the current run's correlation ID if any."""
    logger = structlog.get_logger(name)
    correlation_id = LogContext.get_correlation_id()
    if correlation_id:
        logger = logger.bind(correlation_id=correlation_id)
    return logger


# =============================================================================
# Timing
# =============================================================================


class PerformanceLogger:
    """
    Times a block and logs one ``operation_completed`` event with its
    duration, or ``operation_failed`` with the error when the block raises.

    ``item_count`` adds a records-per-second rate; extra keyword arguments
    are attached to both events.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.BoundLogger] = None,
        log_level: str = "info",
        item_count: Optional[int] = None,
        **extra_context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger(__name__)
        self.log_level = log_level
        self.item_count = item_count
        self.extra_context = extra_context
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        self.logger.debug("operation_started", operation=self.operation, **self.extra_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.end_time = time.perf_counter()
        duration = self.end_time - self.start_time
        fields = {"operation": self.operation, "duration_seconds": round(duration, 3), **self.extra_context}

        if self.item_count and duration > 0:
            fields["item_count"] = self.item_count
            fields["items_per_second"] = round(self.item_count / duration, 2)

        if exc_type is None:
            getattr(self.logger, self.log_level)("operation_completed", **fields)
        else:
            self.logger.error("operation_failed", error=str(exc_val), error_type=exc_type.__name__, **fields)

    @property
    def elapsed_time(self) -> float:
        """Seconds since entry; frozen once the block exits."""
        if self.start_time is None:
            return 0.0
        return (self.end_time or time.perf_counter()) - self.start_time


def timed(operation: Optional[str] = None, log_level: str = "info") -> Callable:
    """
    Wrap a function in a PerformanceLogger named after it.

    Example:
        @timed(operation="build_distance_matrix", log_level="debug")
        def build(cls, records, metric=None):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with PerformanceLogger(operation or func.__name__, log_level=log_level):
                return func(*args, **kwargs)

        return wrapper

    return decorator


# =============================================================================
# Merge/Split Progress
# =============================================================================


class BatchLogger:
    """
    Progress for merge and split loops.

    ``batch_progress`` is logged at debug level every ``log_interval`` steps
    and on the last step; ``complete()`` logs one ``batch_completed`` summary.
    """

    def __init__(
        self,
        total_items: int,
        operation: str,
        log_interval: int = 100,
        logger: Optional[structlog.BoundLogger] = None,
    ):
        self.total_items = total_items
        self.operation = operation
        self.log_interval = max(1, log_interval)
        self.logger = logger or get_logger(__name__)
        self.processed_items = 0
        self.last_log_count = 0
        self.start_time = time.perf_counter()

    def update(self, count: int = 1) -> None:
        self.processed_items += count
        due = self.processed_items - self.last_log_count >= self.log_interval
        if due or self.processed_items >= self.total_items:
            self._log_progress()
            self.last_log_count = self.processed_items

    def _log_progress(self) -> None:
        elapsed = time.perf_counter() - self.start_time
        if self.total_items > 0:
            progress_pct = 100.0 * self.processed_items / self.total_items
        else:
            progress_pct = 100.0
        self.logger.debug(
            "batch_progress",
            operation=self.operation,
            processed=self.processed_items,
            total=self.total_items,
            progress_pct=round(progress_pct, 1),
            elapsed_seconds=round(elapsed, 3),
        )

    def complete(self) -> None:
        self.logger.info(
            "batch_completed",
            operation=self.operation,
            total_items=self.processed_items,
            duration_seconds=round(time.perf_counter() - self.start_time, 3),
        )


# =============================================================================
# Error Logging
# =============================================================================


@contextlib.contextmanager
def log_exceptions(
    logger: Optional[structlog.BoundLogger] = None,
    operation: Optional[str] = None,
    reraise: bool = True,
):
    """
    Log any exception leaving the block as ``exception_caught``.

    The exception propagates unless ``reraise`` is False.

    Example:
        with log_exceptions(operation="agglomerative_clustering"):
            clusterer.cluster(records)
    """
    log = logger or get_logger(__name__)
    try:
        yield
    except Exception as e:
        fields = {"error": str(e), "error_type": type(e).__name__}
        if operation:
            fields["operation"] = operation
        log.error("exception_caught", **fields)
        if reraise:
            raise
