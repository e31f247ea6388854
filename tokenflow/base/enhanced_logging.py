"""
Correlation ids and structured error context on top of loguru.

A wallet query is followed from the HTTP request through the feed fetch and
the analytics passes by the correlation id bound to the serving thread.
"""

import os
import time
import uuid
import traceback
import threading
from typing import Dict, Any, Optional
from loguru import logger
import psutil


_correlation_context = threading.local()


def generate_correlation_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> Optional[str]:
    return getattr(_correlation_context, 'correlation_id', None)


def set_correlation_id(correlation_id: Optional[str]):
    """Bind correlation_id to the current thread; None unbinds it."""
    _correlation_context.correlation_id = correlation_id


def get_logs_dir() -> str:
    """Directory for JSON log files: TOKENFLOW_LOG_DIR, else ./logs under the working directory."""
    return os.getenv("TOKENFLOW_LOG_DIR") or os.path.join(os.getcwd(), "logs")


def record_patcher(service_name: str):
    """Loguru filter that stamps every record with the service and correlation id."""
    def patch_record(record):
        record["extra"]["service"] = service_name
        record["extra"]["correlation_id"] = get_correlation_id() or "no_correlation"
        return True
    return patch_record


def get_process_state() -> Dict[str, Any]:
    """Memory and thread usage of this process, attached to error records."""
    try:
        process = psutil.Process()
        return {
            "memory_usage_mb": round(process.memory_info().rss / 1024 / 1024, 2),
            "threads": process.num_threads(),
        }
    except psutil.Error:
        return {"error": "unable_to_get_process_state"}


class ErrorContextManager:
    """Structured error and lifecycle logging for one service."""

    def __init__(self, service_name: str):
        self.service_name = service_name

    def start_operation(self, operation_name: str, **context) -> 'OperationContext':
        """
        Track an operation under the current request's correlation id, or a
        fresh one when the thread has none bound.
        """
        correlation_id = get_correlation_id() or generate_correlation_id()
        return OperationContext(correlation_id, operation_name, context)

    def log_error(self, message: str, error: Exception, **context):
        logger.error(
            message,
            extra={
                "error_type": type(error).__name__,
                "error_message": str(error),
                "error_category": classify_error(error),
                "service": self.service_name,
                "process_state": get_process_state(),
                "stack_trace": traceback.format_exc(),
                **context
            }
        )

    def log_service_lifecycle(self, event: str, **context):
        logger.info(
            f"Service lifecycle: {event}",
            extra={"lifecycle_event": event, "service": self.service_name, **context}
        )


class OperationContext:
    """Binds a correlation id for the duration of one wallet operation."""

    def __init__(self, correlation_id: str, operation_name: str, context: Dict[str, Any]):
        self.correlation_id = correlation_id
        self.operation_name = operation_name
        self.context = context
        self.start_time = time.time()
        self._previous_id = None

    def __enter__(self):
        self._previous_id = get_correlation_id()
        set_correlation_id(self.correlation_id)
        return self

    @property
    def duration(self) -> float:
        return time.time() - self.start_time

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            logger.debug(
                f"Operation completed: {self.operation_name}",
                extra={"operation": self.operation_name, "duration": self.duration, **self.context}
            )
        else:
            logger.error(
                f"Operation failed: {self.operation_name}",
                extra={
                    "operation": self.operation_name,
                    "duration": self.duration,
                    "error_type": exc_type.__name__,
                    "error_category": classify_error(exc_val),
                    "error_message": str(exc_val),
                    **self.context
                }
            )
        set_correlation_id(self._previous_id)
        return False


def classify_error(error: Exception) -> str:
    """
    Map an exception to the category used for error metrics.

    Feed failures get their own categories; anything else falls back to
    matching on the exception's type name.
    """
    from tokenflow.feed.transfer_feed import InvalidAddressError, NoTransfersError, UpstreamError

    if isinstance(error, InvalidAddressError):
        return 'validation_error'
    if isinstance(error, NoTransfersError):
        return 'no_data'
    if isinstance(error, UpstreamError):
        return 'upstream_error'

    error_type = type(error).__name__.lower()

    if 'connection' in error_type or 'timeout' in error_type:
        return 'connection_error'
    if error_type == 'valueerror':
        return 'validation_error'
    return 'unknown_error'


def log_service_start(service_name: str, **config):
    ErrorContextManager(service_name).log_service_lifecycle(
        "service_start",
        configuration=config,
        pid=os.getpid()
    )
