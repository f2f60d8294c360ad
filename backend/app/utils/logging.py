"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Storage events additionally carry:
- operation
- file_name
- bucket / key (when known)
- fault (on failures)

Usage:
    from app.utils.logging import configure_logging, log_storage_success

    configure_logging('s3-gateway', 'INFO')
    log_storage_success(logger, operation='upload', file_name='a.txt', bucket='b', key='dir/a.txt')
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        # Create JSON formatter
        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        # Create console handler (for docker logs)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        # Configure root logger
        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Add service name to all log records via filter
        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())

        # botocore is chatty at DEBUG
        logging.getLogger("botocore").setLevel(logging.WARNING)
        logging.getLogger("s3transfer").setLevel(logging.WARNING)

        cls._configured = True


def utc_timestamp() -> str:
    """Current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).isoformat()


def _build_log_extra(
    event: str,
    operation: str,
    file_name: Optional[str] = None,
    bucket: Optional[str] = None,
    key: Optional[str] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        operation: Storage operation (upload, read, list, move, delete)
        file_name: Optional file name
        bucket: Optional bucket name
        key: Optional object key
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        "operation": operation,
        **kwargs
    }

    if file_name:
        extra["file_name"] = file_name
    if bucket:
        extra["bucket"] = bucket
    if key:
        extra["key"] = key

    return extra


def log_storage_success(
    logger: logging.Logger,
    operation: str,
    file_name: str,
    bucket: str,
    key: Optional[str] = None,
    **kwargs
):
    """
    Log a successful storage operation at INFO level.

    The message mirrors the structured fields so plain-text sinks
    still show what happened and when.
    """
    timestamp = utc_timestamp()
    extra = _build_log_extra(
        event="storage_success",
        operation=operation,
        file_name=file_name,
        bucket=bucket,
        key=key,
        utc_time=timestamp,
        **kwargs
    )

    location = f"{bucket}/{key}" if key else bucket
    logger.info(f"{operation} succeeded for {file_name} at {location} on {timestamp}", extra=extra)


def log_storage_failure(
    logger: logging.Logger,
    operation: str,
    message: str,
    fault: str,
    file_name: Optional[str] = None,
    bucket: Optional[str] = None,
    key: Optional[str] = None,
    include_traceback: bool = False,
    **kwargs
):
    """
    Log a failed storage operation at ERROR level.

    Args:
        logger: Logger instance
        operation: Storage operation name (required)
        message: Human readable message (required)
        fault: Fault classification (credentials, backend, system)
        file_name: Optional file name
        bucket: Optional bucket
        key: Optional object key
        include_traceback: Whether to attach the active exception's stack trace
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="storage_failure",
        operation=operation,
        file_name=file_name,
        bucket=bucket,
        key=key,
        fault=fault,
        utc_time=utc_timestamp(),
        **kwargs
    )

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
            return
    logger.error(message, extra=extra)


def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
