"""
Structured JSON logging for the API and the upload client.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- bucket
- key
- upload_id
- duration_ms

Usage:
    from presigned_storage.utils.logging import configure_logging, log_multipart_started

    configure_logging('presigned-api', 'INFO')
    log_multipart_started(logger, bucket='media', key='video.mp4', upload_id='abc', part_count=3)
"""
import logging
import sys
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
            service_name: Service identifier (presigned-api or presigned-cli)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        # Logs go to stderr so CLI output on stdout stays clean
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Add service name to all log records via filter
        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())
        cls._configured = True


def _build_log_extra(
    event: str,
    bucket: Optional[str] = None,
    key: Optional[str] = None,
    upload_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        bucket: Optional bucket name
        key: Optional object key
        upload_id: Optional multipart upload id
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if bucket:
        extra["bucket"] = bucket
    if key:
        extra["key"] = key
    if upload_id:
        extra["upload_id"] = upload_id
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Multipart session events

def log_multipart_started(
    logger: logging.Logger,
    bucket: str,
    key: str,
    upload_id: str,
    part_count: int,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log multipart session creation.

    Args:
        logger: Logger instance
        bucket: Bucket name (required)
        key: Object key (required)
        upload_id: Upload id issued by storage (required)
        part_count: Number of part URLs issued (required)
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="multipart_started",
        bucket=bucket,
        key=key,
        upload_id=upload_id,
        duration_ms=duration_ms,
        part_count=part_count,
        **kwargs
    )

    logger.info(f"Multipart upload started: {bucket}/{key} ({part_count} parts)", extra=extra)


def log_multipart_completed(
    logger: logging.Logger,
    bucket: str,
    key: str,
    upload_id: str,
    part_count: int,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """Log multipart session completion."""
    extra = _build_log_extra(
        event="multipart_completed",
        bucket=bucket,
        key=key,
        upload_id=upload_id,
        duration_ms=duration_ms,
        part_count=part_count,
        **kwargs
    )

    logger.info(f"Multipart upload completed: {bucket}/{key}", extra=extra)


def log_multipart_aborted(
    logger: logging.Logger,
    bucket: str,
    key: str,
    upload_id: str,
    reason: Optional[str] = None,
    **kwargs
):
    """Log multipart session abort."""
    extra = _build_log_extra(
        event="multipart_aborted",
        bucket=bucket,
        key=key,
        upload_id=upload_id,
        **kwargs
    )
    if reason:
        extra["reason"] = reason

    logger.warning(f"Multipart upload aborted: {bucket}/{key}", extra=extra)


def log_part_failed(
    logger: logging.Logger,
    part_number: int,
    error: str,
    upload_id: Optional[str] = None,
    **kwargs
):
    """
    Log a failed part transfer.

    Args:
        logger: Logger instance
        part_number: Failed part number (required)
        error: Error message (required)
        upload_id: Optional upload id
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="part_failed",
        upload_id=upload_id,
        part_number=part_number,
        error=str(error),
        **kwargs
    )

    logger.error(f"Part {part_number} upload failed - {error}", extra=extra)


def log_gateway_failure(
    logger: logging.Logger,
    operation: str,
    error: str,
    include_traceback: bool = False,
    **kwargs
):
    """
    Log an object storage failure.

    Args:
        logger: Logger instance
        operation: Gateway operation name (required)
        error: Error message (required)
        include_traceback: Whether to include stack trace (default: False)
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="gateway_failure",
        operation=operation,
        error=str(error),
        **kwargs
    )

    message = f"Storage failure: {operation} - {error}"

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
            return
    logger.error(message, extra=extra)


# Convenience alias
def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
