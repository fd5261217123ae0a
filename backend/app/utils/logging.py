"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- record_id
- user_id
- duration_ms

Usage:
    from app.utils.logging import configure_logging, log_upload_started

    configure_logging('media-upload-api', 'INFO')
    log_upload_started(logger, filename='photo.png', user_id='456', media_type='image/png')
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
            service_name: Service identifier
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

        # Console handler (for docker logs)
        handler = logging.StreamHandler(sys.stdout)
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
    record_id: Optional[str] = None,
    user_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        record_id: Optional metadata record ID
        user_id: Optional user ID
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if record_id:
        extra["record_id"] = record_id
    if user_id:
        extra["user_id"] = user_id
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Upload event functions

def log_upload_started(
    logger: logging.Logger,
    filename: str,
    user_id: str,
    media_type: str,
    **kwargs
):
    """
    Log the start of one file's upload saga.

    Args:
        logger: Logger instance
        filename: Original client filename (required)
        user_id: Owning user ID (required)
        media_type: Declared MIME type (required)
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="upload_started",
        user_id=user_id,
        original_filename=filename,
        media_type=media_type,
        **kwargs
    )

    logger.info(f"Upload started: {filename} ({media_type})", extra=extra)


def log_saga_transition(
    logger: logging.Logger,
    key: Optional[str],
    from_state: str,
    to_state: str,
    record_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
):
    """Log a single state transition (debug level)."""
    extra = _build_log_extra(
        event="saga_transition",
        record_id=record_id,
        duration_ms=duration_ms,
        key=key,
        from_state=from_state,
        to_state=to_state,
    )

    logger.debug(f"{key}: {from_state} -> {to_state}", extra=extra)


def log_upload_completed(
    logger: logging.Logger,
    key: str,
    record_id: str,
    user_id: str,
    size: int,
    duration_ms: Optional[float] = None,
    has_thumbnail: bool = False,
    **kwargs
):
    """
    Log a file reaching the Complete state.

    Args:
        logger: Logger instance
        key: Derived storage key (required)
        record_id: Metadata record ID (required)
        user_id: Owning user ID (required)
        size: Payload size in bytes (required)
        duration_ms: Optional saga duration in milliseconds
        has_thumbnail: Whether a thumbnail was published
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="upload_completed",
        record_id=record_id,
        user_id=user_id,
        duration_ms=duration_ms,
        key=key,
        size=size,
        has_thumbnail=has_thumbnail,
        **kwargs
    )

    logger.info(f"Upload completed: {key}", extra=extra)


def log_upload_failed(
    logger: logging.Logger,
    key: Optional[str],
    state: str,
    reason: str,
    error: Optional[str] = None,
    record_id: Optional[str] = None,
    user_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    include_traceback: bool = False,
    **kwargs
):
    """
    Log a file ending in a non-Complete terminal state.

    Args:
        logger: Logger instance
        key: Derived storage key, if one was assigned
        state: Terminal state name (required)
        reason: Error kind (required)
        error: Underlying error message
        record_id: Optional metadata record ID
        user_id: Optional user ID
        duration_ms: Optional saga duration in milliseconds
        include_traceback: Whether to include stack trace
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="upload_failed",
        record_id=record_id,
        user_id=user_id,
        duration_ms=duration_ms,
        key=key,
        state=state,
        reason=reason,
        **kwargs
    )
    if error:
        extra["error"] = str(error)

    message = f"Upload failed ({reason}) in state {state}"
    if error:
        message += f" - {error}"

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
            return
    logger.error(message, extra=extra)


def log_rollback_step_failed(
    logger: logging.Logger,
    step: str,
    error: str,
    record_id: Optional[str] = None,
    **kwargs
):
    """
    Log a compensation step that could not be carried out.

    Rollback is best-effort, so this is a warning rather than an error.
    """
    extra = _build_log_extra(
        event="rollback_step_failed",
        record_id=record_id,
        step=step,
        error=str(error),
        **kwargs
    )

    logger.warning(f"Rollback step {step} failed: {error}", extra=extra)


# Convenience alias for backward compatibility
def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
