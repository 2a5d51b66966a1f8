"""
Centralized structured logging for the session core.
Uses Python's standard logging with JSON formatting for production.

Every record carries the current request correlation ID when one is set.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Outputs logs in a format easily parseable by log aggregation tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None)
        if request_id and request_id != "-":
            log_data["request_id"] = request_id

        if getattr(record, "extra_data", None):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if settings.debug:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable, colored formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        request_id = getattr(record, "request_id", None)
        if request_id and request_id != "-":
            request_id_str = f"{self.DIM}[{request_id[:8]}]{self.RESET} "
        else:
            request_id_str = ""

        message = (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{request_id_str}{record.name}: {record.getMessage()}"
        )

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            data_str = " | ".join(f"{k}={v}" for k, v in extra_data.items())
            message += f" ({data_str})"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """
    Logger that accepts structured data as keyword arguments.

        logger.info("Session opened", session_id=12, table_id=3)
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        **kwargs: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        if extra is None:
            extra = {}
        extra["extra_data"] = kwargs if kwargs else None
        super()._log(level, msg, args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.ERROR, msg, args, exc_info=exc_info, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        exc_info = kwargs.pop("exc_info", None)
        self._log_with_data(logging.CRITICAL, msg, args, exc_info=exc_info, **kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """
    Configure logging for the application.
    Call this once at application startup.
    """
    # Import here to avoid circular imports
    from shared.infrastructure.correlation import CorrelationIdFilter

    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIdFilter())

    if settings.environment == "production":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = DevelopmentFormatter()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Customer joined", session_id=7, contact=mask_contact("5551234567"))
        logger.error("Failed to publish event", session_id=7, exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore


def mask_contact(contact: str | None) -> str:
    """
    Mask a customer phone/contact number for logging.

    Keeps the last 4 digits so support can correlate a join with a complaint:
    "5551234567" -> "******4567".
    """
    if not contact:
        return "<no-contact>"
    if len(contact) <= 4:
        return "*" * len(contact)
    return "*" * (len(contact) - 4) + contact[-4:]


def mask_otp(otp: str | None) -> str:
    """OTPs are never logged in full. "482913" -> "48****"."""
    if not otp:
        return "<no-otp>"
    return otp[:2] + "*" * max(len(otp) - 2, 0)


def mask_user_id(user_id: int | str | None) -> str:
    """Mask a staff user ID in security-sensitive log lines."""
    if user_id is None:
        return "<no-user>"
    user_str = str(user_id)
    if len(user_str) <= 2:
        return user_str[0] + "***"
    return f"{user_str[:2]}***"


# Pre-configured loggers
tableside_logger = get_logger("tableside")

# Dedicated security audit logger
security_audit_logger = get_logger("security.audit")


# =============================================================================
# Security Audit Logging Functions
# =============================================================================


def audit_policy_decision(
    action: str,
    allowed: bool,
    reason: str,
    actor_id: int | str | None = None,
    actor_role: str | None = None,
    tenant_id: int | None = None,
    resource_kind: str | None = None,
    resource_id: int | None = None,
    **extra: Any,
) -> None:
    """
    Log an authorization decision to the security audit trail.

    Denials are logged at WARNING, grants at INFO. The reason is logged here
    and never returned to the caller.
    """
    log_level = logging.INFO if allowed else logging.WARNING

    security_audit_logger._log_with_data(
        log_level,
        f"POLICY_AUDIT: {'ALLOW' if allowed else 'DENY'} {action}",
        args=(),
        action=action,
        allowed=allowed,
        reason=reason,
        actor_id=actor_id,
        actor_role=actor_role,
        tenant_id=tenant_id,
        resource_kind=resource_kind,
        resource_id=resource_id,
        **extra,
    )


def audit_join_event(
    event_type: str,
    session_id: int | None = None,
    contact: str | None = None,
    success: bool = True,
    reason: str | None = None,
    ip_address: str | None = None,
    **extra: Any,
) -> None:
    """
    Log a customer join attempt.

    Args:
        event_type: JOINED, REJOINED, OTP_MISMATCH, OTP_EXPIRED, SESSION_CLOSED, ...
        session_id: Target session (if resolved)
        contact: Normalized contact (masked automatically)
        success: Whether the join succeeded
        reason: Failure reason
        ip_address: Client IP address
    """
    log_level = logging.INFO if success else logging.WARNING

    security_audit_logger._log_with_data(
        log_level,
        f"JOIN_AUDIT: {event_type}",
        args=(),
        event_type=event_type,
        session_id=session_id,
        contact=mask_contact(contact) if contact else None,
        success=success,
        reason=reason,
        ip_address=ip_address,
        **extra,
    )


def audit_auth_event(
    event_type: str,
    user_id: int | str | None = None,
    success: bool = True,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """Log token verification events at the identity boundary."""
    log_level = logging.INFO if success else logging.WARNING

    security_audit_logger._log_with_data(
        log_level,
        f"AUTH_AUDIT: {event_type}",
        args=(),
        event_type=event_type,
        user_id=mask_user_id(user_id) if user_id is not None else None,
        success=success,
        reason=reason,
        **extra,
    )
