"""
Centralized exceptions for consistent error handling.

Every error carries a stable `kind` so callers can branch on it without
parsing the human-readable detail. The HTTP layer renders both.

Usage:
    from shared.utils.exceptions import NotFoundError, ConflictError, ValidationError

    raise NotFoundError("Order", order_id)
    raise ConflictError("Table already has an active session", table_id=3)
    raise ValidationError("OTP must be 6 digits", field="otp")
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All domain errors inherit from this class so they are logged once at
    the point they are raised and rendered the same way by the API.
    """

    kind: str = "error"

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, kind=self.kind, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 400 Bad Request
# =============================================================================


class ValidationError(AppException):
    """
    Malformed input (400).

    Usage:
        raise ValidationError("Display name is required", field="name")
    """

    kind = "validation"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 404 Not Found / Not Accessible
# =============================================================================


class NotFoundError(AppException):
    """
    Entity does not exist (or is tombstoned) (404).

    Usage:
        raise NotFoundError("Order", 123)
    """

    kind = "not_found"

    def __init__(
        self,
        entity: str,
        entity_id: int | str | None = None,
        detail: str | None = None,
        **log_context: Any,
    ):
        if detail is None:
            if entity_id is not None:
                detail = f"{entity} with ID {entity_id} not found"
            else:
                detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


NOT_ACCESSIBLE_DETAIL = "Resource not accessible"


class NotAccessibleError(NotFoundError):
    """
    Not found, rendered without naming the entity or its ID.

    Used wherever a caller could otherwise learn which IDs exist in other
    tenants. Renders exactly like AuthorizationError.
    """

    kind = "not_accessible"

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        super().__init__(entity, entity_id, detail=NOT_ACCESSIBLE_DETAIL, **log_context)


class SessionNotFoundError(NotAccessibleError):
    """No session matches the lookup (unknown ID, wrong OTP, no active session)."""

    def __init__(self, session_id: int | None = None, **log_context: Any):
        super().__init__("Session", session_id, **log_context)


class AuthorizationError(AppException):
    """
    The policy engine denied the action.

    Rendered exactly like NotAccessibleError so a caller cannot tell a
    denial from a missing row. The real reason goes to the security audit
    log only.
    """

    kind = "not_accessible"

    def __init__(self, action: str | None = None, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=NOT_ACCESSIBLE_DETAIL,
            log_level="warning",
            action=action,
            **log_context,
        )


# =============================================================================
# 409 Conflict
# =============================================================================


class ConflictError(AppException):
    """
    Uniqueness or ownership conflict (409).

    Usage:
        raise ConflictError("Table already has an active session", table_id=3)
    """

    kind = "conflict"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidStateError(AppException):
    """
    Entity is not in a state that allows the operation (409).

    Raised when a compare-and-set transition finds the row has moved on.
    """

    kind = "invalid_state"

    def __init__(
        self,
        entity: str,
        current_state: str | None = None,
        expected_states: list[str] | None = None,
        detail: str | None = None,
        **log_context: Any,
    ):
        if detail is not None:
            pass
        elif expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} is in state '{current_state}', expected: {states_str}"
        elif current_state:
            detail = f"{entity} cannot be in state '{current_state}' for this operation"
        else:
            detail = f"{entity} changed state concurrently"

        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            entity=entity,
            current_state=current_state,
            **log_context,
        )


class InvalidTransitionError(InvalidStateError):
    """Status change not present in the transition table."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        super().__init__(
            entity,
            current_state=from_status,
            detail=f"Invalid transition from '{from_status}' to '{to_status}' for {entity}",
            to_status=to_status,
            **log_context,
        )


# =============================================================================
# 410 Gone
# =============================================================================


class ExpiredError(AppException):
    """The OTP matched but is past its expiry (410)."""

    kind = "expired"

    def __init__(self, detail: str = "Join code has expired", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_410_GONE,
            detail=detail,
            log_level="info",
            **log_context,
        )


# =============================================================================
# 5xx
# =============================================================================


class IssuanceExhausted(AppException):
    """Could not mint a unique OTP within the retry budget (503)."""

    kind = "issuance_exhausted"

    def __init__(self, attempts: int, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not issue a join code, please retry",
            log_level="error",
            attempts=attempts,
            **log_context,
        )


class OperationTimeoutError(AppException, TimeoutError):
    """The store did not answer within the configured deadline (504)."""

    kind = "timeout"

    def __init__(self, operation: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"Timed out during {operation}, please retry",
            log_level="error",
            operation=operation,
            **log_context,
        )


class InternalError(AppException):
    """Internal server error (500)."""

    kind = "internal"

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(detail, operation=operation, **log_context)
