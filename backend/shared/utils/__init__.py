"""
Utilities module: Exceptions, validators.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    AuthorizationError,
    NotAccessibleError,
    SessionNotFoundError,
    ValidationError,
    ConflictError,
    InvalidStateError,
    ExpiredError,
    IssuanceExhausted,
    OperationTimeoutError,
)
from shared.utils.validators import (
    validate_otp,
    validate_display_name,
    normalize_contact,
    validate_quantity,
)

__all__ = [
    # exceptions
    "AppException",
    "NotFoundError",
    "AuthorizationError",
    "NotAccessibleError",
    "SessionNotFoundError",
    "ValidationError",
    "ConflictError",
    "InvalidStateError",
    "ExpiredError",
    "IssuanceExhausted",
    "OperationTimeoutError",
    # validators
    "validate_otp",
    "validate_display_name",
    "normalize_contact",
    "validate_quantity",
]
