"""Domain layer: errors and schemas."""

from .errors import (
    AuthenticationError,
    ClientDisconnectedError,
    ConfigurationError,
    ErrorCodes,
    ForwardingError,
    InvalidPathError,
    RateLimitError,
    UnexpectedError,
    UploadRelayError,
    ValidationError,
)
from .schemas import (
    ForwardResult,
    RateLimitRecord,
    RetryState,
    UploadBatch,
    UploadItem,
    UploadLimits,
    ValidationResult,
)

__all__ = [
    "UploadRelayError",
    "ValidationError",
    "InvalidPathError",
    "AuthenticationError",
    "ClientDisconnectedError",
    "RateLimitError",
    "ConfigurationError",
    "ForwardingError",
    "UnexpectedError",
    "ErrorCodes",
    "UploadItem",
    "UploadBatch",
    "UploadLimits",
    "ValidationResult",
    "RateLimitRecord",
    "RetryState",
    "ForwardResult",
]
