"""
Custom exception hierarchy for the request cache.

All exceptions inherit from RCError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class RCError(Exception):
    """Base exception for all request cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(RCError):
    """Raised when configuration or construction arguments are invalid.

    Examples:
        - Non-positive storage capacity
        - Retry budget or batch size below 1
    """

    pass


class StorageError(RCError):
    """Raised when the storage medium fails for a reason other than capacity.

    These are never retried.

    Context should include:
        - backend: The adapter that failed (memory, sqlite)
        - key: The key being accessed, if any
        - operation: get, set, remove or clear
    """

    pass


class CapacityExceededError(StorageError):
    """Raised when a write would exceed the medium's capacity.

    Context should include:
        - key: The key being written
        - required: Bytes the medium would hold after the write
        - capacity: The configured capacity in bytes
    """

    pass


class SerializationError(RCError):
    """Raised when a value cannot be encoded for storage.

    Context should include:
        - type: The Python type of the rejected value
        - error: The underlying encoder message
    """

    pass


class FetchError(RCError):
    """Raised when a request fails and no cached fallback is available.

    Context should include:
        - url: The URL that was being fetched
        - status_code: HTTP status code if applicable
        - cache_key: The canonical key that was consulted
    """

    pass
