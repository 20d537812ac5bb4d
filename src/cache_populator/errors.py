"""Cache populator error hierarchy.

Structured exception types for the population layer.
"""

from __future__ import annotations


class CachePopulatorError(Exception):
    """Base error for all cache populator exceptions."""

    code = "CACHE_POPULATOR_ERROR"

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Store Errors
class StoreUnavailableError(CachePopulatorError):
    """Store client is not connected or not ready."""

    code = "STORE_UNAVAILABLE"

    def __init__(self, message: str = "Cache store client is not ready", key: str = None):
        super().__init__(message, {"key": key})
        self.key = key


class AdapterError(CachePopulatorError):
    """Store adapter failed for a reason other than availability."""

    code = "ADAPTER_ERROR"

    def __init__(
        self,
        message: str,
        key: str = None,
        operation: str = None,
        cause: Exception = None,
    ):
        details = {"key": key, "operation": operation}
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.key = key
        self.operation = operation
        self.cause = cause


# Producer Errors
class ProducerError(CachePopulatorError):
    """The value producer for a key failed."""

    code = "PRODUCER_ERROR"

    def __init__(self, message: str, key: str = None, cause: Exception = None):
        details = {"key": key}
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.key = key
        self.cause = cause
