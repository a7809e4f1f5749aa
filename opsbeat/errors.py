"""
OpsBeat Error Hierarchy

Base error and specific error types for OpsBeat components.
Errors carry metadata for structured logging.
"""

from typing import Any, Dict, Optional


class OpsBeatError(RuntimeError):
    """
    Base error for OpsBeat components. Carries metadata for structured logging.

    Attributes:
        category: Error category for classification (e.g., "storage", "config")
        retryable: Whether the operation could succeed if attempted again
        metadata: Additional context for logging and debugging
    """

    category: str = "runtime"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.metadata = metadata or {}
        if retryable is not None:
            self.retryable = retryable


# Configuration Errors
class ConfigError(OpsBeatError):
    """Raised when configuration is invalid or missing."""

    category = "config"


# Storage Errors
class StorageError(OpsBeatError):
    """Raised when a round trip to the ops store fails."""

    category = "storage"
    retryable = True


class EntityNotFoundError(StorageError):
    """Raised when a requested row is not found in the ops store."""

    retryable = False
