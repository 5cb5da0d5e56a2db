"""Exception taxonomy for the order synchronization pipeline.

Batch-level errors (``ConfigurationError``, ``ValidationError``,
``ExternalApiError``) abort the operation that raised them. Per-item errors
(``TransformError``, ``PersistenceError``) are collected by the sync
orchestrator and never abort a batch.
"""

from typing import Any


class OrderSyncError(Exception):
    """Base class for all order sync errors."""


class ConfigurationError(OrderSyncError):
    """The external API client is not configured (missing credentials)."""


class ValidationError(OrderSyncError):
    """Malformed caller input, rejected before any I/O."""


class ExternalApiError(OrderSyncError):
    """The external order API failed or reported a fault."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        fault_code: int | None = None,
        fault_string: str | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.fault_code = fault_code
        self.fault_string = fault_string
        self.response_data = response_data or {}


class TransformError(OrderSyncError):
    """A single raw order could not be normalized."""


class PersistenceError(OrderSyncError):
    """A store read or write failed for a single order."""
