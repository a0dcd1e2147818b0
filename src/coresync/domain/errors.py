"""Domain error taxonomy shared by the engine and its adapters."""

from __future__ import annotations


class CoreSyncError(RuntimeError):
    """Base class for every error raised by the reconciliation engine."""


class ValidationError(CoreSyncError):
    """Raised when a payload is malformed or violates a validation rule."""


class ParseError(ValidationError):
    """Raised when a payload or base document is not valid structured data."""


class ConflictError(ValidationError):
    """Raised when a write would break tag uniqueness or address-range disjointness."""


class UnknownSettingError(ValidationError):
    """Raised when a settings write names a key outside the registry."""


class NotFoundError(ValidationError):
    """Raised when a referenced record does not exist."""


class StoreError(CoreSyncError):
    """Raised when the entity store fails during mutation or commit."""


class AdapterError(CoreSyncError):
    """Raised when the live core rejects an operation."""


class CoreNotFoundError(AdapterError):
    """Raised when the live core does not hold the requested tag."""


class ProvisioningError(CoreSyncError):
    """Raised when the peer-provisioning service fails or returns an error."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code
