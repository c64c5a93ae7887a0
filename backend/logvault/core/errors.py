from __future__ import annotations


class LogVaultError(Exception):
    """Base class for errors raised by logvault."""


class NotFoundError(LogVaultError):
    pass


class ConflictError(LogVaultError):
    pass


class ValidationError(LogVaultError):
    """A required argument is missing or unusable; raised before any I/O."""


class AuthenticationError(LogVaultError):
    pass


class StorageError(LogVaultError):
    pass


class TransactionError(StorageError):
    """A multi-statement write failed and was rolled back."""


__all__ = [
    "AuthenticationError",
    "ConflictError",
    "LogVaultError",
    "NotFoundError",
    "StorageError",
    "TransactionError",
    "ValidationError",
]
