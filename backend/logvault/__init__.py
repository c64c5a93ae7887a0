from logvault.core.config import Settings, get_settings
from logvault.core.errors import (
    AuthenticationError,
    ConflictError,
    LogVaultError,
    NotFoundError,
    StorageError,
    TransactionError,
    ValidationError,
)
from logvault.storage import LogStorage

__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "ConflictError",
    "LogStorage",
    "LogVaultError",
    "NotFoundError",
    "Settings",
    "StorageError",
    "TransactionError",
    "ValidationError",
    "get_settings",
]
