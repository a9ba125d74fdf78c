"""
Error types raised by the store, the repositories and input validation.
"""


class VaultError(Exception):
    """Base class for every error the vault core raises on purpose."""


class StorageError(VaultError):
    """The store is unavailable or an I/O operation failed."""


class ConflictError(VaultError):
    """A uniqueness constraint was violated (e.g. duplicate platform name)."""


class NotFoundError(VaultError):
    """A mutation referenced a row that does not exist."""


class ValidationError(VaultError):
    """Required input is missing; raised before anything reaches the store."""
