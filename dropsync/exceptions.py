"""Custom exceptions for dropsync."""

from typing import Optional


class DropSyncError(Exception):
    """Base exception for all dropsync errors."""


class ConfigError(DropSyncError):
    """Raised when the configuration is missing or invalid."""


class StorageError(DropSyncError):
    """Raised when a storage backend operation fails."""

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name


class SnapshotError(StorageError):
    """Raised when a backend cannot enumerate its files."""


class TransferError(StorageError):
    """Raised when a staged write cannot be completed."""


class ReconcileError(DropSyncError):
    """Raised when the initial reconciliation cannot run."""
