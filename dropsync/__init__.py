"""dropsync - keep a local folder and an S3 bucket in sync."""

from .config import SyncConfig, load_config
from .exceptions import (
    ConfigError,
    DropSyncError,
    ReconcileError,
    SnapshotError,
    StorageError,
    TransferError,
)
from .sync import SyncEngine
from .utils import normalize_etag

__version__ = "0.1.0"

__all__ = [
    "SyncEngine",
    "SyncConfig",
    "load_config",
    "DropSyncError",
    "ConfigError",
    "StorageError",
    "SnapshotError",
    "TransferError",
    "ReconcileError",
    "normalize_etag",
]
