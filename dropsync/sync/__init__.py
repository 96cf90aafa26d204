"""Sync engine for dropsync - change detection and two-way replication."""

from .backend import StorageBackend, WriteResult, require_snapshot
from .differ import diff
from .dispatcher import Dispatcher, LocalToRemoteDispatcher, RemoteToLocalDispatcher
from .engine import SyncEngine
from .local import LocalBackend
from .models import (
    Action,
    ActionKind,
    Add,
    DirectoryState,
    FileRecord,
    Remove,
    Rename,
)
from .remote import S3Backend, create_s3_client
from .scanner import DirectoryScanner
from .watcher import Watcher

__all__ = [
    "SyncEngine",
    "StorageBackend",
    "WriteResult",
    "LocalBackend",
    "S3Backend",
    "create_s3_client",
    "DirectoryScanner",
    "Watcher",
    "Dispatcher",
    "LocalToRemoteDispatcher",
    "RemoteToLocalDispatcher",
    "diff",
    "require_snapshot",
    "Action",
    "ActionKind",
    "Add",
    "Remove",
    "Rename",
    "DirectoryState",
    "FileRecord",
]
