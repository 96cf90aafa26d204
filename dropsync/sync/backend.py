"""Storage backend interface shared by the local and remote sides."""

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from enum import Enum
from typing import BinaryIO, Optional

from ..exceptions import SnapshotError, StorageError
from .models import DirectoryState, FileRecord

logger = logging.getLogger(__name__)


class WriteResult(str, Enum):
    """Outcome of a best-effort write; falsy only when the write failed."""

    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"

    def __bool__(self) -> bool:
        return self is not WriteResult.FAILED


class StorageBackend(ABC):
    """One side of the sync: produces snapshots and accepts writes.

    Subclasses implement the ``_list``/``_stat``/``_write_staged``/
    ``_rename``/``_remove`` primitives and may raise freely from them. The
    public methods wrap those primitives so that no error escapes: a
    failed listing yields a stale snapshot and a failed write returns
    ``WriteResult.FAILED``.
    """

    label = "storage"

    def __init__(self) -> None:
        self._last_snapshot: Optional[DirectoryState] = None

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _list(self) -> list[FileRecord]:
        """Enumerate every file on this side."""

    @abstractmethod
    def _stat(self, name: str) -> Optional[FileRecord]:
        """Describe one file, or return None if it does not exist."""

    @abstractmethod
    def open_reader(self, name: str) -> AbstractContextManager[BinaryIO]:
        """Open ``name`` for reading its current bytes."""

    @abstractmethod
    def _write_staged(self, name: str, reader: BinaryIO) -> None:
        """Write ``reader`` under the staging name, then move it to ``name``."""

    @abstractmethod
    def _rename(self, old: str, new: str) -> None:
        """Move an existing file."""

    @abstractmethod
    def _remove(self, name: str) -> None:
        """Delete an existing file."""

    def _exists(self, name: str) -> bool:
        return self._stat(name) is not None

    # ------------------------------------------------------------------
    # Best-effort operations
    # ------------------------------------------------------------------

    def snapshot(self) -> DirectoryState:
        """Take a snapshot of every file on this side.

        Returns:
            Fresh DirectoryState, or the last good one flagged as stale if
            the listing failed
        """
        try:
            state = DirectoryState.from_records(self._list())
        except (StorageError, OSError) as e:
            logger.error(f"[{self.label}] Listing failed, keeping previous state: {e}")
            if self._last_snapshot is None:
                return DirectoryState.empty(stale=True)
            return self._last_snapshot.as_stale()

        self._last_snapshot = state
        logger.debug(f"[{self.label}] Snapshot: {len(state)} file(s)")
        return state

    def stat(self, name: str) -> Optional[FileRecord]:
        """Describe one file.

        Raises:
            StorageError: If the file cannot be inspected
        """
        try:
            return self._stat(name)
        except StorageError:
            raise
        except OSError as e:
            raise StorageError(f"Cannot stat {name}: {e}", name=name) from e

    def receive(self, record: FileRecord, source: "StorageBackend") -> WriteResult:
        """Copy ``record`` from ``source`` onto this side, staged.

        The write is skipped when this side already holds the same content
        or a newer version of the file.

        Args:
            record: Record observed on the source side
            source: Backend the bytes are read from

        Returns:
            WRITTEN, SKIPPED when this side already holds the file, or
            FAILED
        """
        name = record.name
        try:
            existing = self.stat(name)
            if existing is not None:
                if existing.fingerprint == record.fingerprint:
                    logger.debug(f"[{self.label}] Skip {name}: already up to date")
                    return WriteResult.SKIPPED
                if existing.modified_at > record.modified_at:
                    logger.info(f"[{self.label}] Skip {name}: destination is newer")
                    return WriteResult.SKIPPED

            logger.debug(f"[{self.label}] Writing {name} from {source.label}...")
            with source.open_reader(name) as reader:
                self._write_staged(name, reader)
        except (StorageError, OSError) as e:
            logger.error(f"[{self.label}] Failed to write {name}: {e}")
            return WriteResult.FAILED

        logger.info(f"[{self.label}] Wrote {name}")
        return WriteResult.WRITTEN

    def rename(self, old: str, new: str) -> WriteResult:
        """Move ``old`` to ``new``; a missing ``old`` is a no-op.

        Returns:
            WRITTEN, SKIPPED when ``old`` is missing, or FAILED
        """
        try:
            if not self._exists(old):
                logger.debug(f"[{self.label}] Skip rename {old}: not found")
                return WriteResult.SKIPPED
            self._rename(old, new)
        except (StorageError, OSError) as e:
            logger.error(f"[{self.label}] Failed to rename {old} -> {new}: {e}")
            return WriteResult.FAILED

        logger.info(f"[{self.label}] Renamed {old} -> {new}")
        return WriteResult.WRITTEN

    def remove(self, name: str) -> WriteResult:
        """Delete ``name``; a missing file is a no-op.

        Returns:
            WRITTEN, SKIPPED when ``name`` is missing, or FAILED
        """
        try:
            if not self._exists(name):
                logger.debug(f"[{self.label}] Skip remove {name}: not found")
                return WriteResult.SKIPPED
            self._remove(name)
        except (StorageError, OSError) as e:
            logger.error(f"[{self.label}] Failed to remove {name}: {e}")
            return WriteResult.FAILED

        logger.info(f"[{self.label}] Removed {name}")
        return WriteResult.WRITTEN


def require_snapshot(backend: StorageBackend) -> DirectoryState:
    """Take a snapshot and raise if it could not be refreshed.

    Raises:
        SnapshotError: If the backend returned a stale snapshot
    """
    state = backend.snapshot()
    if state.stale:
        raise SnapshotError(f"Cannot list {backend.label} files")
    return state
