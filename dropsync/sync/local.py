"""Local filesystem side of the sync."""

import logging
import os
import shutil
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterator, Optional

import send2trash

from ..exceptions import StorageError, TransferError
from ..utils import DEFAULT_CHUNK_SIZE, staging_name
from .backend import StorageBackend, WriteResult
from .models import FileRecord
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


class LocalBackend(StorageBackend):
    """Storage backend rooted at a local directory."""

    label = "local"

    def __init__(
        self,
        root: Path,
        scanner: Optional[DirectoryScanner] = None,
        use_trash: bool = True,
    ):
        """Initialize local backend.

        Args:
            root: Directory that mirrors the bucket
            scanner: Scanner used for snapshots (defaults to a plain scanner)
            use_trash: Move removed files to the system trash instead of
                deleting them permanently
        """
        super().__init__()
        self.root = Path(root)
        self.scanner = scanner or DirectoryScanner()
        self.use_trash = use_trash

    def path_for(self, name: str) -> Path:
        """Resolve a relative name to a path inside the root.

        Raises:
            StorageError: If the name escapes the root directory
        """
        relative = PurePosixPath(name)
        if relative.is_absolute() or ".." in relative.parts:
            raise StorageError(f"Refusing path outside sync directory: {name}", name=name)
        return self.root.joinpath(*relative.parts)

    def _list(self) -> list[FileRecord]:
        return self.scanner.scan(self.root)

    def _stat(self, name: str) -> Optional[FileRecord]:
        path = self.path_for(name)
        if not path.is_file():
            return None
        return self.scanner.record_for(path, self.root)

    def _exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    @contextmanager
    def open_reader(self, name: str) -> Iterator[BinaryIO]:
        with open(self.path_for(name), "rb") as f:
            yield f

    def _write_staged(self, name: str, reader: BinaryIO) -> None:
        target = self.path_for(name)
        staged = self.path_for(staging_name(name))
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(staged, "wb") as f:
                shutil.copyfileobj(reader, f, DEFAULT_CHUNK_SIZE)
            os.replace(staged, target)
        except Exception as e:
            staged.unlink(missing_ok=True)
            raise TransferError(f"Staged write of {name} failed: {e}", name=name) from e

    def get(self, record: FileRecord, source: StorageBackend) -> WriteResult:
        """Download ``record`` from ``source`` into the local tree.

        Returns:
            WriteResult of the download, falsy on failure
        """
        return self.receive(record, source)

    def _rename(self, old: str, new: str) -> None:
        target = self.path_for(new)
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(self.path_for(old), target)

    def _remove(self, name: str) -> None:
        path = self.path_for(name)
        if self.use_trash:
            send2trash.send2trash(str(path))
        else:
            path.unlink()
