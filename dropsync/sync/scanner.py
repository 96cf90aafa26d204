"""Directory scanning utilities for the local side."""

import fnmatch
import logging
from pathlib import Path
from typing import Optional

from ..utils import calculate_md5
from .models import FileRecord

logger = logging.getLogger(__name__)


class DirectoryScanner:
    """Scans a directory tree and fingerprints every regular file.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> records = scanner.scan(Path("/sync/folder"))

        >>> # With ignore patterns
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp", "cache/*"])
        >>> records = scanner.scan(Path("/sync/folder"))
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns matched against the relative path
                and the file name (e.g., ["*.log", "temp/*"])
            exclude_dot_files: Whether to exclude files/folders starting with dot
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be ignored based on patterns.

        Args:
            path: Path to check
            base_path: Base path for relative path calculation

        Returns:
            True if path should be ignored
        """
        if self.exclude_dot_files and path.name.startswith("."):
            return True

        relative_path = path.relative_to(base_path).as_posix()
        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(path.name, pattern):
                logger.debug(f"Ignoring (pattern {pattern}): {relative_path}")
                return True
        return False

    def record_for(self, file_path: Path, base_path: Path) -> FileRecord:
        """Build a FileRecord for one file.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            FileRecord with a freshly computed fingerprint
        """
        stat = file_path.stat()
        return FileRecord(
            name=file_path.relative_to(base_path).as_posix(),
            fingerprint=calculate_md5(file_path),
            modified_at=stat.st_mtime,
        )

    def scan(self, directory: Path, base_path: Optional[Path] = None) -> list[FileRecord]:
        """Recursively scan a local directory.

        Unreadable files and directories are skipped. A missing root is an
        error, since an empty result would look like every file was
        deleted.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)

        Returns:
            List of FileRecord objects

        Raises:
            FileNotFoundError: If the root directory does not exist
        """
        if base_path is None:
            base_path = directory
            if not directory.is_dir():
                raise FileNotFoundError(f"Sync directory not found: {directory}")

        records: list[FileRecord] = []

        try:
            for item in directory.iterdir():
                if self.should_ignore(item, base_path):
                    continue

                if item.is_symlink():
                    continue
                if item.is_file():
                    try:
                        records.append(self.record_for(item, base_path))
                    except OSError as e:
                        # File vanished or is unreadable; it will be seen next poll
                        logger.debug(f"Skipping {item}: {e}")
                        continue
                elif item.is_dir():
                    records.extend(self.scan(item, base_path))
        except PermissionError as e:
            logger.warning(f"Permission denied: {e}")

        return records
