"""Utility functions for dropsync."""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional, Union

# =============================================================================
# Constants for sync operations
# =============================================================================

# Reserved suffix for writes in flight
STAGING_SUFFIX: str = ".inprog"

# Read size used when hashing and copying file contents (1 MB)
DEFAULT_CHUNK_SIZE: int = 1024 * 1024

# Poll intervals in seconds
DEFAULT_LOCAL_INTERVAL: float = 2.0
DEFAULT_REMOTE_INTERVAL: float = 10.0

# Number of polls an echo expectation survives
DEFAULT_ECHO_TTL: int = 3


# =============================================================================
# Staging name helpers
# =============================================================================


def is_staging_name(name: str) -> bool:
    """Return True if ``name`` is a write-in-progress artifact."""
    return name.endswith(STAGING_SUFFIX)


def staging_name(name: str) -> str:
    """Return the staging name used while ``name`` is being written.

    Examples:
        >>> staging_name("docs/readme.txt")
        'docs/readme.txt.inprog'
    """
    return name + STAGING_SUFFIX


# =============================================================================
# Fingerprint utilities
# =============================================================================


def normalize_etag(etag: Optional[str]) -> str:
    """Normalize an S3 ETag header value to a bare checksum string.

    ETags come back quoted (``"d41d8cd9..."``), sometimes with escaped
    quotes or a weak validator prefix. Only plain string trimming is done
    here.

    Args:
        etag: Raw ETag value as returned by the object store

    Returns:
        Lower-case checksum without quotes, escapes or prefix

    Examples:
        >>> normalize_etag('"9e107d9d372bb6826bd81d3542a419d6"')
        '9e107d9d372bb6826bd81d3542a419d6'
        >>> normalize_etag('W/"ABC"')
        'abc'
    """
    if not etag:
        return ""
    value = etag.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.replace("\\", "")
    value = value.strip("\"'")
    return value.strip().lower()


def calculate_md5(source: Union[Path, BinaryIO], chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Calculate the MD5 hex digest of a file or binary stream.

    Args:
        source: Path to a file, or an open binary stream
        chunk_size: Number of bytes read per iteration

    Returns:
        Hex digest of the full content
    """
    md5 = hashlib.md5()
    if isinstance(source, Path):
        with open(source, "rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                md5.update(chunk)
    else:
        for chunk in iter(lambda: source.read(chunk_size), b""):
            md5.update(chunk)
    return md5.hexdigest()


# =============================================================================
# Formatting utilities
# =============================================================================


def format_timestamp(timestamp: Optional[float]) -> str:
    """Format a Unix timestamp as a local ``YYYY-MM-DD HH:MM:SS`` string."""
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def to_timestamp(value: Optional[datetime]) -> float:
    """Convert a datetime returned by boto3 to a Unix timestamp.

    Naive datetimes are treated as UTC, which is what S3 reports.
    """
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()
