"""Snapshot and action types shared by the sync components."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Union

from ..utils import is_staging_name


@dataclass(frozen=True)
class FileRecord:
    """One file on one side at the moment of a snapshot."""

    name: str
    """Relative path (forward slashes on all platforms)"""

    fingerprint: str
    """MD5 hex digest of the full content"""

    modified_at: float
    """Last modification time (Unix timestamp)"""

    @property
    def id(self) -> str:
        """Composite identity of this exact name and content pair."""
        return self.fingerprint + self.name

    @property
    def is_staging(self) -> bool:
        """True if this record is a write in progress."""
        return is_staging_name(self.name)


@dataclass(frozen=True)
class DirectoryState:
    """Immutable snapshot of one side's files, indexed three ways.

    Use :meth:`from_records` to build one. ``by_fingerprint`` can only hold
    one record per checksum; when several files share the same bytes the
    record with the greatest name wins.
    """

    by_name: Mapping[str, FileRecord] = field(default_factory=dict)
    by_fingerprint: Mapping[str, FileRecord] = field(default_factory=dict)
    by_id: Mapping[str, FileRecord] = field(default_factory=dict)
    stale: bool = False
    """Set when the backend could not refresh this snapshot"""

    @classmethod
    def from_records(cls, records: Iterable[FileRecord], stale: bool = False) -> "DirectoryState":
        """Build a snapshot from a collection of records.

        Args:
            records: Records of one side; later duplicates of a name replace
                     earlier ones
            stale: Whether the snapshot is a stand-in for a failed listing

        Returns:
            DirectoryState instance
        """
        by_name: dict[str, FileRecord] = {}
        for record in records:
            by_name[record.name] = record

        by_fingerprint: dict[str, FileRecord] = {}
        by_id: dict[str, FileRecord] = {}
        for name in sorted(by_name):
            record = by_name[name]
            by_fingerprint[record.fingerprint] = record
            by_id[record.id] = record

        return cls(
            by_name=MappingProxyType(by_name),
            by_fingerprint=MappingProxyType(by_fingerprint),
            by_id=MappingProxyType(by_id),
            stale=stale,
        )

    @classmethod
    def empty(cls, stale: bool = False) -> "DirectoryState":
        return cls.from_records([], stale=stale)

    def as_stale(self) -> "DirectoryState":
        """Return the same records flagged as stale."""
        return DirectoryState.from_records(self.by_name.values(), stale=True)

    def without_staging(self) -> "DirectoryState":
        """Return a copy with write-in-progress artifacts removed."""
        return DirectoryState.from_records(
            (r for r in self.by_name.values() if not r.is_staging), stale=self.stale
        )

    def names(self) -> list[str]:
        return sorted(self.by_name)

    def __len__(self) -> int:
        return len(self.by_name)

    def __iter__(self) -> Iterator[FileRecord]:
        for name in sorted(self.by_name):
            yield self.by_name[name]

    def __contains__(self, name: object) -> bool:
        return name in self.by_name


class ActionKind(str, Enum):
    """Kinds of change the diff can report."""

    ADD = "add"
    """A new name, or new content under an existing name"""

    REMOVE = "remove"
    """A name that disappeared"""

    RENAME = "rename"
    """Content that moved from one name to another"""


@dataclass(frozen=True)
class Add:
    """Copy ``record`` to the other side, overwriting in place."""

    record: FileRecord

    kind = ActionKind.ADD

    @property
    def names(self) -> tuple[str, ...]:
        return (self.record.name,)

    def __str__(self) -> str:
        return f"add {self.record.name}"


@dataclass(frozen=True)
class Remove:
    """Delete ``name`` on the other side."""

    name: str

    kind = ActionKind.REMOVE

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name,)

    def __str__(self) -> str:
        return f"remove {self.name}"


@dataclass(frozen=True)
class Rename:
    """Move ``source`` to ``target`` on the other side."""

    source: str
    target: str

    kind = ActionKind.RENAME

    @property
    def names(self) -> tuple[str, ...]:
        return (self.source, self.target)

    def __str__(self) -> str:
        return f"rename {self.source} -> {self.target}"


Action = Union[Add, Remove, Rename]
