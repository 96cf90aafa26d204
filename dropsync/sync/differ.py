"""Change detection between two snapshots of the same side."""

from collections import defaultdict

from ..utils import staging_name
from .models import Action, Add, DirectoryState, FileRecord, Remove, Rename


def diff(prev: DirectoryState, curr: DirectoryState) -> list[Action]:
    """Compute the actions that turn ``prev`` into ``curr``.

    Names that disappeared are matched against new name/content pairs by
    fingerprint to find renames. New records are visited in name order and
    each takes the smallest still-unmatched removed name with the same
    fingerprint, so the pairing does not depend on listing order.

    A modified file shows up as an :class:`Add` of its new content.
    Write-in-progress artifacts never appear in the result; a staged file
    moved onto its own final name with unchanged content consumes both
    records silently.

    Args:
        prev: Previously observed snapshot
        curr: Freshly taken snapshot

    Returns:
        Renames, then adds, then removes

    Examples:
        >>> a = FileRecord("a.txt", "h1", 1.0)
        >>> b = FileRecord("b.txt", "h1", 2.0)
        >>> diff(DirectoryState.from_records([a]), DirectoryState.from_records([b]))
        [Rename(source='a.txt', target='b.txt')]
    """
    removed = [prev.by_name[name] for name in sorted(prev.by_name) if name not in curr.by_name]
    new_records = sorted(
        (r for key, r in curr.by_id.items() if key not in prev.by_id),
        key=lambda r: r.name,
    )

    # fingerprint -> removed names still available as rename sources
    sources: dict[str, list[str]] = defaultdict(list)
    # staging name -> fingerprint it was last seen with
    in_flight: dict[str, str] = {}
    for record in removed:
        if record.is_staging:
            in_flight[record.name] = record.fingerprint
        else:
            sources[record.fingerprint].append(record.name)

    renames: list[Action] = []
    adds: list[Action] = []
    consumed: set[str] = set()

    for record in new_records:
        if record.is_staging:
            continue
        if in_flight.get(staging_name(record.name)) == record.fingerprint:
            continue
        candidates = sources.get(record.fingerprint)
        if candidates:
            source = candidates.pop(0)
            consumed.add(source)
            renames.append(Rename(source=source, target=record.name))
            continue
        adds.append(Add(record=record))

    removes: list[Action] = [
        Remove(name=r.name) for r in removed if r.name not in consumed and not r.is_staging
    ]

    return renames + adds + removes
