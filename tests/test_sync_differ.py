"""Tests for snapshot indexing and change detection."""

import pytest

from dropsync.sync.differ import diff
from dropsync.sync.models import ActionKind, Add, DirectoryState, FileRecord, Remove, Rename


def snap(*records: tuple[str, str]) -> DirectoryState:
    return DirectoryState.from_records(FileRecord(n, h, 1000.0) for n, h in records)


class TestDirectoryState:
    """Tests for DirectoryState indices."""

    def test_indices(self):
        s = snap(("a.txt", "h1"), ("b.txt", "h2"))

        assert set(s.by_name) == {"a.txt", "b.txt"}
        assert set(s.by_fingerprint) == {"h1", "h2"}
        assert set(s.by_id) == {"h1a.txt", "h2b.txt"}
        assert len(s) == 2
        assert "a.txt" in s

    def test_fingerprint_collision_greatest_name_wins(self):
        """Shared content keeps only one record in by_fingerprint."""
        s = snap(("b.txt", "h1"), ("a.txt", "h1"))

        assert s.by_fingerprint["h1"].name == "b.txt"
        assert len(s.by_id) == 2

    def test_read_only(self):
        s = snap(("a.txt", "h1"))
        with pytest.raises(TypeError):
            s.by_name["b.txt"] = FileRecord("b.txt", "h2", 0.0)

    def test_without_staging(self):
        s = snap(("a.txt", "h1"), ("b.txt.inprog", "h2"))
        assert s.without_staging().names() == ["a.txt"]

    def test_as_stale_keeps_records(self):
        s = snap(("a.txt", "h1")).as_stale()
        assert s.stale
        assert s.names() == ["a.txt"]

    def test_record_id(self):
        assert FileRecord("a.txt", "h1", 0.0).id == "h1a.txt"


class TestDiff:
    """Tests for the diff function."""

    def test_same_state_no_actions(self):
        s = snap(("a.txt", "h1"), ("dir/b.txt", "h2"), ("c.txt", "h1"))
        assert diff(s, s) == []

    def test_add(self):
        actions = diff(snap(), snap(("a", "H1")))

        assert actions == [Add(FileRecord("a", "H1", 1000.0))]
        assert actions[0].kind == ActionKind.ADD

    def test_remove(self):
        assert diff(snap(("a", "H1")), snap()) == [Remove("a")]

    def test_rename(self):
        """Same content under a new name is a rename, not add+remove."""
        actions = diff(snap(("a", "H1")), snap(("b", "H1")))

        assert actions == [Rename(source="a", target="b")]

    def test_content_change_is_add(self):
        actions = diff(snap(("a", "H1")), snap(("a", "H2")))

        assert actions == [Add(FileRecord("a", "H2", 1000.0))]

    def test_rename_onto_existing_name(self):
        """Content moved over another file's name."""
        actions = diff(snap(("a", "H1"), ("b", "H2")), snap(("a", "H2")))

        assert actions == [Rename(source="b", target="a")]

    def test_order_renames_adds_removes(self):
        prev = snap(("old", "H1"), ("gone", "H2"))
        curr = snap(("new", "H1"), ("fresh", "H3"))

        actions = diff(prev, curr)

        assert [a.kind for a in actions] == [
            ActionKind.RENAME,
            ActionKind.ADD,
            ActionKind.REMOVE,
        ]

    def test_rename_tie_break_is_by_name(self):
        """With shared content, sorted new names pair with sorted old names."""
        prev = snap(("b", "H"), ("a", "H"))
        curr = snap(("y", "H"), ("x", "H"))

        assert diff(prev, curr) == [
            Rename(source="a", target="x"),
            Rename(source="b", target="y"),
        ]

    def test_more_new_copies_than_sources(self):
        prev = snap(("a", "H"))
        curr = snap(("x", "H"), ("y", "H"))

        assert diff(prev, curr) == [
            Rename(source="a", target="x"),
            Add(FileRecord("y", "H", 1000.0)),
        ]

    def test_copy_of_existing_file_is_add(self):
        prev = snap(("a", "H"))
        curr = snap(("a", "H"), ("b", "H"))

        assert diff(prev, curr) == [Add(FileRecord("b", "H", 1000.0))]


class TestDiffStaging:
    """Write-in-progress artifacts never surface as actions."""

    def test_new_staging_file_ignored(self):
        assert diff(snap(), snap(("a.txt.inprog", "H1"))) == []

    def test_removed_staging_file_ignored(self):
        assert diff(snap(("a.txt.inprog", "H1")), snap()) == []

    def test_staged_write_landing_is_silent(self):
        prev = snap(("a.txt.inprog", "H1"))
        curr = snap(("a.txt", "H1"))

        assert diff(prev, curr) == []

    def test_staged_write_only_lands_on_its_own_name(self):
        empty = "d41d8cd98f00b204e9800998ecf8427e"
        prev = snap(("x.txt.inprog", empty))
        curr = snap(("x.txt", "H-full"), ("a.txt", empty))

        actions = diff(prev, curr)

        assert Add(FileRecord("a.txt", empty, 1000.0)) in actions
        assert Add(FileRecord("x.txt", "H-full", 1000.0)) in actions
        assert len(actions) == 2

    def test_staging_record_is_not_a_rename_source(self):
        prev = snap(("b.txt.inprog", "H1"))
        curr = snap(("c.txt", "H1"))

        assert diff(prev, curr) == [Add(FileRecord("c.txt", "H1", 1000.0))]

    def test_rename_into_staging_name_is_remove(self):
        actions = diff(snap(("a.txt", "H1")), snap(("a.txt.inprog", "H1")))

        assert actions == [Remove("a.txt")]

    def test_mixed(self):
        prev = snap(("a", "H1"), ("b.inprog", "H2"))
        curr = snap(("c", "H3"), ("d.inprog", "H4"), ("e", "H1"))

        actions = diff(prev, curr)

        assert actions == [Rename(source="a", target="e"), Add(FileRecord("c", "H3", 1000.0))]
        for action in actions:
            assert not any(name.endswith(".inprog") for name in action.names)
