"""Unit tests for the tree synchronizer."""

from unittest.mock import Mock

import pytest

from dagsync.exceptions import (
    DagSyncConflictError,
    DagSyncFileError,
    DagSyncNotFoundError,
)
from dagsync.models import ContentAddress, Link, LinkKind
from dagsync.output import OutputFormatter
from dagsync.sync import TreeSynchronizer

from conftest import FakeContentStore, address_for, make_tree


def warnings_of(output) -> list[str]:
    return [call.args[0] for call in output.warning.call_args_list]


def infos_of(output) -> list[str]:
    return [call.args[0] for call in output.info.call_args_list]


class TestBasicSync:
    """Tests for the main sync scenarios."""

    def test_modified_and_added_files(self, temp_dir, store, mock_output):
        """Changed and new top-level files are patched; untouched dirs are not."""
        local = make_tree(
            temp_dir / "site", {"a.txt": "one", "sub": {"b.txt": "bee"}}
        )
        root = store.publish(local)

        (local / "a.txt").write_text("two")
        (local / "c.txt").write_text("sea")

        synchronizer = TreeSynchronizer(store, mock_output)
        new_root = synchronizer.sync(root, local)

        assert new_root != root
        assert store.names("patch") == ["a.txt", "c.txt"]
        assert store.names("upload_tree") == []
        assert synchronizer.stats.patches == 2
        assert synchronizer.stats.recursed == 1
        assert synchronizer.stats.drift == []

        links = {link.name: link for link in store.directories[new_root].links}
        assert set(links) == {"a.txt", "c.txt", "sub"}
        assert store.files[links["a.txt"].target] == b"two"
        assert store.files[links["c.txt"].target] == b"sea"
        original_sub = store.directories[root].find("sub")
        assert links["sub"].target == original_sub.target

    def test_result_matches_fresh_upload(self, temp_dir, store, mock_output):
        """Syncing converges on the address a fresh upload would produce."""
        local = make_tree(
            temp_dir / "site",
            {"index.html": "<p>", "css": {"main.css": "a{}"}, "img": {}},
        )
        root = store.publish(local)

        (local / "index.html").write_text("<p>new</p>")
        make_tree(local / "css", {"extra.css": "b{}"})
        make_tree(local / "js", {"app.js": "run()", "lib": {"x.js": "x"}})

        new_root = TreeSynchronizer(store, mock_output).sync(root, local)

        assert new_root == FakeContentStore().publish(local)

    def test_new_directory_is_uploaded_in_one_call(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"a.txt": "one"})
        root = store.publish(local)

        make_tree(local / "docs", {"x.md": "x", "deep": {"y.md": "y"}})

        synchronizer = TreeSynchronizer(store, mock_output)
        new_root = synchronizer.sync(root, local)

        assert store.names("upload_tree") == ["docs"]
        assert store.names("patch") == ["docs"]
        docs = store.directories[new_root].find("docs")
        assert docs.kind == LinkKind.DIRECTORY
        assert store.directories[docs.target].names() == {"x.md", "deep"}

    def test_returns_final_address(self, temp_dir, store, mock_output):
        """The returned address is the last patch's result."""
        local = make_tree(temp_dir / "site", {})
        root = store.publish(local)
        make_tree(local, {"a.txt": "a", "b.txt": "b"})

        new_root = TreeSynchronizer(store, mock_output).sync(root, local)

        assert store.directories[new_root].names() == {"a.txt", "b.txt"}

    def test_patch_messages(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"a.txt": "one"})
        root = store.publish(local)
        (local / "a.txt").write_text("two")

        new_root = TreeSynchronizer(store, mock_output).sync(root, local)

        patching = [msg for msg in infos_of(mock_output) if msg.startswith("Patching")]
        assert len(patching) == 1
        assert "a.txt" in patching[0]
        assert patching[0].endswith(f"directory is now {new_root}")


class TestIdempotence:
    """Tests that an up-to-date tree costs no patches."""

    def test_sync_of_published_tree_is_noop(self, temp_dir, store, mock_output):
        local = make_tree(
            temp_dir / "site",
            {"a.txt": "one", "sub": {"b.txt": "bee", "deeper": {"c.txt": "c"}}},
        )
        root = store.publish(local)

        synchronizer = TreeSynchronizer(store, mock_output)
        assert synchronizer.sync(root, local) == root
        assert store.count("patch") == 0
        assert synchronizer.stats.unchanged == 5

    def test_second_sync_is_noop(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"a.txt": "one", "sub": {"b.txt": "b"}})
        root = store.publish(local)
        (local / "sub" / "b.txt").write_text("changed")

        synchronizer = TreeSynchronizer(store, mock_output)
        first = synchronizer.sync(root, local)
        store.calls.clear()
        second = synchronizer.sync(first, local)

        assert second == first
        assert store.count("patch") == 0

    def test_remote_links_in_cidv1_form_are_unchanged(
        self, temp_dir, store, mock_output
    ):
        """Links stored as CIDv1 match the CIDv0 the store returns on upload."""
        local = make_tree(temp_dir / "site", {"a.txt": "one", "sub": {"b.txt": "bee"}})
        published = store.directories[store.publish(local)]
        v1_links = {
            link.name: Link(
                link.name,
                ContentAddress.parse(link.target.to_base32()),
                link.size,
                link.kind,
            )
            for link in published.links
        }
        root = store._store_directory(v1_links).address
        root_v1 = ContentAddress.parse(root.to_base32())

        synchronizer = TreeSynchronizer(store, mock_output)
        result = synchronizer.sync(root_v1, local)

        assert result == root
        assert store.count("patch") == 0
        assert synchronizer.stats.unchanged == 3
        assert synchronizer.stats.recursed == 1


class TestPruning:
    """Tests that only the path to a change is patched."""

    def test_deep_change_patches_each_ancestor_once(self, temp_dir, store, mock_output):
        local = make_tree(
            temp_dir / "site",
            {
                "a": {"b": {"leaf.txt": "old"}, "other.txt": "o"},
                "sibling": {"x.txt": "x"},
                "top.txt": "t",
            },
        )
        root = store.publish(local)

        (local / "a" / "b" / "leaf.txt").write_text("new")

        new_root = TreeSynchronizer(store, mock_output).sync(root, local)

        assert store.names("patch") == ["leaf.txt", "b", "a"]
        assert new_root == FakeContentStore().publish(local)

    def test_unchanged_sibling_subtree_keeps_address(self, temp_dir, store, mock_output):
        local = make_tree(
            temp_dir / "site", {"a": {"f.txt": "1"}, "sibling": {"x.txt": "x"}}
        )
        root = store.publish(local)
        (local / "a" / "f.txt").write_text("2")

        new_root = TreeSynchronizer(store, mock_output).sync(root, local)

        before = store.directories[root].find("sibling").target
        after = store.directories[new_root].find("sibling").target
        assert before == after


class TestNewEntries:
    """Tests for entries that exist only locally."""

    def test_new_file_costs_one_upload_and_one_patch(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {})
        root = store.publish(local)
        (local / "foo.txt").write_text("foo")

        new_root = TreeSynchronizer(store, mock_output).sync(root, local)

        assert store.names("upload_file") == ["foo.txt"]
        assert store.names("patch") == ["foo.txt"]
        assert store.directories[new_root].find("foo.txt") is not None

    def test_identical_files_share_an_address(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {})
        root = store.publish(local)
        make_tree(local, {"one.txt": "same", "two": {"copy.txt": "same"}})

        new_root = TreeSynchronizer(store, mock_output).sync(root, local)

        top = store.directories[new_root]
        nested = store.directories[top.find("two").target]
        assert top.find("one.txt").target == nested.find("copy.txt").target
        assert top.find("one.txt").target == address_for(b"file:same")


class TestDrift:
    """Tests for remote entries without a local counterpart."""

    def test_remote_only_entry_is_reported_not_removed(
        self, temp_dir, store, mock_output
    ):
        local = make_tree(temp_dir / "site", {"a.txt": "a", "extra.txt": "e"})
        root = store.publish(local)
        (local / "extra.txt").unlink()

        synchronizer = TreeSynchronizer(store, mock_output)
        new_root = synchronizer.sync(root, local)

        assert new_root == root
        assert store.count("patch") == 0
        assert synchronizer.stats.drift == ["extra.txt"]
        warnings = warnings_of(mock_output)
        assert len(warnings) == 1
        assert warnings[0].startswith("Remote entry extra.txt")
        assert "has no local counterpart" in warnings[0]

    def test_nested_drift_uses_full_path(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"sub": {"keep.txt": "k", "gone.txt": "g"}})
        root = store.publish(local)
        (local / "sub" / "gone.txt").unlink()

        synchronizer = TreeSynchronizer(store, mock_output)
        synchronizer.sync(root, local)

        assert synchronizer.stats.drift == ["sub/gone.txt"]

    def test_drift_does_not_block_other_changes(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"a.txt": "a", "old.txt": "o"})
        root = store.publish(local)
        (local / "old.txt").unlink()
        (local / "a.txt").write_text("A")

        new_root = TreeSynchronizer(store, mock_output).sync(root, local)

        assert store.directories[new_root].names() == {"a.txt", "old.txt"}


class TestImmutableExtensions:
    """Tests for the immutable-extension skip rule."""

    def test_existing_master_is_never_reuploaded(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"master.flac": b"\x00\x01"})
        root = store.publish(local)
        (local / "master.flac").write_bytes(b"\x02\x03")

        synchronizer = TreeSynchronizer(store, mock_output)
        new_root = synchronizer.sync(root, local)

        assert new_root == root
        assert store.count("upload_file") == 0
        assert store.count("patch") == 0
        assert synchronizer.stats.skipped == 1
        assert any(msg.startswith("Skipping master.flac") for msg in infos_of(mock_output))

    def test_extension_match_is_case_insensitive(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"TAKE.WAV": b"a"})
        root = store.publish(local)
        (local / "TAKE.WAV").write_bytes(b"b")

        TreeSynchronizer(store, mock_output).sync(root, local)

        assert store.count("upload_file") == 0

    def test_new_master_is_uploaded(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {})
        root = store.publish(local)
        (local / "new.flac").write_bytes(b"audio")

        TreeSynchronizer(store, mock_output).sync(root, local)

        assert store.names("upload_file") == ["new.flac"]
        assert store.names("patch") == ["new.flac"]

    def test_empty_extension_set_compares_everything(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"master.flac": b"\x00"})
        root = store.publish(local)
        (local / "master.flac").write_bytes(b"\x01")

        synchronizer = TreeSynchronizer(store, mock_output, immutable_extensions=())
        new_root = synchronizer.sync(root, local)

        assert new_root != root
        assert store.names("patch") == ["master.flac"]

    def test_custom_extension_set(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"clip.mkv": "v1", "master.flac": "f1"})
        root = store.publish(local)
        (local / "clip.mkv").write_text("v2")
        (local / "master.flac").write_text("f2")

        synchronizer = TreeSynchronizer(store, mock_output, immutable_extensions=["mkv"])
        synchronizer.sync(root, local)

        assert store.names("patch") == ["master.flac"]


class TestKindMismatch:
    """Tests for entries whose kind differs between local and remote."""

    def test_remote_file_replaced_by_local_directory(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"thing": "a file"})
        root = store.publish(local)
        (local / "thing").unlink()
        make_tree(local / "thing", {"inside.txt": "i"})

        synchronizer = TreeSynchronizer(store, mock_output)
        new_root = synchronizer.sync(root, local)

        assert store.names("upload_tree") == ["thing"]
        assert store.names("patch") == ["thing"]
        assert synchronizer.stats.replaced == 1
        assert store.directories[new_root].find("thing").kind == LinkKind.DIRECTORY
        assert any("thing" in msg for msg in warnings_of(mock_output))

    def test_remote_directory_replaced_by_local_file(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"thing": {"inside.txt": "i"}})
        root = store.publish(local)
        (local / "thing" / "inside.txt").unlink()
        (local / "thing").rmdir()
        (local / "thing").write_text("now a file")

        synchronizer = TreeSynchronizer(store, mock_output)
        new_root = synchronizer.sync(root, local)

        assert store.names("upload_file") == ["thing"]
        assert store.directories[new_root].find("thing").kind == LinkKind.FILE
        assert new_root == FakeContentStore().publish(local)


class TestErrors:
    """Tests for failure handling."""

    def test_missing_local_directory(self, temp_dir, store, mock_output):
        root = store.publish(make_tree(temp_dir / "site", {}))

        with pytest.raises(DagSyncFileError):
            TreeSynchronizer(store, mock_output).sync(root, temp_dir / "missing")

    def test_local_path_is_a_file(self, temp_dir, store, mock_output):
        root = store.publish(make_tree(temp_dir / "site", {}))
        path = temp_dir / "file.txt"
        path.write_text("x")

        with pytest.raises(DagSyncFileError):
            TreeSynchronizer(store, mock_output).sync(root, path)

    def test_unknown_root(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"a.txt": "a"})
        unknown = address_for(b"nothing here")

        with pytest.raises(DagSyncNotFoundError):
            TreeSynchronizer(store, mock_output).sync(unknown, local)

    def test_patch_failure_propagates(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {"a.txt": "a"})
        root = store.publish(local)
        (local / "a.txt").write_text("b")

        store.patch_add_link = Mock(side_effect=DagSyncConflictError("rejected"))

        with pytest.raises(DagSyncConflictError):
            TreeSynchronizer(store, mock_output).sync(root, local)

        # The previous root is untouched
        assert store.directories[root].find("a.txt").target == address_for(b"file:a")


class TestSummary:
    """Tests for the end-of-sync summary."""

    def test_quiet_output_skips_summary(self, temp_dir, store, mock_output):
        local = make_tree(temp_dir / "site", {})
        root = store.publish(local)

        TreeSynchronizer(store, mock_output).sync(root, local)

        mock_output.success.assert_not_called()

    def test_summary_when_not_quiet(self, temp_dir, store):
        output = Mock(spec=OutputFormatter)
        output.quiet = False
        local = make_tree(temp_dir / "site", {"a.txt": "a"})
        root = store.publish(local)

        TreeSynchronizer(store, output).sync(root, local)

        output.success.assert_called_once_with("Sync complete!")
        assert "No changes needed - remote directory is up to date" in infos_of(output)
