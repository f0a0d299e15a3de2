"""Tests for JcrAdapter."""

import io
import tempfile

import pytest

from jcrfs import (
    Config,
    ConstraintViolationError,
    ItemExistsError,
    JcrAdapter,
    Metadata,
    SimpleCredentials,
    defer_saves,
)

from .conftest import ROOT


class TestConstructor:
    """Test root folder handling."""

    def test_creates_root_folder(self, session):
        """A missing root is created as an nt:folder."""
        JcrAdapter(session, "/files")

        assert session.node_exists("/files")
        assert session.get_node("/files").is_node_type("nt:folder")

    def test_creates_missing_parents(self, session):
        """Parents of the root are created with the default node type."""
        JcrAdapter(session, "/sites/main/files")

        assert session.get_node("/sites").primary_type == "nt:unstructured"
        assert session.get_node("/sites/main/files").primary_type == "nt:folder"

    def test_root_is_persisted(self, repository, session):
        """Creating the root saves the session."""
        JcrAdapter(session, "/files")

        other = repository.login(SimpleCredentials("other"))
        assert other.node_exists("/files")

    def test_existing_root_is_reused(self, session):
        """Files written through one adapter are visible to the next."""
        JcrAdapter(session, ROOT).write("file.txt", b"content", Config())

        adapter = JcrAdapter(session, ROOT)
        assert adapter.read("file.txt").contents == b"content"

    def test_root_must_be_a_folder(self, session):
        """An existing root of another node type is rejected."""
        session.get_root_node().add_node("flysystem_tests_broken", "nt:unstructured")

        with pytest.raises(NotADirectoryError, match="nt:unstructured"):
            JcrAdapter(session, "/flysystem_tests_broken")

    def test_repository_root_is_rejected(self, session):
        """The repository root node is not a folder."""
        with pytest.raises(NotADirectoryError):
            JcrAdapter(session, "/")


class TestPathPrefix:
    """Test path prefix handling."""

    def test_prefix_is_root(self, adapter):
        assert adapter.get_path_prefix() == ROOT + "/"

    def test_apply_path_prefix_empty(self, adapter):
        """An empty prefix falls back to "/"; the empty path maps to ""."""
        adapter.set_path_prefix("")
        assert adapter.get_path_prefix() == "/"
        assert adapter.apply_path_prefix("") == ""

    def test_apply_path_prefix_absolute(self, adapter):
        """"/" maps to the root folder itself."""
        adapter.set_path_prefix(ROOT + "/")
        assert adapter.apply_path_prefix("/") == ROOT

    def test_apply_path_prefix_nested(self, adapter):
        assert adapter.apply_path_prefix("/a/b.txt") == ROOT + "/a/b.txt"
        assert adapter.apply_path_prefix("a/b.txt") == ROOT + "/a/b.txt"

    def test_remove_path_prefix(self, adapter):
        assert adapter.remove_path_prefix(ROOT + "/a/b.txt") == "a/b.txt"


class TestHas:
    """Test existence checks."""

    def test_has_with_dir(self, adapter):
        adapter.create_dir("0", Config())
        assert adapter.has("0") is True
        adapter.delete_dir("0")
        assert adapter.has("0") is False

    def test_has_with_file(self, adapter):
        adapter.write("file.txt", "content", Config())
        assert adapter.has("file.txt") is True
        adapter.delete("file.txt")
        assert adapter.has("file.txt") is False

    def test_has_missing(self, adapter):
        assert adapter.has("nope.txt") is False

    def test_has_ignores_resource_nodes(self, adapter, session):
        adapter.write("file.txt", b"content", Config())

        assert session.node_exists(ROOT + "/file.txt/jcr:content")
        assert adapter.has("file.txt/jcr:content") is False


class TestWrite:
    """Test writing files."""

    def test_write_returns_metadata(self, adapter):
        result = adapter.write("file.txt", b"content", Config())

        assert isinstance(result, Metadata)
        assert result.type == "file"
        assert result.path == "file.txt"
        assert result.size == 7
        assert result.contents == b"content"
        assert result.mimetype == "text/plain"

    def test_write_sniffs_mimetype(self, adapter):
        png = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"

        result = adapter.write("upload", png, Config())

        assert result.mimetype == "image/png"
        assert adapter.get_mimetype("upload").mimetype == "image/png"

    def test_write_string_contents(self, adapter):
        """Text contents are stored as UTF-8 bytes."""
        result = adapter.write("file.txt", "héllo", Config())

        assert result.size == 6
        assert adapter.read("file.txt").contents == "héllo".encode("utf-8")

    def test_write_creates_nodes(self, adapter, session):
        adapter.write("nested/dir/path.txt", b"contents", Config())

        assert session.get_node(ROOT + "/nested").primary_type == "nt:folder"
        assert session.get_node(ROOT + "/nested/dir").primary_type == "nt:folder"
        file = session.get_node(ROOT + "/nested/dir/path.txt")
        assert file.primary_type == "nt:file"
        content = file.get_node("jcr:content")
        assert content.primary_type == "nt:resource"
        assert content.get_property_value("jcr:data") == b"contents"

    def test_write_saves_session(self, adapter, session):
        adapter.write("file.txt", b"content", Config())
        assert session.has_pending_changes() is False

    def test_write_overwrites(self, adapter):
        adapter.write("file.txt", b"first", Config())
        adapter.write("file.txt", b"second version", Config())

        result = adapter.read("file.txt")
        assert result.contents == b"second version"
        assert result.size == 14

    def test_update(self, adapter):
        adapter.update("file.txt", "content", Config())
        assert adapter.has("file.txt") is True
        adapter.delete("file.txt")

    def test_write_to_folder_raises(self, adapter):
        adapter.create_dir("dir", Config())

        with pytest.raises(IsADirectoryError):
            adapter.write("dir", b"content", Config())

    def test_write_below_file_raises(self, adapter):
        adapter.write("file.txt", b"content", Config())

        with pytest.raises(NotADirectoryError):
            adapter.write("file.txt/nested.txt", b"content", Config())

    def test_write_without_config(self, adapter):
        assert adapter.write("file.txt", b"content").size == 7


class TestWriteStream:
    """Test writing files from streams."""

    def test_write_stream(self, adapter):
        temp = tempfile.TemporaryFile()
        temp.write(b"dummy")
        temp.seek(0)

        adapter.write_stream("dir/file.txt", temp, Config({"visibility": "public"}))
        temp.close()

        assert adapter.has("dir/file.txt") is True
        result = adapter.read("dir/file.txt")
        assert result.contents == b"dummy"
        adapter.delete_dir("dir")

    def test_write_stream_mimetype_from_config_only(self, adapter):
        """Streams are not sniffed; only an explicit mimetype is stored."""
        adapter.write_stream("plain.txt", io.BytesIO(b"data"), Config())
        adapter.write_stream(
            "typed.txt", io.BytesIO(b"data"), Config({"mimetype": "text/csv"})
        )

        assert adapter.get_metadata("plain.txt").mimetype is None
        assert adapter.get_metadata("typed.txt").mimetype == "text/csv"

    def test_write_stream_result(self, adapter):
        result = adapter.write_stream("file.bin", io.BytesIO(b"\x00\x01"), Config())

        assert result.type == "file"
        assert result.path == "file.bin"
        assert result.size == 2
        assert result.contents is None

    def test_update_stream(self, adapter):
        adapter.write("file.txt", "initial", Config())
        temp = io.BytesIO()
        temp.write(b"dummy")
        temp.seek(0)

        adapter.update_stream("file.txt", temp, Config())

        assert adapter.has("file.txt") is True
        assert adapter.read("file.txt").contents == b"dummy"


class TestRead:
    """Test reading files."""

    def test_read(self, adapter):
        adapter.write("file.txt", b"contents", Config())

        result = adapter.read("file.txt")
        assert result.type == "file"
        assert result.path == "file.txt"
        assert result.contents == b"contents"
        assert result.size == 8

    def test_read_not_found(self, adapter):
        assert adapter.read("file.txt") is False

    def test_read_folder_not_found(self, adapter):
        assert adapter.read("folder/file.txt") is False

    def test_read_folder(self, adapter):
        adapter.create_dir("folder", Config())
        assert adapter.read("folder") is False

    def test_read_below_file(self, adapter):
        adapter.write("file.txt", b"contents", Config())
        assert adapter.read("file.txt/other.txt") is False

    def test_read_stream(self, adapter):
        adapter.write("file.txt", "contents", Config())

        result = adapter.read_stream("file.txt")
        assert isinstance(result, Metadata)
        assert result.stream is not None
        assert result.stream.read() == b"contents"
        result.stream.close()
        adapter.delete("file.txt")

    def test_read_stream_is_fresh(self, adapter):
        """Every stream read starts at the beginning."""
        adapter.write("file.txt", b"contents", Config())

        adapter.read_stream("file.txt").stream.read()
        assert adapter.read_stream("file.txt").stream.read() == b"contents"

    def test_read_stream_not_found(self, adapter):
        assert adapter.read_stream("file.txt") is False


class TestRenameCopy:
    """Test rename and copy."""

    def test_rename(self, adapter):
        adapter.write("file.ext", "content", Config({"visibility": "public"}))

        assert adapter.rename("file.ext", "new.ext") is True
        assert adapter.has("new.ext") is True
        assert adapter.has("file.ext") is False
        assert adapter.delete("file.ext") is False
        assert adapter.delete("new.ext") is True

    def test_rename_not_exists(self, adapter):
        assert adapter.rename("file.ext", "new.ext") is False

    def test_rename_creates_parent_folders(self, adapter, session):
        adapter.write("file.ext", b"content", Config())

        assert adapter.rename("file.ext", "nested/dir/new.ext") is True
        assert adapter.read("nested/dir/new.ext").contents == b"content"
        assert session.get_node(ROOT + "/nested/dir").is_node_type("nt:folder")
        # parents are created below the root, not below a doubled prefix
        assert not session.node_exists(ROOT + ROOT)

    def test_rename_folder(self, adapter):
        adapter.write("old/a.txt", b"a", Config())
        adapter.write("old/sub/b.txt", b"b", Config())

        assert adapter.rename("old", "new") is True
        assert adapter.read("new/a.txt").contents == b"a"
        assert adapter.read("new/sub/b.txt").contents == b"b"
        assert adapter.has("old") is False

    def test_rename_onto_existing_raises(self, adapter):
        adapter.write("a.txt", b"a", Config())
        adapter.write("b.txt", b"b", Config())

        with pytest.raises(ItemExistsError):
            adapter.rename("a.txt", "b.txt")

    def test_rename_into_itself_creates_no_folders(self, adapter, repository):
        adapter.create_dir("old", Config())

        with pytest.raises(ConstraintViolationError):
            adapter.rename("old", "old/sub/new")
        adapter.write("other.txt", b"other", Config())

        other = repository.login(SimpleCredentials("other"))
        assert other.node_exists(ROOT + "/old")
        assert not other.node_exists(ROOT + "/old/sub")

    def test_copy_into_itself_creates_no_folders(self, adapter, repository):
        adapter.create_dir("old", Config())

        with pytest.raises(ConstraintViolationError):
            adapter.copy("old", "old/sub/copy")
        adapter.write("other.txt", b"other", Config())

        other = repository.login(SimpleCredentials("other"))
        assert not other.node_exists(ROOT + "/old/sub")

    def test_copy(self, adapter):
        adapter.write("file.ext", "content", Config({"visibility": "public"}))

        assert adapter.copy("file.ext", "new.ext") is True
        assert adapter.has("new.ext") is True
        assert adapter.has("file.ext") is True
        assert adapter.read("new.ext").contents == b"content"
        adapter.delete("file.ext")
        adapter.delete("new.ext")

    def test_copy_not_exists(self, adapter):
        assert adapter.copy("file.ext", "new.ext") is False

    def test_copy_creates_parent_folders(self, adapter):
        adapter.write("file.ext", b"content", Config())

        assert adapter.copy("file.ext", "backup/file.ext") is True
        assert adapter.read("backup/file.ext").contents == b"content"

    def test_copy_folder(self, adapter):
        adapter.write("src/a.txt", b"a", Config())
        adapter.write("src/sub/b.txt", b"b", Config())

        assert adapter.copy("src", "dst") is True
        assert adapter.read("dst/a.txt").contents == b"a"
        assert adapter.read("dst/sub/b.txt").contents == b"b"
        assert adapter.read("src/sub/b.txt").contents == b"b"

    def test_copy_is_independent(self, adapter):
        adapter.write("file.txt", b"original", Config())
        adapter.copy("file.txt", "copy.txt")

        adapter.write("copy.txt", b"changed", Config())
        assert adapter.read("file.txt").contents == b"original"


class TestDelete:
    """Test deleting files and folders."""

    def test_delete(self, adapter):
        adapter.write("file.txt", b"content", Config())

        assert adapter.delete("file.txt") is True
        assert adapter.has("file.txt") is False

    def test_delete_not_found(self, adapter):
        assert adapter.delete("file.txt") is False

    def test_delete_folder(self, adapter):
        """delete() removes folders as well."""
        adapter.write("dir/file.txt", b"content", Config())

        assert adapter.delete("dir") is True
        assert adapter.has("dir/file.txt") is False

    def test_create_zero_dir(self, adapter, session):
        adapter.create_dir("0", Config())
        assert session.node_exists(ROOT + "/0")
        adapter.delete_dir("0")

    def test_create_dir_result(self, adapter, session):
        result = adapter.create_dir("a/b", Config())

        assert result.type == "dir"
        assert result.path == "a/b"
        assert session.has_pending_changes() is False

    def test_create_dir_on_file_raises(self, adapter):
        adapter.write("file.txt", b"content", Config())

        with pytest.raises(NotADirectoryError):
            adapter.create_dir("file.txt", Config())

    def test_delete_dir(self, adapter, session):
        adapter.write("nested/dir/path.txt", "contents", Config())
        assert session.node_exists(ROOT + "/nested/dir/path.txt")

        assert adapter.delete_dir("nested") is True
        assert adapter.has("nested/dir/path.txt") is False
        assert not session.node_exists(ROOT + "/nested")

    def test_delete_dir_not_found(self, adapter):
        assert adapter.delete_dir("nested") is False

    def test_delete_dir_is_file(self, adapter, session):
        adapter.write("dir/path.txt", "contents", Config())
        assert session.node_exists(ROOT + "/dir/path.txt")

        assert adapter.delete_dir("dir/path.txt") is False
        assert session.node_exists(ROOT + "/dir/path.txt")


class TestListContents:
    """Test directory listings."""

    def test_list_contents(self, adapter):
        adapter.write("dirname/file.txt", "contents", Config())
        adapter.write("dirname/subfolder/file.txt", "contents", Config())

        contents = adapter.list_contents("dirname", False)

        assert len(contents) == 2
        assert contents[0].type == "file"
        assert contents[0].path == "dirname/file.txt"
        assert contents[1].type == "folder"
        assert contents[1].path == "dirname/subfolder"

    def test_list_contents_recursive(self, adapter):
        adapter.write("dirname/file.txt", "contents", Config())
        adapter.write("dirname/subfolder/file.txt", "contents", Config())

        contents = adapter.list_contents("dirname", True)

        assert len(contents) == 3
        assert contents[0].type == "file"
        assert contents[1].type == "folder"
        assert contents[2].type == "file"
        assert contents[2].path == "dirname/subfolder/file.txt"

    def test_list_contents_is_breadth_first(self, adapter):
        adapter.write("a/deep/x.txt", b"x", Config())
        adapter.write("b.txt", b"b", Config())

        paths = [entry.path for entry in adapter.list_contents("", True)]
        assert paths == ["a", "b.txt", "a/deep", "a/deep/x.txt"]

    def test_list_root(self, adapter):
        adapter.write("one.txt", b"1", Config())
        adapter.create_dir("two", Config())

        paths = [entry.path for entry in adapter.list_contents()]
        assert paths == ["one.txt", "two"]

    def test_listing_nonexisting_directory(self, adapter):
        assert adapter.list_contents("nonexisting/directory") == []

    def test_listing_a_file_raises(self, adapter):
        adapter.write("file.txt", b"1", Config())

        with pytest.raises(NotADirectoryError):
            adapter.list_contents("file.txt")

    def test_listing_entries_carry_file_info(self, adapter):
        adapter.write("dir/file.txt", b"1234", Config())

        [entry] = adapter.list_contents("dir")
        assert entry.size == 4
        assert entry.mimetype == "text/plain"
        assert isinstance(entry.timestamp, int)


class TestMetadata:
    """Test metadata lookups."""

    def test_get_metadata_folder(self, adapter):
        adapter.create_dir("test", Config())

        result = adapter.get_metadata("test")
        assert isinstance(result, Metadata)
        assert result.type == "folder"
        assert result.path == "test"
        assert result.size is None

    def test_get_metadata_root(self, adapter):
        result = adapter.get_metadata("")
        assert result.type == "folder"
        assert result.path == ""

    def test_get_metadata_not_existing(self, adapter):
        assert adapter.get_metadata("dummy.txt") is False

    def test_get_size(self, adapter):
        adapter.write("dummy.txt", "1234", Config())

        result = adapter.get_size("dummy.txt")
        assert isinstance(result, Metadata)
        assert result.size == 4

    def test_get_timestamp(self, adapter):
        adapter.write("dummy.txt", "1234", Config())

        result = adapter.get_timestamp("dummy.txt")
        assert isinstance(result, Metadata)
        assert isinstance(result.timestamp, int)
        assert result.timestamp > 0

    def test_get_mimetype(self, adapter):
        adapter.write("text.txt", "contents", Config())

        result = adapter.get_mimetype("text.txt")
        assert isinstance(result, Metadata)
        assert result.mimetype == "text/plain"

    def test_get_mimetype_from_config(self, adapter):
        adapter.write("data.txt", "{}", Config({"mimetype": "application/json"}))
        assert adapter.get_mimetype("data.txt").mimetype == "application/json"

    def test_get_encoding(self, adapter):
        adapter.write("text.txt", "contents", Config({"encoding": "utf-8"}))

        result = adapter.get_mimetype("text.txt")
        assert result.encoding == "utf-8"

    def test_no_encoding_by_default(self, adapter):
        adapter.write("text.txt", "contents", Config())

        result = adapter.get_metadata("text.txt")
        assert result.encoding is None
        assert "encoding" not in result.to_dict()


class TestVisibility:
    """Visibility is not supported."""

    def test_visibility_public(self, adapter):
        adapter.write("path.txt", "contents", Config())

        with pytest.raises(io.UnsupportedOperation, match="visibility"):
            adapter.set_visibility("path.txt", "public")

    def test_visibility_private(self, adapter):
        adapter.write("path.txt", "contents", Config())

        with pytest.raises(io.UnsupportedOperation):
            adapter.set_visibility("path.txt", "private")

    def test_get_visibility(self, adapter):
        with pytest.raises(io.UnsupportedOperation):
            adapter.get_visibility("path.txt")


class TestDeferSaves:
    """Test batching mutations with defer_saves()."""

    def test_writes_stay_pending(self, adapter, session, repository):
        with defer_saves():
            adapter.write("a.txt", b"a", Config())
            adapter.write("b.txt", b"b", Config())

        assert session.has_pending_changes() is True
        other = repository.login(SimpleCredentials("other"))
        assert not other.node_exists(ROOT + "/a.txt")

        session.save()
        other.refresh()
        assert other.node_exists(ROOT + "/a.txt")
        assert other.node_exists(ROOT + "/b.txt")

    def test_refresh_discards_deferred_writes(self, adapter, session):
        with defer_saves():
            adapter.write("a.txt", b"a", Config())

        session.refresh()
        assert adapter.has("a.txt") is False

    def test_copy_saves_anyway(self, adapter, session):
        """A workspace copy needs the source persisted."""
        with defer_saves():
            adapter.write("a.txt", b"a", Config())
            assert adapter.copy("a.txt", "b.txt") is True

        assert session.has_pending_changes() is False
        assert adapter.read("b.txt").contents == b"a"

    def test_saves_resume_after_block(self, adapter, session):
        with defer_saves():
            adapter.write("a.txt", b"a", Config())
        adapter.write("b.txt", b"b", Config())

        assert session.has_pending_changes() is False
