"""Adapter storing files as nodes in a content repository.

Folders are ``nt:folder`` nodes. Files are ``nt:file`` nodes whose
``jcr:content`` child (an ``nt:resource``) holds the bytes in ``jcr:data``
along with ``jcr:mimeType``, ``jcr:encoding`` and ``jcr:lastModified``.
"""

from __future__ import annotations

import errno
import io
from collections import deque
from typing import BinaryIO, Literal

from . import pathhelper, util
from .base import AbstractAdapter, Metadata
from .config import Config
from .context import saves_deferred
from .errors import ConstraintViolationError, ItemExistsError, PathNotFoundError
from .logger import log, summarize
from .repository import (
    JCR_CONTENT,
    JCR_DATA,
    JCR_ENCODING,
    JCR_LAST_MODIFIED,
    JCR_MIMETYPE,
    NT_FILE,
    NT_FOLDER,
    NT_HIERARCHY_NODE,
    NT_RESOURCE,
    Node,
    PropertyType,
    Session,
)


class JcrAdapter(AbstractAdapter):
    """Filesystem adapter backed by a content repository session.

    All paths are relative to ``root``, an ``nt:folder`` node that is
    created (with any missing parents) if it does not exist yet.
    Every mutation saves the session unless wrapped in defer_saves().

    Example:
        >>> session = MemoryRepository().login()
        >>> adapter = JcrAdapter(session, "/files")
        >>> adapter.write("docs/readme.txt", b"hello", Config()).size
        5
        >>> adapter.read("docs/readme.txt").contents
        b'hello'
    """

    def __init__(self, session: Session, root: str):
        """Initialize the adapter.

        Args:
            session: Repository session used for every operation.
            root: Absolute repository path of the root folder.

        Raises:
            NotADirectoryError: If root exists but is not an nt:folder.
            InvalidPathError: If root is not an absolute path.
        """
        super().__init__()
        self._session = session
        root = pathhelper.normalize_path(root)

        if not session.node_exists(root):
            parent = pathhelper.create_path(session, pathhelper.get_parent_path(root))
            parent.add_node(pathhelper.get_node_name(root), NT_FOLDER)
            self._save()
            log.debug(f"created root folder {root}")
        else:
            root_node = session.get_node(root)
            if not root_node.is_node_type(NT_FOLDER):
                raise NotADirectoryError(
                    errno.ENOTDIR,
                    f"The root node must be of type {NT_FOLDER}, "
                    f"found {root_node.primary_type}",
                    root,
                )

        self.set_path_prefix(root)

    @property
    def session(self) -> Session:
        return self._session

    # -------------------------------------------------------------------------
    # Path handling
    # -------------------------------------------------------------------------

    def set_path_prefix(self, prefix: str) -> None:
        super().set_path_prefix(prefix)
        if self._path_prefix is None:
            self._path_prefix = self.path_separator

    def apply_path_prefix(self, path: str) -> str:
        """Map a virtual path onto a repository path.

        The empty path maps to the root folder itself (the prefix without
        its trailing slash).
        """
        path = path.lstrip("/")
        if not path:
            return (self.get_path_prefix() or "").rstrip("/")
        return (self.get_path_prefix() or "") + path

    # -------------------------------------------------------------------------
    # Node lookup
    # -------------------------------------------------------------------------

    def _get_folder_node(self, path: str, create: bool = False) -> Node:
        """Return the folder node at ``path``.

        Args:
            path: Path relative to the root.
            create: Create the folder and any missing parents.

        Raises:
            PathNotFoundError: If the folder does not exist and create is False.
            NotADirectoryError: If the node at path is not a folder.
        """
        location = self.apply_path_prefix(path)
        if not create and not self._session.node_exists(location):
            # let the session raise rather than creating parents
            return self._session.get_node(location)

        location = pathhelper.normalize_path(location)
        folders = []
        while not self._session.node_exists(location):
            folders.append(pathhelper.get_node_name(location))
            location = pathhelper.get_parent_path(location)

        node = self._session.get_node(location)
        if folders and not node.is_node_type(NT_FOLDER):
            raise NotADirectoryError(
                errno.ENOTDIR, f"Not a folder but {node.primary_type}", location
            )
        while folders:
            node = node.add_node(folders.pop(), NT_FOLDER)

        if not node.is_node_type(NT_FOLDER):
            raise NotADirectoryError(
                errno.ENOTDIR, f"Not a folder but {node.primary_type}", path
            )
        return node

    def _get_file_node(self, path: str, create: bool = False) -> Node:
        """Return the node at ``path``, optionally creating an empty file there."""
        path = "/" + path.lstrip("/")
        file_name = pathhelper.get_node_name(path)
        folder = self._get_folder_node(pathhelper.get_parent_path(path), create)

        if folder.has_node(file_name) or not create:
            return folder.get_node(file_name)

        file = folder.add_node(file_name, NT_FILE)
        file.add_node(JCR_CONTENT, NT_RESOURCE)
        return file

    def _save(self) -> None:
        if saves_deferred():
            log.debug("session save deferred")
            return
        self._session.save()

    def _file_info(self, node: Node) -> Metadata:
        if node.is_node_type(NT_FOLDER):
            return Metadata(type="folder", path=self.remove_path_prefix(node.path))

        content = node.get_node(JCR_CONTENT)
        result = Metadata(
            type="file",
            path=self.remove_path_prefix(node.path),
            size=content.get_property(JCR_DATA).get_length(),
            timestamp=content.get_property_value(JCR_LAST_MODIFIED, PropertyType.LONG),
        )
        if content.has_property(JCR_MIMETYPE):
            result.mimetype = content.get_property_value(JCR_MIMETYPE)
        if content.has_property(JCR_ENCODING):
            result.encoding = content.get_property_value(JCR_ENCODING)
        return result

    def _write_meta(
        self, file: Node, path: str, contents: str | bytes | BinaryIO, config: Config
    ) -> Metadata:
        content = file.get_node(JCR_CONTENT)
        mimetype = config.get("mimetype")
        if not mimetype:
            if isinstance(contents, (str, bytes)):
                mimetype = util.guess_mimetype(path, contents)
            else:
                mimetype = None
        content.set_property(JCR_MIMETYPE, mimetype)

        encoding = config.get("encoding")
        if encoding:
            content.set_property(JCR_ENCODING, encoding)

        return Metadata(type="file", path=path, mimetype=mimetype)

    def _writable_file(self, path: str) -> Node:
        file = self._get_file_node(path, create=True)
        if file.is_node_type(NT_FOLDER):
            raise IsADirectoryError(errno.EISDIR, "Is a folder", path)
        return file

    def _check_destination(self, location: str, destination: str) -> None:
        """Reject a move or copy target before any parent folder is created."""
        location = pathhelper.normalize_path(location)
        destination = pathhelper.normalize_path(destination)
        if destination == location or destination.startswith(location + "/"):
            raise ConstraintViolationError(
                f"Cannot move or copy {location} into itself ({destination})"
            )
        if self._session.node_exists(destination):
            raise ItemExistsError(f"Node {destination} already exists")

    # -------------------------------------------------------------------------
    # Adapter operations
    # -------------------------------------------------------------------------

    def has(self, path: str) -> bool:
        """Return True for files and folders; resource nodes do not count."""
        location = self.apply_path_prefix(path)
        if not self._session.node_exists(location):
            return False
        return self._session.get_node(location).is_node_type(NT_HIERARCHY_NODE)

    def write(
        self, path: str, contents: str | bytes, config: Config | None = None
    ) -> Metadata:
        """Write a file, creating it and its folders as needed.

        Raises:
            IsADirectoryError: If a folder exists at path.
            NotADirectoryError: If a parent of path is a file.
        """
        config = config or Config()
        file = self._writable_file(path)
        content = file.get_node(JCR_CONTENT)
        content.set_property(JCR_DATA, contents)

        result = self._write_meta(file, path, contents, config)
        result.size = content.get_property(JCR_DATA).get_length()
        result.contents = contents

        self._save()
        log.debug(f"wrote {path} ({result.size} bytes): {summarize(contents, 64)}")

        return result

    def write_stream(
        self, path: str, stream: BinaryIO, config: Config | None = None
    ) -> Metadata:
        """Write a file from a binary stream, read from its current position."""
        config = config or Config()
        file = self._writable_file(path)
        content = file.get_node(JCR_CONTENT)
        content.set_property(JCR_DATA, stream)

        result = self._write_meta(file, path, stream, config)
        result.size = content.get_property(JCR_DATA).get_length()

        self._save()
        log.debug(f"wrote {path} from stream ({result.size} bytes)")

        return result

    def update(
        self, path: str, contents: str | bytes, config: Config | None = None
    ) -> Metadata:
        return self.write(path, contents, config)

    def update_stream(
        self, path: str, stream: BinaryIO, config: Config | None = None
    ) -> Metadata:
        return self.write_stream(path, stream, config)

    def read(self, path: str) -> Metadata | Literal[False]:
        try:
            file = self._get_file_node(path)
        except (PathNotFoundError, NotADirectoryError):
            return False
        if file.is_node_type(NT_FOLDER):
            return False

        content = file.get_node(JCR_CONTENT)
        result = self._file_info(file)
        result.contents = content.get_property_value(JCR_DATA, PropertyType.BINARY)
        return result

    def read_stream(self, path: str) -> Metadata | Literal[False]:
        try:
            file = self._get_file_node(path)
        except (PathNotFoundError, NotADirectoryError):
            return False
        if file.is_node_type(NT_FOLDER):
            return False

        content = file.get_node(JCR_CONTENT)
        result = self._file_info(file)
        result.stream = content.get_property(JCR_DATA).get_binary()
        return result

    def rename(self, path: str, newpath: str) -> bool:
        """Move a file or folder, creating the destination's parent folders.

        Returns:
            False if nothing exists at path, True otherwise.

        Raises:
            ItemExistsError: If newpath is already taken.
            ConstraintViolationError: If newpath is path or lies below it.
        """
        location = self.apply_path_prefix(path)
        if not self._session.node_exists(location):
            return False
        destination = self.apply_path_prefix(newpath)
        self._check_destination(location, destination)
        self._get_folder_node(
            pathhelper.get_parent_path("/" + newpath.lstrip("/")), create=True
        )

        self._session.move(location, destination)
        self._save()
        log.debug(f"renamed {path} to {newpath}")

        return True

    def copy(self, path: str, newpath: str) -> bool:
        """Copy a file or folder, creating the destination's parent folders.

        The session is always saved first, even inside defer_saves(), since
        workspace copies only see persisted nodes.

        Returns:
            False if nothing exists at path, True otherwise.

        Raises:
            ItemExistsError: If newpath is already taken.
            ConstraintViolationError: If newpath is path or lies below it.
        """
        location = self.apply_path_prefix(path)
        if not self._session.node_exists(location):
            return False
        destination = self.apply_path_prefix(newpath)
        self._check_destination(location, destination)
        self._get_folder_node(
            pathhelper.get_parent_path("/" + newpath.lstrip("/")), create=True
        )

        self._session.save()
        self._session.workspace.copy(location, destination)
        log.debug(f"copied {path} to {newpath}")

        return True

    def delete(self, path: str) -> bool:
        try:
            node = self._get_file_node(path)
        except (PathNotFoundError, NotADirectoryError):
            return False
        node.remove()
        self._save()
        log.debug(f"deleted {path}")

        return True

    def list_contents(self, directory: str = "", recursive: bool = False) -> list[Metadata]:
        """List a folder breadth first; a missing folder lists as empty."""
        try:
            folder = self._get_folder_node(directory)
        except PathNotFoundError:
            return []

        result = []
        pending = deque(folder.get_nodes())
        while pending:
            node = pending.popleft()
            result.append(self._file_info(node))
            if recursive and node.is_node_type(NT_FOLDER):
                pending.extend(node.get_nodes())

        return result

    def get_metadata(self, path: str) -> Metadata | Literal[False]:
        try:
            file = self._get_file_node(path)
        except (PathNotFoundError, NotADirectoryError):
            return False

        return self._file_info(file)

    def get_size(self, path: str) -> Metadata | Literal[False]:
        return self.get_metadata(path)

    def get_mimetype(self, path: str) -> Metadata | Literal[False]:
        return self.get_metadata(path)

    def get_timestamp(self, path: str) -> Metadata | Literal[False]:
        return self.get_metadata(path)

    def create_dir(self, dirname: str, config: Config | None = None) -> Metadata:
        """Create a folder and any missing parents.

        Raises:
            NotADirectoryError: If dirname or one of its parents is a file.
        """
        self._get_folder_node(dirname, create=True)
        self._save()

        return Metadata(type="dir", path=dirname)

    def delete_dir(self, dirname: str) -> bool:
        try:
            folder = self._get_folder_node(dirname)
        except (PathNotFoundError, NotADirectoryError):
            return False
        folder.remove()
        self._save()
        log.debug(f"deleted folder {dirname}")

        return True

    def get_visibility(self, path: str) -> Metadata:
        raise io.UnsupportedOperation(
            f"{type(self).__name__} does not support visibility. Path: {path}"
        )

    def set_visibility(self, path: str, visibility: str) -> Metadata:
        raise io.UnsupportedOperation(
            f"{type(self).__name__} does not support visibility. Path: {path}, "
            f"visibility: {visibility}"
        )
