"""Filesystem facade over an adapter.

Normalizes paths, applies default write options and turns missing or
conflicting paths into FileNotFoundError / FileExistsError before the
adapter is called.
"""

from __future__ import annotations

import dataclasses
import errno
import io
from typing import Any, BinaryIO, Literal

from .adapter import JcrAdapter
from .base import Adapter, Metadata
from .config import AdapterConfig, Config
from .errors import RootViolationError
from .memory import MemoryRepository
from .nodefile import NodeFile
from .repository import SimpleCredentials
from .util import normalize_path, path_info

_WRITE_MODES = ("w", "wb", "a", "ab", "x", "xb")


class Filesystem:
    """File operations on top of an Adapter.

    Example:
        >>> fs = Filesystem.from_config(connect_fs(root="/files"))
        >>> fs.write("notes/todo.txt", b"buy milk")
        True
        >>> fs.read("notes/todo.txt")
        b'buy milk'
        >>> [entry.path for entry in fs.list_contents("notes")]
        ['notes/todo.txt']
    """

    def __init__(self, adapter: Adapter, config: Config | dict[str, Any] | None = None):
        """Initialize the filesystem.

        Args:
            adapter: Adapter performing the actual operations.
            config: Default write options, used as fallback for every call.
        """
        self._adapter = adapter
        self._config = config if isinstance(config, Config) else Config(config)

    @classmethod
    def from_config(
        cls, config: AdapterConfig, repository: Any = None
    ) -> "Filesystem":
        """Log into a repository and build a filesystem on ``config.root``.

        Args:
            config: Adapter configuration (see connect_fs()).
            repository: Repository to log into; anything with a
                ``login(credentials, workspace)`` method. Defaults to a new
                MemoryRepository.
        """
        if repository is None:
            repository = MemoryRepository()
        session = repository.login(
            SimpleCredentials(config.user_id, ""), config.workspace
        )
        return cls(JcrAdapter(session, config.root), config.write_config())

    @property
    def adapter(self) -> Adapter:
        return self._adapter

    @property
    def config(self) -> Config:
        return self._config

    def _prepare_config(self, config: Config | dict[str, Any] | None) -> Config:
        if isinstance(config, Config):
            config = config.copy()
        else:
            config = Config(config)
        return config.set_fallback(self._config)

    def _assert_present(self, path: str) -> None:
        if not self._adapter.has(path):
            raise FileNotFoundError(errno.ENOENT, "File not found", path)

    def _assert_absent(self, path: str) -> None:
        if self._adapter.has(path):
            raise FileExistsError(errno.EEXIST, "File already exists", path)

    @staticmethod
    def _rewind(stream: BinaryIO) -> None:
        if not hasattr(stream, "read"):
            raise TypeError(f"Expected a binary stream, got {type(stream).__name__}")
        seekable = getattr(stream, "seekable", None)
        if seekable is not None and seekable() and stream.tell() > 0:
            stream.seek(0)

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def write(
        self, path: str, contents: str | bytes, config: Config | dict | None = None
    ) -> bool:
        """Write a new file.

        Raises:
            FileExistsError: If the file already exists.
        """
        path = normalize_path(path)
        self._assert_absent(path)
        return bool(self._adapter.write(path, contents, self._prepare_config(config)))

    def write_stream(
        self, path: str, stream: BinaryIO, config: Config | dict | None = None
    ) -> bool:
        """Write a new file from a stream (rewound to the start first).

        Raises:
            FileExistsError: If the file already exists.
        """
        path = normalize_path(path)
        self._assert_absent(path)
        self._rewind(stream)
        return bool(
            self._adapter.write_stream(path, stream, self._prepare_config(config))
        )

    def update(
        self, path: str, contents: str | bytes, config: Config | dict | None = None
    ) -> bool:
        """Replace the contents of an existing file.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        path = normalize_path(path)
        self._assert_present(path)
        return bool(self._adapter.update(path, contents, self._prepare_config(config)))

    def update_stream(
        self, path: str, stream: BinaryIO, config: Config | dict | None = None
    ) -> bool:
        path = normalize_path(path)
        self._assert_present(path)
        self._rewind(stream)
        return bool(
            self._adapter.update_stream(path, stream, self._prepare_config(config))
        )

    def put(
        self, path: str, contents: str | bytes, config: Config | dict | None = None
    ) -> bool:
        """Create or replace a file."""
        path = normalize_path(path)
        config = self._prepare_config(config)
        if self._adapter.has(path):
            return bool(self._adapter.update(path, contents, config))
        return bool(self._adapter.write(path, contents, config))

    def put_stream(
        self, path: str, stream: BinaryIO, config: Config | dict | None = None
    ) -> bool:
        path = normalize_path(path)
        config = self._prepare_config(config)
        self._rewind(stream)
        if self._adapter.has(path):
            return bool(self._adapter.update_stream(path, stream, config))
        return bool(self._adapter.write_stream(path, stream, config))

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def has(self, path: str) -> bool:
        path = normalize_path(path)
        return bool(path) and self._adapter.has(path)

    def read(self, path: str) -> bytes | Literal[False]:
        """Read a file's contents.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        path = normalize_path(path)
        self._assert_present(path)
        result = self._adapter.read(path)
        if not result:
            return False
        return result.contents

    def read_stream(self, path: str) -> BinaryIO | Literal[False]:
        path = normalize_path(path)
        self._assert_present(path)
        result = self._adapter.read_stream(path)
        if not result:
            return False
        return result.stream

    def read_and_delete(self, path: str) -> bytes | Literal[False]:
        """Read a file's contents, then delete it."""
        path = normalize_path(path)
        contents = self.read(path)
        if contents is False:
            return False
        self.delete(path)
        return contents

    def open(self, path: str, mode: str = "r") -> io.BytesIO | io.StringIO | NodeFile:
        """Open a file, returning a file-like object.

        Args:
            path: File path to open.
            mode: 'r', 'rb', 'w', 'wb', 'a', 'ab', 'x' or 'xb'.

        Raises:
            FileNotFoundError: If reading a file that doesn't exist.
            FileExistsError: If opening an existing file with 'x'.
            IsADirectoryError: If reading a folder.
            ValueError: If mode is invalid.
        """
        path = normalize_path(path)

        if mode in ("r", "rb"):
            contents = self.read(path)
            if contents is False:
                raise IsADirectoryError(errno.EISDIR, "Is a directory", path)
            if "b" in mode:
                return io.BytesIO(contents)
            return io.StringIO(contents.decode("utf-8"))

        if mode in _WRITE_MODES:
            if "x" in mode:
                self._assert_absent(path)
            return NodeFile(self, path, mode)

        raise ValueError(f"Invalid mode: {mode}")

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    def rename(self, path: str, newpath: str) -> bool:
        """Move a file or directory.

        Raises:
            FileNotFoundError: If path does not exist.
            FileExistsError: If newpath already exists.
        """
        path = normalize_path(path)
        newpath = normalize_path(newpath)
        self._assert_present(path)
        self._assert_absent(newpath)
        return bool(self._adapter.rename(path, newpath))

    def copy(self, path: str, newpath: str) -> bool:
        """Copy a file or directory.

        Raises:
            FileNotFoundError: If path does not exist.
            FileExistsError: If newpath already exists.
        """
        path = normalize_path(path)
        newpath = normalize_path(newpath)
        self._assert_present(path)
        self._assert_absent(newpath)
        return bool(self._adapter.copy(path, newpath))

    def delete(self, path: str) -> bool:
        """Delete a file or directory.

        Raises:
            RootViolationError: If path is the root.
            FileNotFoundError: If path does not exist.
        """
        path = normalize_path(path)
        if path == "":
            raise RootViolationError("Root directories can not be deleted.")
        self._assert_present(path)
        return bool(self._adapter.delete(path))

    def delete_dir(self, dirname: str) -> bool:
        """Delete a directory and everything below it.

        Raises:
            RootViolationError: If dirname is the root.
        """
        dirname = normalize_path(dirname)
        if dirname == "":
            raise RootViolationError("Root directories can not be deleted.")
        return bool(self._adapter.delete_dir(dirname))

    def create_dir(self, dirname: str, config: Config | dict | None = None) -> bool:
        dirname = normalize_path(dirname)
        return bool(self._adapter.create_dir(dirname, self._prepare_config(config)))

    def list_contents(self, directory: str = "", recursive: bool = False) -> list[Metadata]:
        """List a directory.

        Entries carry dirname, basename, filename and extension; entries the
        adapter returns outside the directory (or, unless recursive, below
        its direct children) are dropped.
        """
        directory = normalize_path(directory)
        listing = []
        for entry in self._adapter.list_contents(directory, recursive):
            info = path_info(entry.path)
            entry = dataclasses.replace(
                entry,
                dirname=info["dirname"],
                basename=info["basename"],
                filename=info["filename"],
                extension=info.get("extension"),
            )
            if self._in_listing(directory, recursive, entry):
                listing.append(entry)
        return listing

    @staticmethod
    def _in_listing(directory: str, recursive: bool, entry: Metadata) -> bool:
        if directory and not entry.path.startswith(directory + "/"):
            return False
        return recursive or entry.dirname == directory

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def get_metadata(self, path: str) -> Metadata | Literal[False]:
        """Return file or directory metadata.

        Raises:
            FileNotFoundError: If path does not exist.
        """
        path = normalize_path(path)
        self._assert_present(path)
        return self._adapter.get_metadata(path)

    def get_mimetype(self, path: str) -> str | Literal[False]:
        path = normalize_path(path)
        self._assert_present(path)
        result = self._adapter.get_mimetype(path)
        if not result or result.mimetype is None:
            return False
        return result.mimetype

    def get_timestamp(self, path: str) -> int | Literal[False]:
        path = normalize_path(path)
        self._assert_present(path)
        result = self._adapter.get_timestamp(path)
        if not result or result.timestamp is None:
            return False
        return result.timestamp

    def get_size(self, path: str) -> int | Literal[False]:
        path = normalize_path(path)
        self._assert_present(path)
        result = self._adapter.get_size(path)
        if not result or result.size is None:
            return False
        return result.size

    def get_visibility(self, path: str) -> str | Literal[False]:
        path = normalize_path(path)
        self._assert_present(path)
        result = self._adapter.get_visibility(path)
        if not result or result.visibility is None:
            return False
        return result.visibility

    def set_visibility(self, path: str, visibility: str) -> bool:
        path = normalize_path(path)
        self._assert_present(path)
        return bool(self._adapter.set_visibility(path, visibility))
