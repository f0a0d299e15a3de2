"""Base adapter interface and dataclasses.

Defines the contract filesystem adapters implement (JcrAdapter is the one
shipped here) and the metadata they return.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, BinaryIO, Literal, Protocol, runtime_checkable

from .config import Config


@dataclass
class Metadata:
    """Information about a single file or directory.

    Adapters only fill in what they know; unset fields stay None.

    Attributes:
        type: "file", "folder" or "dir".
        path: Path relative to the adapter root.
        size: File size in bytes.
        timestamp: Last modification time (seconds since the epoch).
        mimetype: Mimetype of the file contents.
        encoding: Character encoding of the contents, if known.
        contents: File contents as bytes (read and write results).
        stream: Binary stream over the file contents (stream reads).
        visibility: "public" or "private".
        dirname: Directory part of path (listings only).
        basename: Final path component (listings only).
        extension: File extension without the dot (listings only).
        filename: basename without the extension (listings only).
    """

    type: str
    path: str
    size: int | None = None
    timestamp: int | None = None
    mimetype: str | None = None
    encoding: str | None = None
    contents: bytes | None = None
    stream: BinaryIO | None = None
    visibility: str | None = None
    dirname: str | None = None
    basename: str | None = None
    extension: str | None = None
    filename: str | None = None

    @property
    def is_dir(self) -> bool:
        return self.type in ("dir", "folder")

    def to_dict(self) -> dict[str, Any]:
        """Return the set fields as a dict."""
        if self.stream is None:
            values = asdict(self)
        else:
            # streams cannot be deep-copied by asdict()
            values = {f.name: getattr(self, f.name) for f in fields(self)}
        return {key: value for key, value in values.items() if value is not None}


@runtime_checkable
class Adapter(Protocol):
    """Operations a Filesystem dispatches to.

    Lookups return False instead of raising when the path does not exist.
    """

    def has(self, path: str) -> bool: ...

    def read(self, path: str) -> Metadata | Literal[False]: ...

    def read_stream(self, path: str) -> Metadata | Literal[False]: ...

    def write(
        self, path: str, contents: str | bytes, config: Config
    ) -> Metadata | Literal[False]: ...

    def write_stream(
        self, path: str, stream: BinaryIO, config: Config
    ) -> Metadata | Literal[False]: ...

    def update(
        self, path: str, contents: str | bytes, config: Config
    ) -> Metadata | Literal[False]: ...

    def update_stream(
        self, path: str, stream: BinaryIO, config: Config
    ) -> Metadata | Literal[False]: ...

    def rename(self, path: str, newpath: str) -> bool: ...

    def copy(self, path: str, newpath: str) -> bool: ...

    def delete(self, path: str) -> bool: ...

    def delete_dir(self, dirname: str) -> bool: ...

    def create_dir(self, dirname: str, config: Config) -> Metadata | Literal[False]: ...

    def list_contents(
        self, directory: str = "", recursive: bool = False
    ) -> list[Metadata]: ...

    def get_metadata(self, path: str) -> Metadata | Literal[False]: ...

    def get_size(self, path: str) -> Metadata | Literal[False]: ...

    def get_mimetype(self, path: str) -> Metadata | Literal[False]: ...

    def get_timestamp(self, path: str) -> Metadata | Literal[False]: ...

    def get_visibility(self, path: str) -> Metadata | Literal[False]: ...

    def set_visibility(
        self, path: str, visibility: str
    ) -> Metadata | Literal[False]: ...


class AbstractAdapter:
    """Path prefix handling shared by adapters."""

    path_separator = "/"

    def __init__(self) -> None:
        self._path_prefix: str | None = None

    def set_path_prefix(self, prefix: str) -> None:
        """Set the prefix prepended to every path; "" disables prefixing."""
        prefix = str(prefix)
        if prefix == "":
            self._path_prefix = None
            return
        self._path_prefix = prefix.rstrip("\\/") + self.path_separator

    def get_path_prefix(self) -> str | None:
        return self._path_prefix

    def apply_path_prefix(self, path: str) -> str:
        return (self._path_prefix or "") + path.lstrip("\\/")

    def remove_path_prefix(self, path: str) -> str:
        return path[len(self._path_prefix or "") :]
