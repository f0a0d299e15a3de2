"""Writable file object that stores its contents on close."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .filesystem import Filesystem


class NodeFile:
    """File-like object that writes to the filesystem on close.

    Buffers content during write operations, then stores it with
    Filesystem.put() when the file is closed (either explicitly or via
    context manager), so the node is saved once per file.

    Attributes:
        path: The virtual filesystem path.
        mode: The file mode ('w', 'wb', 'a', 'ab', 'x', 'xb').
    """

    def __init__(self, filesystem: "Filesystem", path: str, mode: str):
        """Initialize a writable node file.

        Args:
            filesystem: The Filesystem the contents are written to.
            path: Normalized file path.
            mode: File open mode.
        """
        self._filesystem = filesystem
        self.path = path
        self.mode = mode
        self._closed = False

        if "b" in mode:
            self._buffer: io.BytesIO | io.StringIO = io.BytesIO()
        else:
            self._buffer = io.StringIO()

        if "a" in mode and filesystem.has(path):
            existing = filesystem.read(path)
            if existing is not False:
                if "b" in mode:
                    self._buffer.write(existing)
                else:
                    self._buffer.write(existing.decode("utf-8"))

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError(f"I/O operation on closed file: {self.path}")

    def write(self, data: str | bytes) -> int:
        """Write data to the buffer.

        Returns:
            Number of characters/bytes written.

        Raises:
            ValueError: If file is already closed.
        """
        self._check_open()
        return self._buffer.write(data)  # type: ignore[arg-type]

    def writelines(self, lines: list[str | bytes]) -> None:
        self._check_open()
        self._buffer.writelines(lines)  # type: ignore[arg-type]

    def read(self, size: int = -1) -> str | bytes:
        """Read is not supported for write-only files."""
        raise io.UnsupportedOperation("read")

    def seek(self, offset: int, whence: int = 0) -> int:
        self._check_open()
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        self._check_open()
        return self._buffer.tell()

    def flush(self) -> None:
        """Flush is a no-op (content stored on close)."""
        pass

    def close(self) -> None:
        """Close the file and store its content."""
        if self._closed:
            return

        content = self._buffer.getvalue()
        if isinstance(content, str):
            content = content.encode("utf-8")

        self._filesystem.put(self.path, content)

        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "NodeFile":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
