"""Helpers for the virtual paths and contents handed to adapters."""

from __future__ import annotations

import mimetypes
import posixpath
import unicodedata

import magic

DEFAULT_MIMETYPE = "text/plain"
BINARY_MIMETYPE = "application/octet-stream"

_EMPTY_MIMETYPES = ("inode/x-empty", "application/x-empty")
_INCONCLUSIVE_MIMETYPES = (
    DEFAULT_MIMETYPE,
    BINARY_MIMETYPE,
    "text/x-asm",
    *_EMPTY_MIMETYPES,
)


def normalize_path(path: str) -> str:
    """Normalize a virtual path.

    Backslashes become slashes, control characters are dropped, "." and
    ".." are resolved and leading/trailing slashes are stripped, so
    "/a/./b/../c/" becomes "a/c".

    Raises:
        ValueError: If the path climbs above the root.
    """
    path = "".join(ch for ch in path if not unicodedata.category(ch).startswith("C"))
    path = path.replace("\\", "/")

    parts: list[str] = []
    for part in path.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise ValueError(f"Path is outside of the defined root, path: [{path}]")
            parts.pop()
            continue
        parts.append(part)

    return "/".join(parts)


def dirname(path: str) -> str:
    """Return the normalized parent directory ("" at the top level)."""
    return normalize_path(posixpath.dirname(path))


def path_info(path: str) -> dict[str, str]:
    """Split a path into path, dirname, basename, filename and extension."""
    basename = posixpath.basename(path)
    info = {
        "path": path,
        "dirname": dirname(path),
        "basename": basename,
    }
    filename, dot, extension = basename.rpartition(".")
    if dot and filename:
        info["filename"] = filename
        info["extension"] = extension
    else:
        info["filename"] = basename
    return info


def guess_mimetype(path: str, contents: str | bytes) -> str:
    """Guess a mimetype by sniffing the contents with libmagic.

    Text, empty and unrecognized binary contents are inconclusive; for
    those the file extension decides, falling back to the sniffed type
    ("text/plain" for empty contents).
    """
    if isinstance(contents, str):
        contents = contents.encode("utf-8")
    sniffed = magic.from_buffer(bytes(contents), mime=True)
    if sniffed not in _INCONCLUSIVE_MIMETYPES:
        return sniffed

    mimetype, _ = mimetypes.guess_type(path, strict=False)
    if mimetype:
        return mimetype
    if sniffed in _EMPTY_MIMETYPES:
        return DEFAULT_MIMETYPE
    return sniffed
