"""Helpers for absolute repository paths ("/a/b/c").

These operate on repository paths, not on the virtual paths handed to
adapters (see jcrfs.util for those).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import InvalidPathError

if TYPE_CHECKING:
    from .repository import Node, Session

_ILLEGAL_NAME_CHARS = set("/[]*|")


def get_parent_path(path: str) -> str:
    """Return the parent of ``path``.

    ``"/"`` and top-level paths map to ``"/"``; a path without any slash
    has no parent and maps to ``""``.
    """
    if path == "/":
        return "/"
    pos = path.rfind("/")
    if pos == 0:
        return "/"
    if pos == -1:
        return ""
    return path[:pos]


def get_node_name(path: str) -> str:
    """Return the last segment of ``path``."""
    return path[path.rfind("/") + 1 :]


def assert_valid_local_name(name: str) -> None:
    """Validate a single node name.

    Raises:
        InvalidPathError: If the name is empty, "." or "..", contains a
            reserved character or more than one namespace separator.
    """
    if not name or name in (".", ".."):
        raise InvalidPathError(f"Invalid node name: '{name}'")
    if _ILLEGAL_NAME_CHARS.intersection(name):
        raise InvalidPathError(f"Node name contains illegal characters: '{name}'")
    if name.count(":") > 1 or name.startswith(":") or name.endswith(":"):
        raise InvalidPathError(f"Invalid namespace prefix in node name: '{name}'")


def normalize_path(path: str) -> str:
    """Normalize an absolute repository path.

    Collapses duplicate slashes and resolves "." and ".." segments.

    Raises:
        InvalidPathError: If the path is relative or climbs above the root.
    """
    if not path.startswith("/"):
        raise InvalidPathError(f"Repository path must be absolute: '{path}'")

    segments: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not segments:
                raise InvalidPathError(f"Path climbs above the root: '{path}'")
            segments.pop()
            continue
        segments.append(segment)

    return "/" + "/".join(segments)


def absolutize_path(path: str, context: str) -> str:
    """Resolve ``path`` against the absolute ``context`` path."""
    if not path.startswith("/"):
        path = context.rstrip("/") + "/" + path
    return normalize_path(path)


def create_path(session: Session, path: str, node_type: str | None = None) -> Node:
    """Return the node at ``path``, creating any missing nodes on the way.

    Missing nodes are created with ``node_type``, or with the parent's
    default child type when no type is given.
    """
    node = session.get_root_node()
    for name in normalize_path(path).split("/"):
        if not name:
            continue
        if node.has_node(name):
            node = node.get_node(name)
        else:
            node = node.add_node(name, node_type)
    return node
