"""Content repository interface.

Defines the session/node contract that adapters translate filesystem
operations onto (MemoryRepository implements it for tests and embedding).
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any, BinaryIO, Iterator, Protocol, runtime_checkable

NT_BASE = "nt:base"
NT_HIERARCHY_NODE = "nt:hierarchyNode"
NT_FOLDER = "nt:folder"
NT_FILE = "nt:file"
NT_RESOURCE = "nt:resource"
NT_UNSTRUCTURED = "nt:unstructured"
REP_ROOT = "rep:root"

JCR_CONTENT = "jcr:content"
JCR_DATA = "jcr:data"
JCR_MIMETYPE = "jcr:mimeType"
JCR_ENCODING = "jcr:encoding"
JCR_LAST_MODIFIED = "jcr:lastModified"
JCR_LAST_MODIFIED_BY = "jcr:lastModifiedBy"
JCR_CREATED = "jcr:created"
JCR_CREATED_BY = "jcr:createdBy"


class PropertyType(IntEnum):
    """Property value types."""

    STRING = 1
    BINARY = 2
    LONG = 3
    DOUBLE = 4
    DATE = 5
    BOOLEAN = 6

    @staticmethod
    def determine_type(value: Any) -> "PropertyType":
        """Infer the property type of a Python value.

        Raises:
            TypeError: If the value has no property type.
        """
        # bool before int, bool is an int subclass
        if isinstance(value, bool):
            return PropertyType.BOOLEAN
        if isinstance(value, (bytes, bytearray, memoryview)):
            return PropertyType.BINARY
        if isinstance(value, io.IOBase) or hasattr(value, "read"):
            return PropertyType.BINARY
        if isinstance(value, str):
            return PropertyType.STRING
        if isinstance(value, int):
            return PropertyType.LONG
        if isinstance(value, float):
            return PropertyType.DOUBLE
        if isinstance(value, datetime):
            return PropertyType.DATE
        raise TypeError(f"Unsupported property value type: {type(value).__name__}")


@dataclass
class SimpleCredentials:
    """User id and password used to log into a repository."""

    user_id: str
    password: str = ""


@runtime_checkable
class Property(Protocol):
    """A single named value on a node."""

    name: str
    type: PropertyType
    value: Any

    def get_length(self) -> int:
        """Length in bytes for binaries, characters for everything else."""
        ...

    def get_string(self) -> str: ...

    def get_long(self) -> int: ...

    def get_date(self) -> datetime: ...

    def get_binary(self) -> BinaryIO:
        """Return a fresh stream over a binary value."""
        ...


@runtime_checkable
class Node(Protocol):
    """A node in the repository tree."""

    @property
    def path(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def primary_type(self) -> str: ...

    def get_parent(self) -> "Node": ...

    def add_node(self, name: str, node_type: str | None = None) -> "Node":
        """Add a child node, using the default child type if none is given."""
        ...

    def has_node(self, name: str) -> bool: ...

    def get_node(self, name: str) -> "Node": ...

    def get_nodes(self) -> Iterator["Node"]:
        """Iterate over child nodes in insertion order."""
        ...

    def is_node_type(self, name: str) -> bool:
        """Check the primary type and its supertypes."""
        ...

    def set_property(
        self, name: str, value: Any, type: PropertyType | None = None
    ) -> Property | None:
        """Set a property; a value of None removes it."""
        ...

    def has_property(self, name: str) -> bool: ...

    def get_property(self, name: str) -> Property: ...

    def get_property_value(self, name: str, type: PropertyType | None = None) -> Any:
        """Get a property value, converted to ``type`` if given."""
        ...

    def remove(self) -> None:
        """Remove this node and its subtree."""
        ...


@runtime_checkable
class Workspace(Protocol):
    """Workspace operations that act directly on persisted state."""

    name: str

    def copy(self, src: str, dst: str) -> None: ...


@runtime_checkable
class Session(Protocol):
    """Transient view of a workspace; changes persist on save()."""

    user_id: str | None

    @property
    def workspace(self) -> Workspace: ...

    def node_exists(self, path: str) -> bool: ...

    def get_node(self, path: str) -> Node: ...

    def get_root_node(self) -> Node: ...

    def remove_item(self, path: str) -> None: ...

    def move(self, src: str, dst: str) -> None: ...

    def save(self) -> None: ...

    def refresh(self, keep_changes: bool = False) -> None: ...

    def has_pending_changes(self) -> bool: ...
