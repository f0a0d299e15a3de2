"""In-memory content repository implementation.

Provides MemoryRepository, a small repository backed by any
``MutableMapping[str, bytes]``. Each node is pickled under its own key,
so dict, shelve or DiskCache-style stores all work; if the mapping has a
``commit()`` method it is called whenever a session saves.
"""

from __future__ import annotations

import base64
import io
import pickle
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, BinaryIO, Iterator

from . import pathhelper
from .errors import (
    ConstraintViolationError,
    ItemExistsError,
    NoSuchNodeTypeError,
    PathNotFoundError,
    ValueFormatError,
)
from .logger import log
from .repository import (
    JCR_CONTENT,
    JCR_CREATED,
    JCR_CREATED_BY,
    JCR_DATA,
    JCR_ENCODING,
    JCR_LAST_MODIFIED,
    JCR_LAST_MODIFIED_BY,
    JCR_MIMETYPE,
    NT_BASE,
    NT_FILE,
    NT_FOLDER,
    NT_HIERARCHY_NODE,
    NT_RESOURCE,
    NT_UNSTRUCTURED,
    REP_ROOT,
    PropertyType,
    SimpleCredentials,
)


@dataclass(frozen=True)
class NodeTypeDefinition:
    """Constraints for one node type.

    Attributes:
        name: Node type name (e.g. "nt:folder").
        supertypes: All types this type inherits from.
        abstract: Abstract types cannot be used for new nodes.
        child_types: Allowed child types (checked against supertypes).
            None allows any type, an empty tuple makes the type a leaf.
        child_names: Allowed child names, None allows any name.
        default_child_type: Type used by add_node() when none is given.
        property_types: Required types for known properties; values are
            converted on set_property().
        tracks_created: Set jcr:created/jcr:createdBy on creation.
        tracks_modified: Keep jcr:lastModified/jcr:lastModifiedBy current.
    """

    name: str
    supertypes: tuple[str, ...] = (NT_BASE,)
    abstract: bool = False
    child_types: tuple[str, ...] | None = None
    child_names: tuple[str, ...] | None = None
    default_child_type: str | None = None
    property_types: dict[str, PropertyType] = field(default_factory=dict)
    tracks_created: bool = False
    tracks_modified: bool = False

    def is_a(self, name: str) -> bool:
        return name == self.name or name in self.supertypes


_CREATED_TYPES = {
    JCR_CREATED: PropertyType.DATE,
    JCR_CREATED_BY: PropertyType.STRING,
}

NODE_TYPES: dict[str, NodeTypeDefinition] = {
    definition.name: definition
    for definition in (
        NodeTypeDefinition(NT_BASE, supertypes=(), abstract=True),
        NodeTypeDefinition(
            NT_HIERARCHY_NODE,
            abstract=True,
            property_types=_CREATED_TYPES,
            tracks_created=True,
        ),
        NodeTypeDefinition(
            NT_FOLDER,
            supertypes=(NT_HIERARCHY_NODE, NT_BASE),
            child_types=(NT_HIERARCHY_NODE,),
            property_types=_CREATED_TYPES,
            tracks_created=True,
        ),
        NodeTypeDefinition(
            NT_FILE,
            supertypes=(NT_HIERARCHY_NODE, NT_BASE),
            child_names=(JCR_CONTENT,),
            property_types=_CREATED_TYPES,
            tracks_created=True,
        ),
        NodeTypeDefinition(
            NT_RESOURCE,
            child_types=(),
            property_types={
                JCR_DATA: PropertyType.BINARY,
                JCR_MIMETYPE: PropertyType.STRING,
                JCR_ENCODING: PropertyType.STRING,
                JCR_LAST_MODIFIED: PropertyType.DATE,
                JCR_LAST_MODIFIED_BY: PropertyType.STRING,
            },
            tracks_modified=True,
        ),
        NodeTypeDefinition(NT_UNSTRUCTURED, default_child_type=NT_UNSTRUCTURED),
        NodeTypeDefinition(REP_ROOT, default_child_type=NT_UNSTRUCTURED),
    )
}


def get_node_type(name: str) -> NodeTypeDefinition:
    try:
        return NODE_TYPES[name]
    except KeyError:
        raise NoSuchNodeTypeError(f"Unknown node type: {name}") from None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _join(parent: str, name: str) -> str:
    return ("" if parent == "/" else parent) + "/" + name


def _to_string(value: Any, from_type: PropertyType) -> str:
    if from_type == PropertyType.STRING:
        return value
    if from_type == PropertyType.BINARY:
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValueFormatError(f"Binary value is not valid UTF-8: {e}") from e
    if from_type == PropertyType.DATE:
        return value.isoformat()
    if from_type == PropertyType.BOOLEAN:
        return "true" if value else "false"
    return str(value)


def convert_value(
    value: Any, to_type: PropertyType, from_type: PropertyType | None = None
) -> Any:
    """Convert a property value between property types.

    Raises:
        ValueFormatError: If the value cannot be represented as ``to_type``.
    """
    if from_type is None:
        from_type = PropertyType.determine_type(value)

    if to_type == from_type:
        return bytes(value) if to_type == PropertyType.BINARY else value

    if to_type == PropertyType.STRING:
        return _to_string(value, from_type)

    if to_type == PropertyType.BINARY:
        return _to_string(value, from_type).encode("utf-8")

    textual = from_type in (PropertyType.STRING, PropertyType.BINARY)

    try:
        if to_type == PropertyType.LONG:
            if from_type == PropertyType.DOUBLE:
                return int(value)
            if from_type == PropertyType.DATE:
                return int(value.timestamp())
            if textual:
                return int(_to_string(value, from_type))

        elif to_type == PropertyType.DOUBLE:
            if from_type == PropertyType.LONG:
                return float(value)
            if from_type == PropertyType.DATE:
                return value.timestamp()
            if textual:
                return float(_to_string(value, from_type))

        elif to_type == PropertyType.DATE:
            if from_type in (PropertyType.LONG, PropertyType.DOUBLE):
                return datetime.fromtimestamp(value, timezone.utc)
            if textual:
                return datetime.fromisoformat(_to_string(value, from_type))

        elif to_type == PropertyType.BOOLEAN:
            if textual:
                return _to_string(value, from_type).lower() == "true"
    except (ValueError, OverflowError) as e:
        raise ValueFormatError(
            f"Cannot convert {value!r} to {to_type.name}: {e}"
        ) from e

    raise ValueFormatError(f"Cannot convert {from_type.name} to {to_type.name}")


@dataclass
class NodeRecord:
    """Persisted form of a node: its type, properties and child names."""

    node_type: str
    properties: dict[str, tuple[PropertyType, Any]] = field(default_factory=dict)
    children: list[str] = field(default_factory=list)


class MemoryProperty:
    """Snapshot of a property value."""

    def __init__(self, name: str, type: PropertyType, value: Any):
        self.name = name
        self.type = type
        self.value = value

    def get_length(self) -> int:
        if self.type == PropertyType.BINARY:
            return len(self.value)
        return len(self.get_string())

    def get_string(self) -> str:
        return convert_value(self.value, PropertyType.STRING, self.type)

    def get_long(self) -> int:
        return convert_value(self.value, PropertyType.LONG, self.type)

    def get_double(self) -> float:
        return convert_value(self.value, PropertyType.DOUBLE, self.type)

    def get_date(self) -> datetime:
        return convert_value(self.value, PropertyType.DATE, self.type)

    def get_boolean(self) -> bool:
        return convert_value(self.value, PropertyType.BOOLEAN, self.type)

    def get_binary(self) -> BinaryIO:
        return io.BytesIO(convert_value(self.value, PropertyType.BINARY, self.type))

    def __repr__(self) -> str:
        return f"MemoryProperty({self.name!r}, {self.type.name})"


class MemoryNode:
    """Handle on a node path within a MemorySession.

    Handles hold no data of their own; every access goes through the
    session, so they always reflect pending changes.
    """

    def __init__(self, session: "MemorySession", path: str):
        self._session = session
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    @property
    def name(self) -> str:
        return pathhelper.get_node_name(self._path)

    @property
    def primary_type(self) -> str:
        return self._record().node_type

    def _record(self) -> NodeRecord:
        return self._session._require(self._path)

    def get_parent(self) -> "MemoryNode":
        if self._path == "/":
            raise PathNotFoundError("The root node has no parent")
        return self._session.get_node(pathhelper.get_parent_path(self._path))

    def add_node(self, name: str, node_type: str | None = None) -> "MemoryNode":
        """Add a child node.

        Raises:
            InvalidPathError: If the name is not a valid local name.
            ItemExistsError: If a child with this name exists.
            ConstraintViolationError: If this node's type forbids the child.
            NoSuchNodeTypeError: If the node type is unknown.
        """
        pathhelper.assert_valid_local_name(name)
        record = self._record()
        if name in record.children:
            raise ItemExistsError(f"Node {_join(self._path, name)} already exists")
        node_type = self._session._validate_child(record, self._path, name, node_type)

        definition = get_node_type(node_type)
        child = NodeRecord(node_type)
        user_id = self._session.user_id or ""
        if definition.tracks_created:
            child.properties[JCR_CREATED] = (PropertyType.DATE, _now())
            child.properties[JCR_CREATED_BY] = (PropertyType.STRING, user_id)
        if definition.tracks_modified:
            child.properties[JCR_LAST_MODIFIED] = (PropertyType.DATE, _now())
            child.properties[JCR_LAST_MODIFIED_BY] = (PropertyType.STRING, user_id)

        return self._session._add(self._path, name, child)

    def has_node(self, name: str) -> bool:
        return self._session.node_exists(pathhelper.absolutize_path(name, self._path))

    def get_node(self, name: str) -> "MemoryNode":
        return self._session.get_node(pathhelper.absolutize_path(name, self._path))

    def get_nodes(self) -> Iterator["MemoryNode"]:
        names = list(self._record().children)
        return iter([MemoryNode(self._session, _join(self._path, n)) for n in names])

    def is_node_type(self, name: str) -> bool:
        return get_node_type(self.primary_type).is_a(name)

    def set_property(
        self, name: str, value: Any, type: PropertyType | None = None
    ) -> MemoryProperty | None:
        """Set a property, converting the value to the property's required type.

        Binary file objects are read to the end. Passing None removes the
        property.
        """
        record = self._session._edit(self._path)
        definition = get_node_type(record.node_type)

        if value is None:
            record.properties.pop(name, None)
            prop = None
        else:
            if hasattr(value, "read"):
                value = value.read()
                if isinstance(value, str):
                    value = value.encode("utf-8")
            source_type = PropertyType.determine_type(value)
            target_type = definition.property_types.get(name) or type or source_type
            converted = convert_value(value, target_type, source_type)
            record.properties[name] = (target_type, converted)
            prop = MemoryProperty(name, target_type, converted)

        if definition.tracks_modified and name not in (
            JCR_LAST_MODIFIED,
            JCR_LAST_MODIFIED_BY,
        ):
            record.properties[JCR_LAST_MODIFIED] = (PropertyType.DATE, _now())
            record.properties[JCR_LAST_MODIFIED_BY] = (
                PropertyType.STRING,
                self._session.user_id or "",
            )
        return prop

    def has_property(self, name: str) -> bool:
        return name in self._record().properties

    def get_property(self, name: str) -> MemoryProperty:
        try:
            type, value = self._record().properties[name]
        except KeyError:
            raise PathNotFoundError(
                f"Property {name} not found on {self._path}"
            ) from None
        return MemoryProperty(name, type, value)

    def get_property_value(self, name: str, type: PropertyType | None = None) -> Any:
        prop = self.get_property(name)
        if type is None:
            return prop.value
        return convert_value(prop.value, type, prop.type)

    def get_property_names(self) -> list[str]:
        return list(self._record().properties)

    def remove(self) -> None:
        self._session.remove_item(self._path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MemoryNode):
            return NotImplemented
        return self._session is other._session and self._path == other._path

    def __hash__(self) -> int:
        return hash((id(self._session), self._path))

    def __repr__(self) -> str:
        return f"MemoryNode({self._path!r})"


class MemoryWorkspace:
    """Workspace operations that bypass the session and act on saved nodes."""

    def __init__(self, session: "MemorySession", name: str):
        self._session = session
        self.name = name

    def copy(self, src: str, dst: str) -> None:
        """Copy a persisted subtree to ``dst`` and persist the copy immediately.

        Pending session changes are not visible to the copy; save first.

        Raises:
            PathNotFoundError: If src or the parent of dst is not persisted.
            ItemExistsError: If dst already exists.
            ConstraintViolationError: If dst is inside src or the parent's
                type forbids the copy.
        """
        src = pathhelper.normalize_path(src)
        dst = pathhelper.normalize_path(dst)
        repository = self._session._repository

        if dst == src or dst.startswith(src.rstrip("/") + "/"):
            raise ConstraintViolationError(f"Cannot copy {src} into itself ({dst})")

        source = repository._read(self.name, src)
        if source is None:
            raise PathNotFoundError(f"No persisted node at {src}")
        if repository._read(self.name, dst) is not None:
            raise ItemExistsError(f"Node {dst} already exists")

        parent_path = pathhelper.get_parent_path(dst)
        parent = repository._read(self.name, parent_path)
        if parent is None:
            raise PathNotFoundError(f"No persisted node at {parent_path}")
        name = pathhelper.get_node_name(dst)
        pathhelper.assert_valid_local_name(name)
        self._session._validate_child(parent, parent_path, name, source.node_type)

        changes: dict[str, NodeRecord | None] = {}

        def collect(path: str, target: str) -> None:
            record = repository._read(self.name, path)
            changes[target] = record
            for child in record.children:
                collect(_join(path, child), _join(target, child))

        collect(src, dst)
        parent.children.append(name)
        changes[parent_path] = parent
        repository._write(self.name, changes)
        log.debug(f"copied {src} to {dst} ({len(changes) - 1} nodes)")

        # Keep a pending view of the parent in sync with the new child
        pending = self._session._changes.get(parent_path)
        if pending is not None and name not in pending.children:
            pending.children.append(name)


class MemorySession:
    """Session over a MemoryRepository workspace.

    Changes are kept in an overlay of node records until save() writes
    them to the repository state. refresh() discards them.
    """

    def __init__(
        self, repository: "MemoryRepository", workspace: str, user_id: str | None
    ):
        self._repository = repository
        self._workspace = MemoryWorkspace(self, workspace)
        self._changes: dict[str, NodeRecord | None] = {}
        self.user_id = user_id

    @property
    def workspace(self) -> MemoryWorkspace:
        return self._workspace

    @property
    def repository(self) -> "MemoryRepository":
        return self._repository

    # -------------------------------------------------------------------------
    # Record access
    # -------------------------------------------------------------------------

    def _load(self, path: str) -> NodeRecord | None:
        if path in self._changes:
            return self._changes[path]
        return self._repository._read(self._workspace.name, path)

    def _require(self, path: str) -> NodeRecord:
        record = self._load(path)
        if record is None:
            raise PathNotFoundError(f"No node at {path}")
        return record

    def _edit(self, path: str) -> NodeRecord:
        """Return the record at ``path`` as a pending change."""
        record = self._require(path)
        self._changes[path] = record
        return record

    def _add(self, parent_path: str, name: str, record: NodeRecord) -> MemoryNode:
        self._edit(parent_path).children.append(name)
        path = _join(parent_path, name)
        self._changes[path] = record
        return MemoryNode(self, path)

    def _walk(self, path: str) -> list[str]:
        paths = [path]
        for child in self._require(path).children:
            paths.extend(self._walk(_join(path, child)))
        return paths

    def _validate_child(
        self,
        parent: NodeRecord,
        parent_path: str,
        name: str,
        node_type: str | None,
    ) -> str:
        """Check that ``parent`` accepts a child; return the child's type."""
        definition = get_node_type(parent.node_type)
        if node_type is None:
            node_type = definition.default_child_type
            if node_type is None:
                raise ConstraintViolationError(
                    f"No default node type for {name} below {parent_path} "
                    f"({parent.node_type})"
                )

        child_definition = get_node_type(node_type)
        if child_definition.abstract:
            raise ConstraintViolationError(
                f"Cannot create {name} with abstract node type {node_type}"
            )
        if definition.child_names is not None and name not in definition.child_names:
            raise ConstraintViolationError(
                f"{parent.node_type} at {parent_path} does not allow a child named {name}"
            )
        if definition.child_types is not None and not any(
            child_definition.is_a(allowed) for allowed in definition.child_types
        ):
            raise ConstraintViolationError(
                f"{parent.node_type} at {parent_path} does not allow children of "
                f"type {node_type}"
            )
        return node_type

    # -------------------------------------------------------------------------
    # Session operations
    # -------------------------------------------------------------------------

    def node_exists(self, path: str) -> bool:
        return self._load(pathhelper.normalize_path(path)) is not None

    def get_node(self, path: str) -> MemoryNode:
        """Return the node at an absolute path.

        Raises:
            PathNotFoundError: If no node exists at ``path``.
        """
        path = pathhelper.normalize_path(path)
        self._require(path)
        return MemoryNode(self, path)

    def get_root_node(self) -> MemoryNode:
        return MemoryNode(self, "/")

    def remove_item(self, path: str) -> None:
        path = pathhelper.normalize_path(path)
        if path == "/":
            raise ConstraintViolationError("Cannot remove the root node")
        for removed in self._walk(path):
            self._changes[removed] = None
        self._edit(pathhelper.get_parent_path(path)).children.remove(
            pathhelper.get_node_name(path)
        )
        log.debug(f"removed {path}")

    def move(self, src: str, dst: str) -> None:
        """Move the subtree at ``src`` to ``dst`` within this session.

        Raises:
            PathNotFoundError: If src or the parent of dst does not exist.
            ItemExistsError: If dst already exists.
            ConstraintViolationError: For the root, a move into its own
                subtree, or a parent type that forbids the node.
        """
        src = pathhelper.normalize_path(src)
        dst = pathhelper.normalize_path(dst)
        if src == "/":
            raise ConstraintViolationError("Cannot move the root node")
        if dst == src or dst.startswith(src + "/"):
            raise ConstraintViolationError(f"Cannot move {src} into itself ({dst})")

        source = self._require(src)
        if self._load(dst) is not None:
            raise ItemExistsError(f"Node {dst} already exists")
        parent_path = pathhelper.get_parent_path(dst)
        name = pathhelper.get_node_name(dst)
        pathhelper.assert_valid_local_name(name)
        self._validate_child(self._require(parent_path), parent_path, name, source.node_type)

        records = {path: self._require(path) for path in self._walk(src)}
        for path in records:
            self._changes[path] = None
        for path, record in records.items():
            self._changes[dst + path[len(src) :]] = record

        self._edit(pathhelper.get_parent_path(src)).children.remove(
            pathhelper.get_node_name(src)
        )
        self._edit(parent_path).children.append(name)
        log.debug(f"moved {src} to {dst}")

    def save(self) -> None:
        """Persist all pending changes."""
        if not self._changes:
            return
        count = len(self._changes)
        self._repository._write(self._workspace.name, self._changes)
        self._changes = {}
        log.debug(f"saved {count} node changes to workspace {self._workspace.name}")

    def refresh(self, keep_changes: bool = False) -> None:
        """Discard pending changes unless ``keep_changes`` is set."""
        if not keep_changes:
            self._changes = {}

    def has_pending_changes(self) -> bool:
        return bool(self._changes)

    def logout(self) -> None:
        self._changes = {}


class MemoryRepository:
    """Content repository storing node records in a mapping.

    Example:
        >>> repository = MemoryRepository()
        >>> session = repository.login(SimpleCredentials("admin"))
        >>> folder = session.get_root_node().add_node("files", "nt:folder")
        >>> session.save()
        >>> session.node_exists("/files")
        True
    """

    PREFIX = "__jcr_"

    def __init__(self, state: MutableMapping[str, bytes] | None = None):
        """Initialize the repository.

        Args:
            state: Backing store for node records. Defaults to an empty dict.
        """
        self._state = state if state is not None else {}

    def login(
        self,
        credentials: SimpleCredentials | None = None,
        workspace: str = "default",
    ) -> MemorySession:
        """Open a session, creating the workspace root on first use.

        Raises:
            ValueError: If the workspace name is empty or contains ":".
        """
        if not workspace or ":" in workspace:
            raise ValueError(f"Invalid workspace name: '{workspace}'")
        if self._read(workspace, "/") is None:
            self._write(workspace, {"/": NodeRecord(REP_ROOT)})
            log.debug(f"created workspace {workspace}")
        user_id = credentials.user_id if credentials is not None else None
        return MemorySession(self, workspace, user_id)

    def get_workspace_names(self) -> list[str]:
        names = set()
        for key in self._state.keys():
            if not key.startswith(self.PREFIX):
                continue
            workspace, path = self._decode_key(key)
            if path == "/":
                names.add(workspace)
        return sorted(names)

    def _encode_key(self, workspace: str, path: str) -> str:
        """Convert a workspace path to a state key (base32, unpadded)."""
        raw = f"{workspace}:{path}".encode()
        return self.PREFIX + base64.b32encode(raw).decode().rstrip("=")

    def _decode_key(self, key: str) -> tuple[str, str]:
        encoded = key[len(self.PREFIX) :]
        encoded += "=" * ((8 - len(encoded) % 8) % 8)
        workspace, _, path = base64.b32decode(encoded).decode().partition(":")
        return workspace, path

    def _read(self, workspace: str, path: str) -> NodeRecord | None:
        raw = self._state.get(self._encode_key(workspace, path))
        if raw is None:
            return None
        return pickle.loads(raw)

    def _write(self, workspace: str, changes: dict[str, NodeRecord | None]) -> None:
        for path, record in changes.items():
            key = self._encode_key(workspace, path)
            if record is None:
                self._state.pop(key, None)
            else:
                self._state[key] = pickle.dumps(record)

        commit = getattr(self._state, "commit", None)
        if callable(commit):
            commit()
