"""jcrfs: Filesystem storage on a JCR-style content repository."""

from .adapter import JcrAdapter
from .base import AbstractAdapter, Adapter, Metadata
from .config import AdapterConfig, Config, connect_fs
from .context import defer_saves
from .errors import (
    ConstraintViolationError,
    InvalidPathError,
    ItemExistsError,
    NoSuchNodeTypeError,
    PathNotFoundError,
    RepositoryError,
    RootViolationError,
    ValueFormatError,
)
from .filesystem import Filesystem
from .memory import MemoryRepository, MemorySession
from .nodefile import NodeFile
from .repository import PropertyType, Session, SimpleCredentials

__all__ = [
    "AbstractAdapter",
    "Adapter",
    "AdapterConfig",
    "Config",
    "connect_fs",
    "ConstraintViolationError",
    "defer_saves",
    "Filesystem",
    "InvalidPathError",
    "ItemExistsError",
    "JcrAdapter",
    "MemoryRepository",
    "MemorySession",
    "Metadata",
    "NodeFile",
    "NoSuchNodeTypeError",
    "PathNotFoundError",
    "PropertyType",
    "RepositoryError",
    "RootViolationError",
    "Session",
    "SimpleCredentials",
    "ValueFormatError",
]
