"""Exceptions raised by content-repository sessions.

Filesystem-level failures use the built-in OSError family
(FileNotFoundError, NotADirectoryError, ...) instead.
"""


class RepositoryError(Exception):
    """Base class for content-repository failures."""


class PathNotFoundError(RepositoryError):
    """No item exists at the requested path."""


class ItemExistsError(RepositoryError):
    """An item already exists at the target path."""


class ConstraintViolationError(RepositoryError):
    """The operation would violate a node type or hierarchy constraint."""


class NoSuchNodeTypeError(RepositoryError):
    """The requested node type is not registered."""


class ValueFormatError(RepositoryError):
    """A property value cannot be converted to the requested type."""


class InvalidPathError(RepositoryError):
    """A repository path or local node name is malformed."""


class RootViolationError(ValueError):
    """An operation tried to remove or replace the filesystem root."""
