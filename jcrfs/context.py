"""Context variables shared by adapters.

Controls whether adapters persist their session after every mutation.
"""

import contextvars
from contextlib import contextmanager
from typing import Iterator

# Internal flag controlling whether adapters defer session saves.
_defer_saves: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "jcrfs_defer_saves", default=False
)


def saves_deferred() -> bool:
    """Return True inside a defer_saves() block."""
    return _defer_saves.get()


@contextmanager
def defer_saves() -> Iterator[None]:
    """Suppress per-mutation ``session.save()`` calls.

    JcrAdapter normally saves the repository session after each write,
    rename, delete, etc. so every call is persisted on its own.

    Inside this context manager those saves are skipped, letting you batch
    many mutations into a single transaction and save once at the end.
    Copies are the exception: a workspace copy only sees persisted nodes,
    so the adapter still saves right before copying.

    Example::

        with defer_saves():
            for name, data in files.items():
                adapter.write(name, data, Config())
        session.save()
    """
    token = _defer_saves.set(True)
    try:
        yield
    finally:
        _defer_saves.reset(token)
