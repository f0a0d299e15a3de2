"""Configuration for filesystem access.

Provides the per-call Config option bag, the AdapterConfig dataclass and
the connect_fs factory function for configuring a repository-backed
filesystem.
"""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from typing import Any

from .logger import log


class Config:
    """Options for a single write (mimetype, encoding, visibility, ...).

    Lookups fall through to an optional fallback config, which is how a
    Filesystem applies its defaults to every call.
    """

    def __init__(self, settings: dict[str, Any] | None = None):
        self._settings: dict[str, Any] = dict(settings or {})
        self._fallback: Config | None = None

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if self._fallback is not None:
            return self._fallback.get(key, default)
        return default

    def has(self, key: str) -> bool:
        if key in self._settings:
            return True
        return self._fallback is not None and self._fallback.has(key)

    def set(self, key: str, value: Any) -> Config:
        self._settings[key] = value
        return self

    def set_fallback(self, fallback: Config | None) -> Config:
        self._fallback = fallback
        return self

    def copy(self) -> Config:
        """Return a copy of the settings without the fallback."""
        return Config(self._settings)

    def __repr__(self) -> str:
        return f"Config({self._settings!r})"


@dataclass
class AdapterConfig:
    """Configuration for a repository-backed filesystem.

    Attributes:
        root: Absolute repository path of the folder holding all files.
        workspace: Repository workspace to log into.
        user_id: User id passed to the repository on login.
        defaults: Default write options (mimetype, encoding, ...) applied
            to every call unless overridden.
    """

    root: str = "/flysystem"
    workspace: str = "default"
    user_id: str = "admin"
    defaults: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def load(filename: str) -> AdapterConfig:
        """Load overridden configuration variables from an INI file.

        ``[repository]`` may set root, workspace and user_id; every key in
        ``[write]`` becomes a default write option.
        """
        parser = ConfigParser()

        config = AdapterConfig()

        try:
            with open(filename, "r") as f:
                parser.read_string(f.read(), filename)

            if "repository" in parser:
                section = parser["repository"]
                config.root = section.get("root", fallback=config.root)
                config.workspace = section.get("workspace", fallback=config.workspace)
                config.user_id = section.get("user_id", fallback=config.user_id)

            if "write" in parser:
                config.defaults = dict(parser["write"])
        except FileNotFoundError:
            log.info(f"no config file at {filename}")
        except Exception as e:
            # Fall back to defaults on an unreadable config file
            log.error(f"failed to read config file {filename}: {e}")
        else:
            log.info(f"loaded config: {config}")

        return config

    def write_config(self) -> Config:
        """Return the default write options as a Config."""
        return Config(self.defaults)


def connect_fs(**kwargs: Any) -> AdapterConfig:
    """Configure repository-backed filesystem access.

    Args:
        **kwargs: AdapterConfig fields.
            - root (str): Absolute repository path of the filesystem root.
            - workspace (str): Workspace name (default: "default").
            - user_id (str): Login user id (default: "admin").
            - defaults (dict): Default write options.

    Returns:
        AdapterConfig for Filesystem.from_config().

    Examples:
        >>> connect_fs(root="/assets")
        AdapterConfig(root='/assets', workspace='default', user_id='admin', defaults={})
    """
    root = kwargs.pop("root", "/flysystem")
    workspace = kwargs.pop("workspace", "default")
    user_id = kwargs.pop("user_id", "admin")
    defaults = kwargs.pop("defaults", None) or {}

    if kwargs:
        raise ValueError(f"Unexpected arguments for connect_fs: {list(kwargs.keys())}")

    if not root.startswith("/"):
        raise ValueError(f"Root must be an absolute repository path: {root}")

    return AdapterConfig(
        root=root, workspace=workspace, user_id=user_id, defaults=dict(defaults)
    )
