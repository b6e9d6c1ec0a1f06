from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Literal, Mapping

from cartage.foundation.config_io import load_config
from cartage.foundation.errors import ConfigurationError
from cartage.framework.config_namespace import ConfigNamespace

Compression = Literal["bzip2", "gzip", "none"]
COMPRESSIONS: tuple[str, ...] = ("bzip2", "gzip", "none")


@dataclass(frozen=True)
class CartageConfig:
    """
    The cartage configuration.

    Cartage-wide fields map onto `Cartage` attributes; `None` means "use the
    computed default". `plugins` and `commands` hold free-form dictionaries
    keyed by plug-in name (`build_tarball`) and primary command name (`pack`).
    """

    name: str | None = None
    target: str | None = None
    root_path: str | None = None
    timestamp: str | None = None
    compression: Compression | None = None
    quiet: bool = False
    verbose: bool = False
    disable_dependency_cache: bool = False
    dependency_cache_path: str | None = None
    release_hashref: str | None = None
    plugins: Mapping[str, Any] = field(default_factory=dict)
    commands: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, cfg: Mapping[str, Any] | None) -> "CartageConfig":
        if cfg is None:
            raise ConfigurationError("No configuration")
        if not isinstance(cfg, Mapping):
            raise ConfigurationError(f"Configuration must be a mapping (type={type(cfg).__name__})")

        root = ConfigNamespace(dict(cfg), path="")
        parsed = cls(
            name=root.get_str("name", default=None),
            target=root.get_str("target", default=None),
            root_path=root.get_str("root_path", default=None),
            timestamp=root.get_str("timestamp", default=None),
            compression=root.get_str("compression", default=None, choices=COMPRESSIONS),  # type: ignore[arg-type]
            quiet=root.get_bool("quiet", default=False),
            verbose=root.get_bool("verbose", default=False),
            disable_dependency_cache=root.get_bool("disable_dependency_cache", default=False),
            dependency_cache_path=root.get_str("dependency_cache_path", default=None),
            release_hashref=root.get_str("release_hashref", default=None),
            plugins=root.get_dict("plugins"),
            commands=root.get_dict("commands"),
        )
        root.assert_consumed()
        return parsed

    @classmethod
    def load(
        cls,
        config_path: str | os.PathLike[str] | None = None,
        *,
        start_dir: str | os.PathLike[str] | None = None,
    ) -> "CartageConfig":
        cfg, _meta = load_config(config_path, start_dir=start_dir)
        return cls.from_dict(cfg)

    def with_overrides(self, **overrides: Any) -> "CartageConfig":
        """Return a copy with every non-None override applied."""

        applied = {key: value for key, value in overrides.items() if value is not None}
        if "compression" in applied and applied["compression"] not in COMPRESSIONS:
            raise ConfigurationError(f"Invalid compression type {applied['compression']!r}")
        return replace(self, **applied)

    def section(self, *, for_plugin: str | None = None, for_command: str | None = None) -> ConfigNamespace:
        if for_plugin and for_command:
            raise ConfigurationError("Cannot get config for plug-in and command together")
        if for_plugin:
            return ConfigNamespace(_mapping_or_empty(self.plugins.get(for_plugin)), path=f"plugins.{for_plugin}")
        if for_command:
            return ConfigNamespace(
                _mapping_or_empty(self.commands.get(for_command)), path=f"commands.{for_command}"
            )
        raise ConfigurationError("A plug-in or command name is required")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "target": self.target,
            "root_path": self.root_path,
            "timestamp": self.timestamp,
            "compression": self.compression,
            "quiet": self.quiet,
            "verbose": self.verbose,
            "disable_dependency_cache": self.disable_dependency_cache,
            "dependency_cache_path": self.dependency_cache_path,
            "release_hashref": self.release_hashref,
            "plugins": dict(self.plugins),
            "commands": dict(self.commands),
        }
        return {key: value for key, value in out.items() if value is not None}


def _mapping_or_empty(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Plug-in and command config must be mappings (got {type(value).__name__})")
    return dict(value)
