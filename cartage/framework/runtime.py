from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cartage.foundation import process
from cartage.foundation.errors import ConfigurationError
from cartage.foundation.logging_utils import LOGGER_NAME
from cartage.framework.config import COMPRESSIONS, CartageConfig
from cartage.framework.plugin import Plugin, Plugins, get_plugin_class, load_plugins, registered_plugins

_FETCH_URL_RE = re.compile(r"\n\s+Fetch URL: (?P<fetch>[^\n]+)")

_TAR_COMPRESSION = {
    "bzip2": ("j", ".bz2"),
    "gzip": ("z", ".gz"),
    "none": ("", ""),
}


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


class Cartage:
    """
    The run context for one packaging job.

    Owns the configuration, the computed package attributes (name, paths,
    timestamp, compression), and the plug-in instances. Plug-ins are reachable
    by name as attributes (`cartage.manifest`), created on first access.
    """

    def __init__(self, config: CartageConfig | None, *, logger: logging.Logger | None = None):
        if config is None:
            raise ConfigurationError("No configuration")

        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.config = config
        self.plugins = Plugins()

        self.quiet = False
        self.verbose = False
        self.disable_dependency_cache = False

        self._instances: dict[type[Plugin], Plugin] = {}
        self._name: str | None = None
        self._root_path: Path | None = None
        self._target: Path | None = None
        self._timestamp: str | None = None
        self._compression = "bzip2"
        self._dependency_cache_path: Path | None = None
        self._release_hashref: str | None = None
        self._repo_url: str | None = None
        self._release_metadata: dict[str, Any] | None = None

        self.resolve_config()

    def __getattr__(self, name: str) -> Plugin:
        if name.startswith("_") or name not in registered_plugins():
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")
        return self.plugin(name)

    def plugin(self, name: str) -> Plugin:
        cls = get_plugin_class(name)
        instance = self._instances.get(cls)
        if instance is None:
            instance = cls(self)
            self._instances[cls] = instance
        return instance

    def resolve_config(self) -> None:
        load_plugins()

        config = self.config
        self.disable_dependency_cache = config.disable_dependency_cache
        self.quiet = config.quiet
        self.verbose = config.verbose

        for attr in (
            "name",
            "target",
            "root_path",
            "timestamp",
            "compression",
            "dependency_cache_path",
            "release_hashref",
        ):
            value = getattr(config, attr)
            if value:
                setattr(self, attr, value)

        for name in registered_plugins():
            plugin = self.plugin(name)
            plugin.resolve_config(config.section(for_plugin=name))
            self.plugins.add(plugin)

        self.plugins.freeze()

    # External commands.

    def run(self, command: process.Command) -> str:
        return process.run_command(command, logger=self.logger)

    def capture(self, command: process.Command, *, cwd: str | os.PathLike[str] | None = None) -> str:
        return process.capture(command, cwd=cwd)

    def committed_content(self, filename: str) -> bytes:
        return process.capture_bytes(
            ["git", "show", f"{self.release_hashref}:{filename}"], cwd=self.root_path
        )

    def display(self, message: str) -> None:
        self.logger.info("%s", message)

    # Package attributes.

    @property
    def name(self) -> str:
        if self._name is None:
            self._name = os.path.basename(self.repo_url)
            if self._name.endswith(".git"):
                self._name = self._name[: -len(".git")]
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = str(value)
        self._release_metadata = None

    @property
    def root_path(self) -> Path:
        if self._root_path is None:
            top = self.capture(["git", "rev-parse", "--show-toplevel"]).strip()
            self._root_path = Path(top).resolve()
        return self._root_path

    @root_path.setter
    def root_path(self, value: str | os.PathLike[str]) -> None:
        self._root_path = Path(value).expanduser().resolve()
        self._release_metadata = None

    @property
    def target(self) -> Path:
        return self._target if self._target is not None else self.tmp_path

    @target.setter
    def target(self, value: str | os.PathLike[str]) -> None:
        self._target = Path(value).expanduser().resolve()

    @property
    def timestamp(self) -> str:
        if self._timestamp is None:
            self._timestamp = utc_timestamp()
        return self._timestamp

    @timestamp.setter
    def timestamp(self, value: str) -> None:
        self._timestamp = str(value)
        self._release_metadata = None

    @property
    def compression(self) -> str:
        return self._compression

    @compression.setter
    def compression(self, value: str) -> None:
        normalized = str(value).strip().lower()
        if normalized not in COMPRESSIONS:
            raise ConfigurationError(f"Invalid compression type {value!r}")
        self._compression = normalized

    @property
    def tar_compression_flag(self) -> str:
        return _TAR_COMPRESSION[self.compression][0]

    @property
    def tar_compression_extension(self) -> str:
        return _TAR_COMPRESSION[self.compression][1]

    @property
    def dependency_cache_path(self) -> Path:
        if self._dependency_cache_path is None:
            return self.tmp_path
        return self._dependency_cache_path

    @dependency_cache_path.setter
    def dependency_cache_path(self, value: str | os.PathLike[str] | None) -> None:
        self._dependency_cache_path = None if value is None else Path(value).expanduser().resolve()

    @property
    def dependency_cache(self) -> Path:
        """The vendored dependency tarball, e.g. `tmp/dependency-cache.tar.bz2`."""

        return self.dependency_cache_path / f"dependency-cache.tar{self.tar_compression_extension}"

    @property
    def tmp_path(self) -> Path:
        return self.root_path / "tmp"

    @property
    def work_path(self) -> Path:
        return self.tmp_path / self.name

    @property
    def final_name(self) -> Path:
        return self.target / f"{self.name}-{self.timestamp}"

    @property
    def final_release_metadata_json(self) -> Path:
        return Path(f"{self.final_name}-release-metadata.json")

    # Repository facts.

    @property
    def release_hashref(self) -> str:
        if self._release_hashref is None:
            self._release_hashref = self.capture(["git", "rev-parse", "HEAD"], cwd=self.root_path).strip()
        return self._release_hashref

    @release_hashref.setter
    def release_hashref(self, value: str) -> None:
        self._release_hashref = str(value)
        self._release_metadata = None

    @property
    def repo_url(self) -> str:
        if self._repo_url is None:
            output = self.capture(["git", "remote", "show", "-n", "origin"], cwd=self._root_path)
            match = _FETCH_URL_RE.search(output)
            if match is None:
                raise ConfigurationError("Cannot determine the repository URL for remote 'origin'")
            self._repo_url = match.group("fetch").strip()
        return self._repo_url

    @property
    def release_metadata(self) -> dict[str, Any]:
        if self._release_metadata is None:
            self._release_metadata = {
                "package": {
                    "name": self.name,
                    "repo": {"type": "git", "url": self.repo_url},
                    "hashref": self.release_hashref,
                    "timestamp": self.timestamp,
                }
            }
        return self._release_metadata
