"""Plug-in protocol: registration, per-run configuration, and feature dispatch.

Plug-in classes register themselves with `@register_plugin` when their module
is imported. `load_plugins()` imports the built-in plug-in package and any
`cartage.plugins` entry points of installed distributions. A `Cartage` run
creates one instance per registered class, resolves its configuration, and
collects the instances in a `Plugins` registry.

Pipeline phases ("features") are plain method names. A plug-in offers a
feature when it is enabled and `offer_feature(name)` is true: the feature is in
the class-level `features` set, or, when `features` is None, the plug-in
defines a callable attribute of that name:

    @register_plugin
    class Bundler(Plugin):
        features = frozenset({"vendor_dependencies"})

        def vendor_dependencies(self) -> None: ...

        @property
        def path(self) -> str:
            return "vendor/bundle"

The orchestrator then calls `plugins.request("vendor_dependencies")` and
`plugins.request_map("vendor_dependencies", "path")` without knowing the type.
"""

from __future__ import annotations

import importlib
import logging
import re
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, Any, ClassVar, Iterator

from cartage.framework.config_namespace import ConfigNamespace

if TYPE_CHECKING:
    from cartage.framework.runtime import Cartage

BUILTIN_PLUGIN_PACKAGE = "cartage.plugins"
ENTRY_POINT_GROUP = "cartage.plugins"

logger = logging.getLogger(__name__)


def plugin_name_for(class_name: str) -> str:
    """`BuildTarball` -> `build_tarball`."""

    return re.sub(r"([A-Z])", r"_\1", class_name).lower().lstrip("_")


class Plugin:
    """Base class for cartage plug-ins; must be subclassed."""

    name: ClassVar[str] = ""
    VERSION: ClassVar[str | None] = None
    # Phases this plug-in takes part in. None offers every method it defines.
    features: ClassVar[frozenset[str] | None] = None

    def __init__(self, cartage: "Cartage"):
        if type(self) is Plugin:
            raise NotImplementedError("not a subclass")
        self._cartage = cartage
        self._disabled = False
        self._resolved = False

    @classmethod
    def plugin_name(cls) -> str:
        explicit = cls.__dict__.get("name")
        if isinstance(explicit, str) and explicit.strip():
            return explicit.strip().lower()
        return plugin_name_for(cls.__name__)

    @classmethod
    def version(cls) -> str:
        if cls.VERSION:
            return cls.VERSION
        from cartage import __version__

        return __version__

    @property
    def cartage(self) -> "Cartage":
        return self._cartage

    @property
    def disabled(self) -> bool:
        return self._disabled

    @property
    def enabled(self) -> bool:
        return not self._disabled

    @property
    def resolved(self) -> bool:
        return self._resolved

    def offer(self, feature: str) -> bool:
        return self.enabled and self.offer_feature(feature)

    def offer_feature(self, feature: str) -> bool:
        """Extension point: override to advertise features differently."""

        if self.features is not None:
            return feature in self.features
        return callable(getattr(self, feature, None))

    def resolve_config(self, config: ConfigNamespace) -> None:
        """Apply this plug-in's slice of the configuration. Do not override."""

        self._disabled = config.get_bool("disabled", default=False)
        self.resolve_plugin_config(config)
        self._resolved = True

    def resolve_plugin_config(self, config: ConfigNamespace) -> None:
        """Extension point for plug-in specific settings."""

    def __repr__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return f"<{type(self).__name__} {self.plugin_name()} {state}>"


_PLUGIN_REGISTRY: dict[str, type[Plugin]] = {}
_LOADED = False


def register_plugin(cls: type[Plugin]) -> type[Plugin]:
    if not isinstance(cls, type) or not issubclass(cls, Plugin) or cls is Plugin:
        raise TypeError("register_plugin expects a Plugin subclass")

    key = cls.plugin_name()
    existing = _PLUGIN_REGISTRY.get(key)
    if existing is not None and existing is not cls:
        raise ValueError(f"Duplicate plug-in name: {key}")

    _PLUGIN_REGISTRY[key] = cls
    return cls


def registered_plugins() -> dict[str, type[Plugin]]:
    """Registered plug-in classes by name, in registration order."""

    return dict(_PLUGIN_REGISTRY)


def get_plugin_class(name: str) -> type[Plugin]:
    key = (name or "").strip().lower()
    cls = _PLUGIN_REGISTRY.get(key)
    if cls is None:
        available = ", ".join(_PLUGIN_REGISTRY) or "<none>"
        raise KeyError(f"Unknown plug-in: {name} (available: {available})")
    return cls


def load_plugins() -> None:
    """Import built-in plug-ins and installed `cartage.plugins` entry points once."""

    global _LOADED
    if _LOADED:
        return

    importlib.import_module(BUILTIN_PLUGIN_PACKAGE).discover()

    for entry_point in entry_points(group=ENTRY_POINT_GROUP):
        try:
            entry_point.load()
        except Exception as exc:  # noqa: BLE001
            logger.warning("error loading %s: %s. Skipping...", entry_point.value, exc)

    _LOADED = True


class Plugins:
    """The plug-in instances owned by one `Cartage` run, in registration order."""

    def __init__(self) -> None:
        self._plugins: list[Plugin] = []
        self._frozen = False

    def __iter__(self) -> Iterator[Plugin]:
        return iter(self._plugins)

    def __len__(self) -> int:
        return len(self._plugins)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def add(self, *plugins: Plugin) -> None:
        if self._frozen:
            raise RuntimeError("Cannot add plug-ins after the plug-in registry is frozen")
        self._plugins.extend(plugins)

    def enabled(self) -> list[Plugin]:
        return [plugin for plugin in self._plugins if plugin.enabled]

    def request(self, feature: str, method: str | None = None) -> None:
        """Call `method` (default: `feature`) on each plug-in offering `feature`."""

        for plugin in self._offering(feature):
            getattr(plugin, method or feature)()

    def request_map(self, feature: str, method: str | None = None) -> list[Any]:
        """Collect `method` (called, or read if not callable) from plug-ins offering `feature`."""

        results: list[Any] = []
        for plugin in self._offering(feature):
            value = getattr(plugin, method or feature)
            results.append(value() if callable(value) else value)
        return results

    def _offering(self, feature: str) -> list[Plugin]:
        offering: list[Plugin] = []
        for plugin in self._plugins:
            if not plugin.resolved:
                raise RuntimeError(
                    f"Plug-in {plugin.plugin_name()} was dispatched before its configuration was resolved"
                )
            if plugin.offer(feature):
                offering.append(plugin)
        return offering
