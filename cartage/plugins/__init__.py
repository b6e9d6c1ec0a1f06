"""Built-in cartage plug-ins.

Modules under this package register `Plugin` subclasses with
`cartage.framework.plugin.register_plugin` when imported. Third-party
packages contribute plug-ins through the `cartage.plugins` entry point group.
"""

from __future__ import annotations

import importlib
import pkgutil


def discover() -> None:
    """Import all plug-in modules under this package."""

    for module in pkgutil.iter_modules(__path__, prefix=__name__ + "."):
        importlib.import_module(module.name)
