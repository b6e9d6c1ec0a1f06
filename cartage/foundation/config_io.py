from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

import yaml

from cartage.foundation.errors import ConfigurationError

DEFAULT_CONFIG_FILES: tuple[str, ...] = (
    os.path.join("config", "cartage.yml"),
    "cartage.yml",
    ".cartage.yml",
)


def _load_yaml_mapping(path: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        text = handle.read()

    try:
        payload = yaml.safe_load(os.path.expandvars(text))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def find_config_file(start_dir: str | os.PathLike[str] | None = None) -> str | None:
    base = os.path.abspath(os.fspath(start_dir or os.getcwd()))
    for relative in DEFAULT_CONFIG_FILES:
        candidate = os.path.join(base, relative)
        if os.path.isfile(candidate):
            return candidate
    return None


def load_config(
    config_path: str | os.PathLike[str] | None = None,
    *,
    start_dir: str | os.PathLike[str] | None = None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the cartage configuration mapping.

    An explicit `config_path` must exist. Without one, the project config is
    searched for (config/cartage.yml, cartage.yml, .cartage.yml) and an empty
    mapping is returned when none is present. `${VAR}` references are expanded
    from the environment before parsing.
    """

    if config_path is not None:
        explicit = os.path.abspath(os.path.expanduser(os.fspath(config_path)))
        if not os.path.isfile(explicit):
            raise ConfigurationError(f"Configuration file {config_path} does not exist.")
        return _load_yaml_mapping(explicit), {"mode": "explicit", "paths": [explicit]}

    found = find_config_file(start_dir)
    if found is None:
        return {}, {"mode": "default", "paths": []}
    return _load_yaml_mapping(found), {"mode": "project", "paths": [found]}


def dump_config(cfg: Mapping[str, Any]) -> str:
    return yaml.safe_dump(dict(cfg), default_flow_style=False, sort_keys=True)
