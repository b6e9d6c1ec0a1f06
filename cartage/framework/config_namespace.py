"""Typed access to one slice of the cartage configuration.

Readers mark the keys they touch; `assert_consumed()` then reports anything
nobody read, so typos in `cartage.yml` fail loudly instead of being ignored.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable

from cartage.foundation.errors import ConfigurationError

_REQUIRED = object()


@dataclass
class ConfigNamespace:
    data: Mapping[str, Any]
    path: str = ""
    _read: set[str] = field(default_factory=set, init=False, repr=False)

    def qualified(self, key: str) -> str:
        return f"{self.path}.{key}" if self.path else key

    def consumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._read))

    def unconsumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(key for key in self.data if key not in self._read))

    def assert_consumed(self) -> None:
        unknown = self.unconsumed_keys()
        if unknown:
            raise ConfigurationError(
                f"Unknown config keys under {self.path or '<root>'}: {', '.join(unknown)} "
                f"(consumed: {', '.join(self.consumed_keys()) or '<none>'})"
            )

    def _lookup(self, key: str, default: Any) -> Any:
        key = key.strip() if isinstance(key, str) else ""
        if not key:
            raise TypeError("config key must be a non-empty string")

        self._read.add(key)
        if key in self.data:
            return self.data[key]
        if default is _REQUIRED:
            raise ConfigurationError(f"Missing required config key: {self.qualified(key)}")
        return default

    def get_dict(self, key: str) -> dict[str, Any]:
        """Return the free-form mapping under `key` without tracking its keys."""

        raw = self._lookup(key, None)
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"{self.qualified(key.strip())} must be a mapping (type={type(raw).__name__})")
        return dict(raw)

    def get_bool(self, key: str, *, default: bool | object = _REQUIRED) -> bool:
        raw = self._lookup(key, default)
        # An explicit null behaves like an absent key.
        if raw is None and default is not _REQUIRED:
            raw = default
        if not isinstance(raw, bool):
            raise ConfigurationError(f"{self.qualified(key.strip())} must be a boolean (type={type(raw).__name__})")
        return raw

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _REQUIRED,
        choices: Iterable[str] | None = None,
    ) -> str | None:
        raw = self._lookup(key, default)
        if raw is None:
            return None

        # YAML reads bare timestamps and version numbers as numbers.
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            raw = str(raw)
        if not isinstance(raw, str):
            raise ConfigurationError(f"{self.qualified(key.strip())} must be a string (type={type(raw).__name__})")

        value = raw.strip()
        if not value:
            raise ConfigurationError(f"{self.qualified(key.strip())} cannot be empty")
        if choices is not None and value not in choices:
            raise ConfigurationError(
                f"{self.qualified(key.strip())} must be one of: {', '.join(choices)} (got {value!r})"
            )
        return value
