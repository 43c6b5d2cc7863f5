"""
stackhost.config — Hierarchical key/value configuration.

Every source is flattened to colon-separated keys:

    # stackhost.yaml
    Pulumi:
      Stacks:
        dev:
          aws:region: us-east-1     → "Pulumi:Stacks:dev:aws:region"

Source precedence (low to high):
  YAML files (in order) → STACKHOST_* env vars → --set key=value

Environment variables use `__` as the section separator:

    STACKHOST_Pulumi__Stacks__dev__region=eu-west-1

Key lookup is case-insensitive; the original spelling of a key
is kept for enumeration.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterator, Mapping

import yaml

SEPARATOR = ":"
ENV_PREFIX = "STACKHOST_"


class ConfigurationError(Exception):
    """Configuration source error."""
    pass


class Configuration:
    """Flattened, case-insensitive configuration store. Later writes win."""

    def __init__(self, data: Mapping[str, Any] | None = None):
        # lower-cased key → (original key, value)
        self._entries: dict[str, tuple[str, str | None]] = {}
        if data:
            self.add_mapping(data)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key.lower() in self._entries

    def get(self, key: str, default: str | None = None) -> str | None:
        entry = self._entries.get(key.lower())
        if entry is None or entry[1] is None:
            return default
        return entry[1]

    def set(self, key: str, value: Any) -> None:
        self._entries[key.lower()] = (key, _to_str(value))

    def keys(self) -> list[str]:
        return [original for original, _ in self._entries.values()]

    def add_mapping(self, data: Mapping[str, Any], prefix: str = "") -> None:
        """Flatten a nested mapping into the store."""
        for key, value in _flatten(data, prefix):
            self.set(key, value)

    def add_environment(
        self,
        environ: Mapping[str, str] | None = None,
        prefix: str = ENV_PREFIX,
    ) -> None:
        """Add PREFIX_A__B=value variables as A:B=value."""
        environ = os.environ if environ is None else environ
        for name, value in environ.items():
            if not name.upper().startswith(prefix.upper()):
                continue
            key = name[len(prefix):].replace("__", SEPARATOR)
            if key:
                self.set(key, value)

    def add_set_args(self, set_args: list[str] | tuple[str, ...]) -> None:
        """Add --set key=value arguments."""
        for arg in set_args:
            if "=" not in arg:
                raise ConfigurationError(
                    f"Invalid --set format: '{arg}' (expected key=value)"
                )
            key, value = arg.split("=", 1)
            key = key.strip()
            if not key:
                raise ConfigurationError(f"Invalid --set format: '{arg}' (empty key)")
            self.set(key, value)

    def get_section(self, path: str) -> ConfigSection:
        return ConfigSection(self, path)

    def _iter_entries(self) -> Iterator[tuple[str, str | None]]:
        yield from self._entries.values()


class ConfigSection:
    """A view on every key below `path`."""

    def __init__(self, configuration: Configuration, path: str):
        self._configuration = configuration
        self.path = path

    @property
    def value(self) -> str | None:
        return self._configuration.get(self.path)

    def exists(self) -> bool:
        """True if the section has a value or any children."""
        return self.value is not None or any(True for _ in self.items(include_null=True))

    def items(self, include_null: bool = False) -> Iterator[tuple[str, str | None]]:
        """Yield (full_key, value) for every leaf below the section."""
        prefix = self.path.lower() + SEPARATOR
        for key, value in self._configuration._iter_entries():
            if not key.lower().startswith(prefix):
                continue
            if value is None and not include_null:
                continue
            yield key, value

    def relative_items(self) -> Iterator[tuple[str, str]]:
        """Yield (key without section prefix, value), skipping nulls."""
        offset = len(self.path) + 1
        for key, value in self.items():
            yield key[offset:], value  # type: ignore[misc]


def _flatten(data: Any, prefix: str) -> Iterator[tuple[str, Any]]:
    if isinstance(data, Mapping):
        for key, value in data.items():
            child = f"{prefix}{SEPARATOR}{key}" if prefix else str(key)
            yield from _flatten(value, child)
    elif isinstance(data, list):
        for i, value in enumerate(data):
            child = f"{prefix}{SEPARATOR}{i}" if prefix else str(i)
            yield from _flatten(value, child)
    elif prefix:
        yield prefix, data


def _to_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def load_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML configuration file."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Configuration file not found: {p}")
    with open(p) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected YAML mapping in {p}")
    return data


def load_configuration(
    files: list[str | Path] | tuple[str | Path, ...] = (),
    set_args: list[str] | tuple[str, ...] = (),
    environ: Mapping[str, str] | None = None,
    prefix: str = ENV_PREFIX,
) -> Configuration:
    """Build a Configuration from every source.

    Args:
        files: YAML files, in precedence order
        set_args: key=value overrides (highest precedence)
        environ: environment (None = os.environ)
        prefix: environment variable prefix

    Returns:
        Merged Configuration
    """
    config = Configuration()
    for fp in files:
        config.add_mapping(load_yaml_file(fp))
    config.add_environment(environ, prefix)
    if set_args:
        config.add_set_args(set_args)
    return config
