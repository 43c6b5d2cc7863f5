"""
stackhost.core.values — Config and output value types.

ConfigValue is what a stack is configured with,
OutputValue is what a provisioned stack hands back.
Both carry a secret flag; secret values never show up
in repr() or str(), only through `.value`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

SECRET_MASK = "[secret]"


@dataclass(frozen=True)
class ConfigValue:
    """A single stack configuration value."""
    value: str = field(repr=False)
    secret: bool = False

    def __repr__(self) -> str:
        shown = SECRET_MASK if self.secret else repr(self.value)
        return f"ConfigValue({shown}, secret={self.secret})"

    def __str__(self) -> str:
        return SECRET_MASK if self.secret else self.value


@dataclass(frozen=True)
class OutputValue:
    """A single stack output. `value` may be any JSON-like value."""
    value: Any = field(repr=False)
    secret: bool = False

    def __repr__(self) -> str:
        shown = SECRET_MASK if self.secret else repr(self.value)
        return f"OutputValue({shown}, secret={self.secret})"

    def __str__(self) -> str:
        return SECRET_MASK if self.secret else str(self.value)


def redact(values: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy that is safe to log or print.

    >>> redact({"a": ConfigValue("1"), "b": ConfigValue("x", secret=True)})
    {'a': '1', 'b': '[secret]'}
    """
    result: dict[str, Any] = {}
    for key, item in values.items():
        if isinstance(item, (ConfigValue, OutputValue)):
            result[key] = SECRET_MASK if item.secret else item.value
        else:
            result[key] = item
    return result
