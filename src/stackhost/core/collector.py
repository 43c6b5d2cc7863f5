"""
stackhost.core.collector — Thread-local application collector.

`with application(...)` pushes an Application here; every
Resource created inside the block finds it via _current()
and registers itself, in declaration order.
"""

from __future__ import annotations

import threading
from typing import Any

_local = threading.local()


def _current_stack() -> list[Any]:
    """Return the active application stack."""
    if not hasattr(_local, "stack"):
        _local.stack = []
    return _local.stack


def _current() -> Any | None:
    """Return the innermost active application, if any."""
    stack = _current_stack()
    return stack[-1] if stack else None


def _push(app: Any) -> None:
    _current_stack().append(app)


def _pop() -> Any:
    return _current_stack().pop()


def _reset() -> None:
    """Drop all active applications. For testing."""
    _local.stack = []
