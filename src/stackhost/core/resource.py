"""
stackhost.core.resource — Base Resource class.

Common behaviors for all application resources:
- Unique name within the application
- Auto-registration with the active `application()` block
- Manifest entry
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stackhost.core.collector import _current

if TYPE_CHECKING:
    from stackhost.core.context import ExecutionContext


class Resource:
    """Base class for all resources in an application model.

    If an `application()` block is active, the resource registers
    itself with it on construction. Otherwise it stays detached
    until passed to `Application.add()`.
    """

    _type: str = ""

    def __init__(self, name: str):
        if not name:
            raise ValueError("Resource name is required")
        self.name = name

        app = _current()
        if app is not None:
            app.add(self)

    def write_to_manifest(self, context: ExecutionContext) -> dict[str, Any]:
        """Produce this resource's manifest entry."""
        return {"type": self._type}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"
