"""
stackhost.core.manifest — Manifest writer.

Turns the application's resources into the publish manifest:

    resources:
      dev:
        type: pulimistack.v0
      api:
        type: project.v0
        env:
          StorageEndpoint: '{dev.outputs.BlobEndpoint}'
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from stackhost.core.context import ExecutionContext
    from stackhost.core.resource import Resource


class Manifest:
    """Converts resources to a manifest document."""

    def __init__(self, resources: list[Resource], context: ExecutionContext):
        self._resources = list(resources)
        self._context = context

    @property
    def resources(self) -> list[Resource]:
        return list(self._resources)

    def to_dict(self) -> dict[str, Any]:
        entries: dict[str, Any] = {}
        for r in self._resources:
            entries[r.name] = r.write_to_manifest(self._context)
        return {"resources": entries}

    def to_yaml(self) -> str:
        return yaml.dump(
            self.to_dict(),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
