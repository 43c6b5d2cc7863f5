"""
stackhost.core.context — Execution mode.

The run/publish decision is made once by whoever starts the
application and handed to every hook and environment callback.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ExecutionMode(str, Enum):
    RUN = "run"
    PUBLISH = "publish"


@dataclass(frozen=True)
class ExecutionContext:
    """Mode + application identity for a single start or publish pass."""
    mode: ExecutionMode = ExecutionMode.RUN
    application_name: str = ""

    @property
    def is_publish(self) -> bool:
        return self.mode is ExecutionMode.PUBLISH

    @classmethod
    def run(cls, application_name: str = "") -> ExecutionContext:
        return cls(ExecutionMode.RUN, application_name)

    @classmethod
    def publish(cls, application_name: str = "") -> ExecutionContext:
        return cls(ExecutionMode.PUBLISH, application_name)
