"""
stackhost.stack.backend — Provisioning backends.

The lifecycle hook talks to a backend through three calls:

    workspace = await backend.create_or_select(project, stack, program)
    await workspace.set_all_config(stack, config)
    result = await workspace.up()          # result.outputs

Backends:
- inline: runs the program in-process, its returned mapping
  becomes the outputs (local development, tests)
- pulumi: Pulumi Automation API, requires `pip install stackhost[pulumi]`
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import structlog

from stackhost.core.values import ConfigValue, OutputValue
from stackhost.stack.errors import StackError
from stackhost.stack.resource import StackProgram

logger = structlog.get_logger()


@dataclass
class UpResult:
    """Result of applying a stack."""
    outputs: dict[str, OutputValue] = field(default_factory=dict)


class StackWorkspace:
    """Handle on one created-or-selected stack."""

    async def set_all_config(self, stack_name: str, config: Mapping[str, ConfigValue]) -> None:
        raise NotImplementedError(f"{self.__class__.__name__}.set_all_config()")

    async def up(self) -> UpResult:
        raise NotImplementedError(f"{self.__class__.__name__}.up()")


class Backend:
    """Creates or selects stacks."""

    name: str = ""

    async def create_or_select(
        self,
        project_name: str,
        stack_name: str,
        program: StackProgram,
    ) -> StackWorkspace:
        raise NotImplementedError(f"{self.__class__.__name__}.create_or_select()")


def to_outputs(result: Mapping[str, Any] | None) -> dict[str, OutputValue]:
    """Wrap plain program results as OutputValues."""
    if result is None:
        return {}
    if not isinstance(result, Mapping):
        raise StackError(
            f"Stack program must return a mapping or None, got {type(result).__name__}"
        )
    return {
        str(k): v if isinstance(v, OutputValue) else OutputValue(v)
        for k, v in result.items()
    }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# INLINE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
class InlineWorkspace(StackWorkspace):
    def __init__(self, project_name: str, stack_name: str, program: StackProgram):
        self.project_name = project_name
        self.stack_name = stack_name
        self.program = program
        self.config: dict[str, ConfigValue] = {}

    async def set_all_config(self, stack_name: str, config: Mapping[str, ConfigValue]) -> None:
        self.config = dict(config)

    async def up(self) -> UpResult:
        return UpResult(outputs=to_outputs(self.program()))


class InlineBackend(Backend):
    """Runs stack programs in-process. Nothing is provisioned."""

    name = "inline"

    def __init__(self) -> None:
        self.workspaces: dict[str, InlineWorkspace] = {}

    async def create_or_select(
        self,
        project_name: str,
        stack_name: str,
        program: StackProgram,
    ) -> InlineWorkspace:
        ws = self.workspaces.get(stack_name)
        if ws is None or ws.program is not program:
            ws = InlineWorkspace(project_name, stack_name, program)
            self.workspaces[stack_name] = ws
        return ws


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PULUMI — lazy loaded, needs the `pulumi` extra
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def _export_outputs(program: StackProgram) -> Callable[[], None]:
    """Wrap a program so a returned mapping becomes stack exports."""

    def pulumi_program() -> None:
        import pulumi

        result = program()
        if isinstance(result, Mapping):
            for key, value in result.items():
                pulumi.export(key, value)

    return pulumi_program


class PulumiWorkspace(StackWorkspace):
    def __init__(self, stack: Any, stack_name: str):
        self._stack = stack
        self.stack_name = stack_name

    def _on_output(self, line: str) -> None:
        logger.info("pulumi_output", stack=self.stack_name, line=line.rstrip())

    async def set_all_config(self, stack_name: str, config: Mapping[str, ConfigValue]) -> None:
        from pulumi import automation as auto

        converted = {
            key: auto.ConfigValue(value=item.value, secret=item.secret)
            for key, item in config.items()
        }
        await asyncio.to_thread(self._stack.workspace.set_all_config, stack_name, converted)

    async def up(self) -> UpResult:
        result = await asyncio.to_thread(self._stack.up, on_output=self._on_output)
        return UpResult(outputs={
            key: OutputValue(out.value, secret=out.secret)
            for key, out in result.outputs.items()
        })


class PulumiBackend(Backend):
    """Pulumi Automation API backend (local workspace, inline programs)."""

    name = "pulumi"

    def __init__(self, work_dir: str | None = None):
        self.work_dir = work_dir

    async def create_or_select(
        self,
        project_name: str,
        stack_name: str,
        program: StackProgram,
    ) -> PulumiWorkspace:
        from pulumi import automation as auto

        opts = auto.LocalWorkspaceOptions(work_dir=self.work_dir) if self.work_dir else None
        stack = await asyncio.to_thread(
            auto.create_or_select_stack,
            stack_name=stack_name,
            project_name=project_name,
            program=_export_outputs(program),
            opts=opts,
        )
        return PulumiWorkspace(stack, stack_name)


_BACKENDS: dict[str, type[Backend]] = {
    InlineBackend.name: InlineBackend,
    PulumiBackend.name: PulumiBackend,
}


def get_backend(name: str, **kwargs: Any) -> Backend:
    """Create a backend by name."""
    cls = _BACKENDS.get(name)
    if cls is None:
        raise StackError(
            f"Unknown backend '{name}'. Available: {sorted(_BACKENDS)}"
        )
    return cls(**kwargs)
