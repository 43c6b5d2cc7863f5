"""
stackhost.core.resources — Dependent resources and environment binding.

Environment values are never computed at declaration time. Each
`with_environment()` call stores a callback; the callbacks run when
the environment is materialized, after lifecycle hooks have run:

    ProjectResource("api", command=["uvicorn", "api:app"]) \\
        .with_environment("LOG_LEVEL", "info") \\
        .with_environment("StorageEndpoint", dev.get_output("BlobEndpoint"))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Union

from stackhost.core.context import ExecutionContext
from stackhost.core.resource import Resource
from stackhost.stack.refs import OutputReference, format_value


@dataclass
class EnvironmentContext:
    """Handed to environment callbacks while an environment is built."""
    execution_context: ExecutionContext
    variables: dict[str, str] = field(default_factory=dict)


EnvironmentCallback = Callable[[EnvironmentContext], None]
EnvironmentValue = Union[str, OutputReference, EnvironmentCallback]


def bind_output(
    variables: dict[str, str],
    name: str,
    ref: OutputReference,
    context: ExecutionContext,
) -> None:
    """Bind `name` to a stack output.

    publish → placeholder expression, run → resolved value.
    """
    if context.is_publish:
        variables[name] = ref.value_expression
    else:
        variables[name] = format_value(ref.value)


class ProjectResource(Resource):
    """A process that depends on other resources through its environment."""

    _type = "project.v0"

    def __init__(self, name: str, command: list[str] | None = None):
        super().__init__(name)
        self.command = list(command) if command else None
        self._env_callbacks: list[EnvironmentCallback] = []

    def with_environment(self, name: str, value: EnvironmentValue) -> ProjectResource:
        """Add an environment variable. Returns self for chaining."""
        if isinstance(value, OutputReference):
            ref = value
            self._env_callbacks.append(
                lambda ctx: bind_output(ctx.variables, name, ref, ctx.execution_context)
            )
        elif isinstance(value, str):
            text = value
            self._env_callbacks.append(lambda ctx: ctx.variables.__setitem__(name, text))
        elif callable(value):
            self._env_callbacks.append(value)
        else:
            raise TypeError(
                f"Unsupported environment value for '{name}': {type(value).__name__}"
            )
        return self

    def environment(self, context: ExecutionContext) -> dict[str, str]:
        """Run every environment callback and return the variables."""
        env_ctx = EnvironmentContext(execution_context=context)
        for callback in self._env_callbacks:
            callback(env_ctx)
        return env_ctx.variables

    def write_to_manifest(self, context: ExecutionContext) -> dict[str, Any]:
        entry: dict[str, Any] = {"type": self._type}
        if self.command:
            entry["command"] = list(self.command)
        env = self.environment(context)
        if env:
            entry["env"] = env
        return entry
