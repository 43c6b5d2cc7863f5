"""
stackhost.stack.resource — Infrastructure stack resource.

A StackResource is one named stack in the application model:
its program, its configure callback and, once the lifecycle
hook has provisioned it, its outputs.

    dev = add_stack(app, "dev", program)
    endpoint = dev.get_output("BlobEndpoint")   # deferred
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from stackhost.core.resource import Resource
from stackhost.core.values import OutputValue
from stackhost.stack.config import ConfigureCallback, resolve_configure, stack_section
from stackhost.stack.errors import OutputsAlreadySetError
from stackhost.stack.refs import OutputReference, STACK_NAME_PATTERN

if TYPE_CHECKING:
    from stackhost.core.context import ExecutionContext
    from stackhost.core.model import Application

# Called by the backend; may return a mapping of outputs
StackProgram = Callable[[], Optional[Mapping[str, Any]]]


class StackResource(Resource):
    """A named infrastructure stack."""

    _type = "pulimistack.v0"

    def __init__(
        self,
        name: str,
        program: StackProgram,
        configure: ConfigureCallback | None = None,
    ):
        if not callable(program):
            raise TypeError(f"Stack '{name}' program must be callable")
        if not isinstance(name, str) or not STACK_NAME_PATTERN.fullmatch(name):
            raise ValueError(
                f"Invalid stack name: '{name}'. "
                f"Use letters, digits, '_' and '-' only."
            )
        self.program = program
        self.configure = configure
        self._outputs: Mapping[str, OutputValue] | None = None
        super().__init__(name)

    @property
    def outputs(self) -> Mapping[str, OutputValue] | None:
        """Provisioned outputs, None until the stack is provisioned."""
        return self._outputs

    @property
    def is_provisioned(self) -> bool:
        return self._outputs is not None

    def set_outputs(self, outputs: Mapping[str, OutputValue]) -> None:
        """Store the outputs of a successful apply. Only once."""
        if self._outputs is not None:
            raise OutputsAlreadySetError(
                f"Stack '{self.name}' outputs are already set"
            )
        self._outputs = MappingProxyType(dict(outputs))

    def get_output(self, name: str) -> OutputReference:
        return OutputReference(name, self)

    def write_to_manifest(self, context: ExecutionContext) -> dict[str, Any]:
        return {"type": self._type}


def add_stack(
    app: Application,
    name: str,
    program: StackProgram,
    configure: ConfigureCallback | None = None,
) -> StackResource:
    """Add a stack to an application.

    The configure callback is combined with the application's
    Pulumi:Stacks:<name> configuration section. Provisioning
    needs a StackLifecycleHook on the application; wiring it is
    up to the caller.
    """
    configure = resolve_configure(app.configuration, stack_section(name), configure)
    stack = StackResource(name, program, configure)
    return app.add(stack)
