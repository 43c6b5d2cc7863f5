"""stackhost.stack — Infrastructure stacks and their outputs."""

from stackhost.stack.errors import (
    StackError,
    OutputsUnavailable,
    UnknownOutput,
    OutputsAlreadySetError,
    ProvisioningError,
    RefError,
)
from stackhost.stack.refs import OutputReference, resolve_expressions
from stackhost.stack.config import resolve_configure, stack_section
from stackhost.stack.resource import StackResource, add_stack
from stackhost.stack.backend import (
    Backend, StackWorkspace, UpResult,
    InlineBackend, PulumiBackend, get_backend,
)
from stackhost.stack.engine import StackLifecycleHook

__all__ = [
    "StackError",
    "OutputsUnavailable",
    "UnknownOutput",
    "OutputsAlreadySetError",
    "ProvisioningError",
    "RefError",
    "OutputReference",
    "resolve_expressions",
    "resolve_configure",
    "stack_section",
    "StackResource",
    "add_stack",
    "Backend",
    "StackWorkspace",
    "UpResult",
    "InlineBackend",
    "PulumiBackend",
    "get_backend",
    "StackLifecycleHook",
]
