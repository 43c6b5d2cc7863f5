"""
stackhost.stack.refs — Stack output references.

An OutputReference is a handle on one named output of a stack.
It holds only the output name and the stack, never a copy of the
value, because the value does not exist until the stack has been
provisioned.

Placeholder syntax used in published manifests:

  {dev.outputs.BlobEndpoint}  → output BlobEndpoint of stack dev

`resolve_expressions()` substitutes those placeholders once the
stacks have outputs.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, Iterable

from stackhost.stack.errors import OutputsUnavailable, UnknownOutput, RefError

if TYPE_CHECKING:
    from stackhost.stack.resource import StackResource

# Allowed stack names, same set as the first group of _REF_PATTERN
STACK_NAME_PATTERN = re.compile(r"[a-zA-Z0-9_-]+")

# {stack_name.outputs.output_name}
_REF_PATTERN = re.compile(r"\{([a-zA-Z0-9_-]+)\.outputs\.([a-zA-Z0-9_.-]+)\}")


class OutputReference:
    """Deferred handle on a single stack output."""

    def __init__(self, name: str, resource: StackResource):
        self.name = name
        self.resource = resource

    @property
    def value(self) -> Any:
        """The provisioned output value.

        Raises:
            OutputsUnavailable: stack not provisioned yet
            UnknownOutput: stack has no output with this name
        """
        outputs = self.resource.outputs
        if outputs is None:
            raise OutputsUnavailable(
                f"Stack '{self.resource.name}' outputs are not available yet"
            )
        if self.name not in outputs:
            raise UnknownOutput(
                f"Stack '{self.resource.name}' does not have an output named '{self.name}'"
            )
        return outputs[self.name].value

    @property
    def value_expression(self) -> str:
        return f"{{{self.resource.name}.outputs.{self.name}}}"

    def __repr__(self) -> str:
        return f"OutputReference({self.name!r}, {self.resource.name!r})"


def resolve_expressions(text: str, stacks: Iterable[StackResource]) -> str:
    """Replace output placeholders in a string with resolved values.

    Args:
        text: string that may contain {stack.outputs.name} placeholders
        stacks: provisioned stacks to resolve against

    Returns:
        The string with every placeholder substituted
    """
    lookup: dict[str, StackResource] = {s.name: s for s in stacks}

    def replacer(match: re.Match) -> str:
        stack_name = match.group(1)
        output_name = match.group(2)

        if stack_name not in lookup:
            raise RefError(
                f"Unknown stack reference: '{match.group(0)}'. "
                f"Available stacks: {list(lookup.keys())}"
            )

        return format_value(OutputReference(output_name, lookup[stack_name]).value)

    return _REF_PATTERN.sub(replacer, text)


def format_value(value: Any) -> str:
    """String form of an output value, as used in environments.

    >>> format_value({"a": 1})
    '{"a":1}'
    >>> format_value(True)
    'true'
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)
