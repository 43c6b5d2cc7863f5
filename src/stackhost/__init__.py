"""
stackhost — Provision infrastructure stacks before your application starts.

Stack outputs flow into dependent resources as environment
variables: real values when running, placeholders when publishing.
"""

from stackhost.core.values import ConfigValue, OutputValue
from stackhost.core.context import ExecutionContext, ExecutionMode
from stackhost.core.model import (
    Application,
    LifecycleHook,
    DuplicateResourceError,
    application,
)
from stackhost.core.manifest import Manifest
from stackhost.core.resources import ProjectResource, EnvironmentContext
from stackhost.config import Configuration, load_configuration
from stackhost.stack import (
    StackResource,
    OutputReference,
    StackLifecycleHook,
    InlineBackend,
    PulumiBackend,
    add_stack,
)

__version__ = "0.1.0"

__all__ = [
    # values
    "ConfigValue",
    "OutputValue",
    # model
    "ExecutionContext",
    "ExecutionMode",
    "Application",
    "LifecycleHook",
    "DuplicateResourceError",
    "application",
    "Manifest",
    "ProjectResource",
    "EnvironmentContext",
    "Configuration",
    "load_configuration",
    # stacks
    "StackResource",
    "OutputReference",
    "StackLifecycleHook",
    "InlineBackend",
    "PulumiBackend",
    "add_stack",
]
