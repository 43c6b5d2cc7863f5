"""
stackhost.core.model — Application model.

An Application is an ordered collection of named resources plus
the lifecycle hooks the composition root wires in explicitly:

    with application("demo", configuration=config) as app:
        dev = add_stack(app, "dev", program)
        ProjectResource("api").with_environment(
            "StorageEndpoint", dev.get_output("BlobEndpoint"))

    app.add_lifecycle_hook(StackLifecycleHook(InlineBackend()))
    env = asyncio.run(app.start())
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, TypeVar

import structlog

from stackhost.config import Configuration
from stackhost.core.collector import _push, _pop
from stackhost.core.context import ExecutionContext
from stackhost.core.manifest import Manifest
from stackhost.core.resource import Resource

logger = structlog.get_logger()

R = TypeVar("R", bound=Resource)


class DuplicateResourceError(Exception):
    """A resource name is already taken in this application."""
    pass


class LifecycleHook:
    """Runs once per application start, before any resource starts."""

    async def before_start(self, app: Application, context: ExecutionContext) -> None:
        raise NotImplementedError(f"{self.__class__.__name__}.before_start()")


class Application:
    """Ordered resource model + lifecycle hooks."""

    def __init__(self, name: str, configuration: Configuration | None = None):
        self.name = name
        self.configuration = configuration if configuration is not None else Configuration()
        self._resources: list[Resource] = []
        self.lifecycle_hooks: list[LifecycleHook] = []

    @property
    def resources(self) -> list[Resource]:
        return list(self._resources)

    def add(self, resource: R) -> R:
        """Add a resource. Adding the same object twice is a no-op."""
        for existing in self._resources:
            if existing is resource:
                return resource
            if existing.name == resource.name:
                raise DuplicateResourceError(
                    f"Duplicate resource name: '{resource.name}'"
                )
        self._resources.append(resource)
        return resource

    def get(self, name: str) -> Resource | None:
        for r in self._resources:
            if r.name == name:
                return r
        return None

    def resources_of(self, kind: type[R]) -> list[R]:
        """Resources of the given type, in declaration order."""
        return [r for r in self._resources if isinstance(r, kind)]

    def add_lifecycle_hook(self, hook: LifecycleHook) -> LifecycleHook:
        """Register a hook. A second hook of the same class is ignored."""
        for existing in self.lifecycle_hooks:
            if type(existing) is type(hook):
                return existing
        self.lifecycle_hooks.append(hook)
        return hook

    async def start(self, context: ExecutionContext | None = None) -> dict[str, dict[str, str]]:
        """Run lifecycle hooks, then materialize environments.

        Returns:
            {resource_name: {VAR: value}} for every resource with
            an environment.
        """
        context = context or ExecutionContext.run(self.name)
        log = logger.bind(application=self.name, mode=context.mode.value)
        log.info("application_starting", resources=len(self._resources))

        await self._run_hooks(context)

        envs = self.environments(context)
        log.info("application_started")
        return envs

    async def publish(self) -> Manifest:
        """Run hooks in publish mode and build the manifest."""
        context = ExecutionContext.publish(self.name)
        logger.info("application_publishing", application=self.name,
                    resources=len(self._resources))
        await self._run_hooks(context)
        return Manifest(self._resources, context)

    async def _run_hooks(self, context: ExecutionContext) -> None:
        for hook in self.lifecycle_hooks:
            await hook.before_start(self, context)

    def environments(self, context: ExecutionContext) -> dict[str, dict[str, str]]:
        result: dict[str, dict[str, str]] = {}
        for r in self._resources:
            materialize = getattr(r, "environment", None)
            if callable(materialize):
                result[r.name] = materialize(context)
        return result


@contextmanager
def application(name: str, configuration: Configuration | None = None) -> Iterator[Application]:
    """Resource collector context manager.

    Collects every resource created inside the block::

        with application("demo") as app:
            ProjectResource("api")

        assert app.get("api") is not None
    """
    app = Application(name, configuration)
    _push(app)
    try:
        yield app
    finally:
        _pop()
