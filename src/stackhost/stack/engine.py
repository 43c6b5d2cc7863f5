"""
stackhost.stack.engine — Stack lifecycle hook.

Runs before the application starts. In run mode, every stack in
the model is provisioned in declaration order:

  1. create or select the stack  (application name, stack name, program)
  2. build its configuration     (configure callback)
  3. push the configuration
  4. up
  5. store the outputs on the StackResource

In publish mode nothing happens: publishing only describes the
application, it never touches infrastructure.

The first failure aborts the run, and a stack that is already
provisioned is never applied again. Stacks already applied stay
applied; stacks after the failing one are not touched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from stackhost.core.context import ExecutionContext
from stackhost.core.model import LifecycleHook
from stackhost.core.values import ConfigValue, redact
from stackhost.stack.backend import Backend
from stackhost.stack.errors import OutputsAlreadySetError, ProvisioningError
from stackhost.stack.resource import StackResource

if TYPE_CHECKING:
    from stackhost.core.model import Application

logger = structlog.get_logger()


class StackLifecycleHook(LifecycleHook):
    """Provisions every StackResource before the application starts."""

    def __init__(self, backend: Backend):
        self.backend = backend

    async def before_start(self, app: Application, context: ExecutionContext) -> None:
        if context.is_publish:
            logger.debug("stacks_skipped", application=app.name, reason="publish")
            return

        stacks = app.resources_of(StackResource)
        project_name = context.application_name or app.name

        for stack in stacks:
            await self.provision(project_name, stack)

    async def provision(self, project_name: str, stack: StackResource) -> None:
        """Create-or-select, configure and apply a single stack."""
        if stack.is_provisioned:
            raise OutputsAlreadySetError(
                f"Stack '{stack.name}' is already provisioned"
            )

        log = logger.bind(project=project_name, stack=stack.name, backend=self.backend.name)
        log.info("stack_provisioning")

        try:
            workspace = await self.backend.create_or_select(
                project_name, stack.name, stack.program
            )
        except Exception as e:
            log.error("stack_provisioning_failed", step="create_or_select", err=str(e))
            raise ProvisioningError(stack.name, "create_or_select", e) from e

        # Built and consumed here only
        configuration: dict[str, ConfigValue] = {}
        if stack.configure is not None:
            try:
                stack.configure(configuration)
            except Exception as e:
                log.error("stack_provisioning_failed", step="configure", err=str(e))
                raise ProvisioningError(stack.name, "configure", e) from e
        log.debug("stack_configured", config=redact(configuration))

        try:
            await workspace.set_all_config(stack.name, configuration)
        except Exception as e:
            log.error("stack_provisioning_failed", step="set_all_config", err=str(e))
            raise ProvisioningError(stack.name, "set_all_config", e) from e

        try:
            result = await workspace.up()
        except Exception as e:
            log.error("stack_provisioning_failed", step="up", err=str(e))
            raise ProvisioningError(stack.name, "up", e) from e

        stack.set_outputs(result.outputs)
        log.info("stack_provisioned", outputs=sorted(result.outputs))
