"""
stackhost.cli.outputs_cmd — stackhost outputs command.

Provisions stacks and prints their outputs. Secret outputs
are masked.
"""

import asyncio

import click
import yaml

from stackhost.cli.common import CLI_ERRORS, app_options, fail, load_app
from stackhost.core.context import ExecutionContext
from stackhost.core.values import redact
from stackhost.stack.resource import StackResource


@click.command("outputs")
@app_options
@click.option("-s", "--stack", "stack_names", multiple=True,
              help="Only show these stacks")
def outputs_cmd(target, config_files, set_args, backend_name, work_dir,
                stack_names):
    """Provision stacks and show their outputs."""
    app = load_app(target, config_files, set_args, backend_name, work_dir)

    try:
        asyncio.run(app.start(ExecutionContext.run(app.name)))
    except CLI_ERRORS as e:
        fail(e)

    result = {}
    for stack in app.resources_of(StackResource):
        if stack_names and stack.name not in stack_names:
            continue
        result[stack.name] = redact(stack.outputs or {})

    if not result:
        click.echo("Warning: No stacks found.", err=True)
        return
    click.echo(yaml.dump(result, default_flow_style=False, sort_keys=False))
