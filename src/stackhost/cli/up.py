"""
stackhost.cli.up — stackhost up command.

Provisions every stack in declaration order, then prints the
environment each dependent resource would start with:

    stackhost up apphost.py:app -c stackhost.yaml
"""

import asyncio

import click
import yaml

from stackhost.cli.common import CLI_ERRORS, app_options, fail, load_app
from stackhost.core.context import ExecutionContext


@click.command("up")
@app_options
def up_cmd(target, config_files, set_args, backend_name, work_dir):
    """Provision stacks and resolve environments."""
    app = load_app(target, config_files, set_args, backend_name, work_dir)

    click.echo(f"Provisioning {app.name}...", err=True)
    try:
        envs = asyncio.run(app.start(ExecutionContext.run(app.name)))
    except CLI_ERRORS as e:
        fail(e)

    if envs:
        click.echo(yaml.dump(envs, default_flow_style=False, sort_keys=False))
    click.echo(f"✓ {app.name} is ready.", err=True)
