"""
stackhost.cli.publish_cmd — stackhost publish command.

Builds the manifest in publish mode. Stacks are never
provisioned; stack outputs appear as {stack.outputs.name}.
"""

import asyncio

import click

from stackhost.cli.common import CLI_ERRORS, app_options, fail, load_app


@click.command("publish")
@app_options
@click.option("-o", "--output", default=None,
              help="Output file (default: stdout)")
@click.option("--format", "fmt", default="yaml",
              type=click.Choice(["yaml", "json"]),
              help="Manifest format")
def publish_cmd(target, config_files, set_args, backend_name, work_dir,
                output, fmt):
    """Write the application manifest."""
    app = load_app(target, config_files, set_args, backend_name, work_dir)

    try:
        m = asyncio.run(app.publish())
    except CLI_ERRORS as e:
        fail(e)

    text = m.to_json() if fmt == "json" else m.to_yaml()
    if output:
        with open(output, "w") as f:
            f.write(text)
        click.echo(f"Written to {output}", err=True)
    else:
        click.echo(text)
