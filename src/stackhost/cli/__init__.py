"""
stackhost.cli — CLI entry point.

Commands:
  stackhost publish <target> [flags]   — Write the manifest (no provisioning)
  stackhost up <target> [flags]        — Provision stacks, print resolved environments
  stackhost outputs <target> [flags]   — Provision stacks, print their outputs
"""

import click

from stackhost.cli.publish_cmd import publish_cmd
from stackhost.cli.up import up_cmd
from stackhost.cli.outputs_cmd import outputs_cmd


@click.group()
@click.version_option(package_name="stackhost")
def main():
    """stackhost — infrastructure stacks for your application."""
    pass


main.add_command(publish_cmd, "publish")
main.add_command(up_cmd, "up")
main.add_command(outputs_cmd, "outputs")
