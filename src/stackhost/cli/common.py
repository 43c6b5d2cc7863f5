"""
stackhost.cli.common — Options and helpers shared by all commands.
"""

import sys
from functools import wraps

import click

from stackhost.config import ConfigurationError, load_configuration
from stackhost.core.model import Application
from stackhost.loader import LoaderError, load_application
from stackhost.logging import bind_context, configure_logging
from stackhost.stack.backend import get_backend
from stackhost.stack.engine import StackLifecycleHook
from stackhost.stack.errors import StackError

# Errors reported as "Error: ..." + exit 1
CLI_ERRORS = (LoaderError, ConfigurationError, FileNotFoundError, StackError)


def app_options(func):
    """Target, configuration and logging options."""

    @click.argument("target")
    @click.option("-c", "--config", "config_files", multiple=True,
                  help="YAML configuration file (multiple allowed)")
    @click.option("--set", "set_args", multiple=True,
                  help="Configuration override (Section:key=value)")
    @click.option("--backend", "backend_name", default="pulumi",
                  type=click.Choice(["pulumi", "inline"]),
                  help="Provisioning backend")
    @click.option("--work-dir", default=None,
                  help="Pulumi workspace directory")
    @click.option("--log-level", default="warning",
                  type=click.Choice(["debug", "info", "warning", "error"]),
                  help="Log level")
    @click.option("--log-json", is_flag=True, default=False,
                  help="Log as JSON lines")
    @wraps(func)
    def wrapper(*args, **kwargs):
        configure_logging(kwargs.pop("log_level"), json=kwargs.pop("log_json"))
        return func(*args, **kwargs)

    return wrapper


def load_app(target, config_files, set_args, backend_name, work_dir) -> Application:
    """Load the application and wire the stack lifecycle hook."""
    try:
        configuration = load_configuration(
            files=list(config_files),
            set_args=list(set_args),
        )
        app = load_application(target, configuration)
        bind_context(target=target).info("application_loaded", application=app.name,
                                         resources=len(app.resources))
        kwargs = {"work_dir": work_dir} if backend_name == "pulumi" else {}
        app.add_lifecycle_hook(StackLifecycleHook(get_backend(backend_name, **kwargs)))
    except CLI_ERRORS as e:
        fail(e)
    return app


def fail(error) -> None:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)
