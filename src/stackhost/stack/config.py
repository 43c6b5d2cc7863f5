"""
stackhost.stack.config — Stack configuration resolver.

A stack's configuration comes from two places:

  1. the application configuration, section Pulumi:Stacks:<name>
  2. the `configure` callback given in code

Configuration values are copied first, then the callback runs,
so code can still override anything the environment supplies:

    # stackhost.yaml
    Pulumi:
      Stacks:
        dev:
          aws:region: us-east-1

    add_stack(app, "dev", program,
              configure=lambda c: c.update(tier=ConfigValue("small")))
    # → {"aws:region": "us-east-1", "tier": "small"}
"""

from __future__ import annotations

from typing import Callable, MutableMapping, Optional

from stackhost.config import Configuration
from stackhost.core.values import ConfigValue

ConfigureCallback = Callable[[MutableMapping[str, ConfigValue]], None]

SECTION_ROOT = "Pulumi:Stacks"


def stack_section(stack_name: str) -> str:
    """Configuration section holding a stack's settings."""
    return f"{SECTION_ROOT}:{stack_name}"


def resolve_configure(
    configuration: Configuration,
    section: str,
    configure: Optional[ConfigureCallback] = None,
) -> Optional[ConfigureCallback]:
    """Combine a configuration section with a configure callback.

    Args:
        configuration: application configuration
        section: section path, e.g. "Pulumi:Stacks:dev"
        configure: callback from code (may be None)

    Returns:
        `configure` unchanged if the section does not exist,
        otherwise a callback that copies the section's values
        and then calls `configure`.
    """
    section_config = configuration.get_section(section)

    if not section_config.exists():
        return configure

    def configure_from_section(config: MutableMapping[str, ConfigValue]) -> None:
        # Values read from configuration are never marked secret
        for key, value in section_config.relative_items():
            config[key] = ConfigValue(value)

        if configure is not None:
            configure(config)

    return configure_from_section
