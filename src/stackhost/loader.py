"""
stackhost.loader — Application discovery.

The CLI takes a target in one of two forms:

    myproject.apphost:app        module path + attribute
    ./apphost.py:build           file path + attribute

The attribute defaults to `app`. It can be an Application or a
callable returning one; callables receive the Configuration if
they accept an argument. A module-level Application is built
at import time and only sees configuration it loaded itself.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import sys
from pathlib import Path
from typing import Any

from stackhost.config import Configuration
from stackhost.core.model import Application

DEFAULT_ATTRIBUTE = "app"


class LoaderError(Exception):
    """Application target could not be loaded."""
    pass


def load_application(target: str, configuration: Configuration | None = None) -> Application:
    """Load an Application from a target string.

    Raises:
        LoaderError: module/attribute not found or wrong type
    """
    module_ref, _, attr = target.partition(":")
    attr = attr or DEFAULT_ATTRIBUTE
    if not module_ref:
        raise LoaderError(f"Invalid target: '{target}'")

    module = _import_target(module_ref)

    obj = getattr(module, attr, None)
    if obj is None:
        raise LoaderError(f"'{module_ref}' has no attribute '{attr}'")

    if callable(obj) and not isinstance(obj, Application):
        obj = _call_factory(obj, configuration)

    if not isinstance(obj, Application):
        raise LoaderError(
            f"'{target}' is not an Application (got {type(obj).__name__})"
        )

    return obj


def _import_target(module_ref: str) -> Any:
    if module_ref.endswith(".py") or "/" in module_ref or "\\" in module_ref:
        path = Path(module_ref).resolve()
        if not path.exists():
            raise LoaderError(f"File not found: {path}")
        module_name = f"_stackhost_app_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise LoaderError(f"Cannot load module from {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise LoaderError(f"Error loading {path}: {e}") from e
        return module

    try:
        return importlib.import_module(module_ref)
    except ImportError as e:
        raise LoaderError(f"Cannot import '{module_ref}': {e}") from e


def _call_factory(factory: Any, configuration: Configuration | None) -> Any:
    try:
        params = inspect.signature(factory).parameters
    except (TypeError, ValueError):
        params = {}
    try:
        if params:
            return factory(configuration if configuration is not None else Configuration())
        return factory()
    except Exception as e:
        raise LoaderError(f"Error building application: {e}") from e
