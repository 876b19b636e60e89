"""
Application factory for creating configured vanity apps.

Used by the CLI and by the test client so both build apps the same way.
"""

import logging
from inspect import isclass
from pathlib import Path
from typing import Any

from vanity.app import App
from vanity.config import import_from_string

logger = logging.getLogger(__name__)


def create_app(
    *,
    app_module_str: str | None = None,
    config: str | Path | None = None,
    dev: bool = False,
) -> App:
    """Create a configured App instance.

    Args:
        app_module_str: Custom application class in the format "module.path:ClassName".
            If not provided, the default App is used.
        config: Path to config file. If not provided, App uses its default.
        dev: Enable development mode.

    Raises:
        ValueError: If app_module_str is not a valid App class.
        VanityConfigError: If the configuration is invalid.

    Examples:
        ```python
        app = create_app(config="./vanity.config.yaml", dev=True)
        ```
    """
    if app_module_str:
        try:
            app_class = import_from_string(app_module_str)
            if not isclass(app_class) or not issubclass(app_class, App):
                raise ValueError(f"'{app_module_str}' is not a valid App class")
        except Exception as e:
            logger.error(f"Error importing app class '{app_module_str}': {e}")
            raise
    else:
        app_class = App

    app_kwargs: dict[str, Any] = {}
    if config is not None:
        app_kwargs["config"] = config

    if dev:
        app_kwargs["dev_mode"] = True

    try:
        logger.info(f"Creating App ({app_class.__name__}) with arguments: {app_kwargs}")
        return app_class(**app_kwargs)
    except Exception as e:
        logger.error(f"Error creating app instance: {e}")
        raise
