import importlib
import logging
import os
import re
import shlex
from collections.abc import Sequence
from pathlib import Path
from typing import Any, TypedDict

import yaml

from vanity.exceptions import ConfigParseError, VanityConfigError
from vanity.patterns import DEFAULT_VCS, CompiledMatcher, GopkgDirective, compile_matchers

logger = logging.getLogger(__name__)

# Default config file name
DEFAULT_CONFIG_FILE = "vanity.config.yaml"

type RawDirective = str | Sequence[str]


class MiddlewareConfig(TypedDict, total=False):
    entry: str
    config: dict[str, Any]


class VanityConfig(TypedDict, total=False):
    site_info: dict[str, Any]
    gopkg: list[RawDirective]
    middleware: list[MiddlewareConfig]


def import_from_string(import_str: str) -> Any:
    """Import a class, function, or variable from a module by string.

    Args:
        import_str: String in the format "module.path:symbol". Nested
            attributes are reached with dots after the colon.

    Returns:
        The imported object.

    Raises:
        VanityConfigError: If the import failed due to missing module, missing
            symbol, or other import-related errors.

    Examples:
        ```python
        middleware = import_from_string("myproject.middleware:request_logger")
        ```
    """
    if ":" not in import_str:
        raise VanityConfigError(
            f"Invalid import string format '{import_str}'. Expected 'module.path:symbol'."
        )

    module_path, object_path = import_str.split(":", 1)

    try:
        module = importlib.import_module(module_path)

        target = module
        for part in object_path.split("."):
            target = getattr(target, part)

        return target
    except (ImportError, AttributeError) as e:
        raise VanityConfigError(f"Failed to import '{import_str}': {str(e)}") from e


def load_raw_config(config_path: str | Path) -> dict[str, Any]:
    """
    Load a configuration file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Dictionary containing the configuration. A missing file yields an
        empty configuration.

    Raises:
        VanityConfigError: If the configuration file could not be loaded.
    """
    try:
        config_path_obj = Path(config_path)
        if not config_path_obj.exists():
            logger.warning(f"Configuration file {config_path} does not exist.")
            return {}

        with open(config_path_obj, encoding="utf-8") as f:
            config = yaml.safe_load(f)

        if config is None:  # Empty file
            config = {}

        if not isinstance(config, dict):
            raise VanityConfigError(
                f"Invalid configuration format in {config_path}. Expected a dictionary."
            )

        return config
    except Exception as e:
        if isinstance(e, VanityConfigError):
            raise
        raise VanityConfigError(
            f"Error loading configuration from {config_path}: {str(e)}"
        ) from e


def _substitute_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """
    Substitute environment variables in configuration values.

    Supports ${VAR_NAME} syntax. Path placeholders such as $1 are left alone.

    Raises:
        VanityConfigError: If a referenced environment variable is missing
    """
    env_pattern = re.compile(r"\$\{([^}]+)\}")

    def replace_env_var(match: re.Match[str]) -> str:
        env_var = match.group(1)
        env_value = os.getenv(env_var)
        if env_value is None:
            raise VanityConfigError(
                f"Required environment variable '{env_var}' is not set"
            )

        return env_value

    def substitute_value(value: Any) -> Any:
        if isinstance(value, str):
            return env_pattern.sub(replace_env_var, value)

        elif isinstance(value, dict):
            return {k: substitute_value(v) for k, v in value.items()}

        elif isinstance(value, list):
            return [substitute_value(item) for item in value]

        else:
            return value

    return substitute_value(config)


def load_config(config_path: str | Path) -> VanityConfig:
    """
    Load and process a configuration file.

    Loads the raw YAML, substitutes environment variables and checks the
    shape of the top level sections.

    Raises:
        VanityConfigError: If configuration is invalid
    """
    config = _substitute_env_vars(load_raw_config(config_path))

    for section in ("gopkg", "middleware"):
        if section in config and not isinstance(config[section], list):
            raise VanityConfigError(f"'{section}' must be a list")

    if "site_info" in config and not isinstance(config["site_info"], dict):
        raise VanityConfigError("'site_info' must be a dictionary")

    return config


def tokenize_directive(raw: RawDirective, index: int | None = None) -> list[str]:
    """Split one configured directive into its argument list.

    Strings are split shell-style so quoted arguments may contain spaces;
    lists are taken to be already tokenised.
    """
    if isinstance(raw, str):
        try:
            return shlex.split(raw)
        except ValueError as e:
            raise ConfigParseError(f"Could not tokenize {raw!r}: {e}", index=index) from e

    if isinstance(raw, (list, tuple)) and all(isinstance(arg, str) for arg in raw):
        return list(raw)

    raise ConfigParseError(
        f"Expected a string or a list of strings, got {raw!r}", index=index
    )


def parse_directive(args: Sequence[str], index: int | None = None) -> GopkgDirective:
    """Turn one argument list into a :class:`GopkgDirective`.

    ``<path> <uri>`` uses the default VCS, ``<path> <vcs> <uri>`` names it.

    Raises:
        ConfigParseError: If there are not exactly two or three arguments.
    """
    match list(args):
        case [path, uri]:
            return GopkgDirective(path=path, vcs=DEFAULT_VCS, uri=uri)
        case [path, vcs, uri]:
            return GopkgDirective(path=path, vcs=vcs, uri=uri)
        case _:
            raise ConfigParseError(
                f"Wrong argument count or unexpected line ending after "
                f"{' '.join(args) or '<nothing>'!r}; expected '<path> [vcs] <uri>'",
                index=index,
                args=list(args),
            )


def parse_directives(entries: Sequence[RawDirective]) -> list[GopkgDirective]:
    return [
        parse_directive(tokenize_directive(raw, index), index)
        for index, raw in enumerate(entries)
    ]


def load_matchers(config: VanityConfig) -> tuple[CompiledMatcher, ...]:
    """Parse and compile every ``gopkg`` directive of a loaded configuration.

    Raises:
        ConfigParseError: If any directive is malformed.
        PatternCompileError: If any path template fails to compile.
    """
    directives = parse_directives(config.get("gopkg", []))
    matchers = compile_matchers(directives)
    logger.info(f"Loaded {len(matchers)} gopkg import path(s)")
    return matchers
