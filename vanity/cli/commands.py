"""
CLI command handlers.

Handlers receive the parsed argparse namespace. Synchronous handlers return
the process exit status.
"""

import logging
import sys
from pathlib import Path

import uvicorn

from vanity.app_factory import create_app
from vanity.config import DEFAULT_CONFIG_FILE, load_config, load_matchers
from vanity.exceptions import NoMatchError, VanityConfigError
from vanity.rendering import go_import_content, go_source_content
from vanity.resolver import resolve

logger = logging.getLogger("vanity")


def _config_path(args_ns) -> Path:
    return Path(getattr(args_ns, "config", None) or Path.cwd() / DEFAULT_CONFIG_FILE)


async def handle_launch_command(args_ns):
    """Handles the 'launch' command."""
    logger.debug("Launch command started.")

    try:
        app = create_app(
            app_module_str=getattr(args_ns, "app", None),
            config=_config_path(args_ns),
            dev=getattr(args_ns, "dev", False),
        )
    except VanityConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if args_ns.dry_run:
        print("=== Dry Run Mode ===")
        print("Application loaded successfully. Server would start with:")
        print(f"  Host: {args_ns.host}")
        print(f"  Port: {args_ns.port}")
        print(f"  Workers: {args_ns.workers}")
        print(f"  Import paths: {len(app.matchers)}")
        return

    logger.info(f"Starting {app.site_name} on {args_ns.host}:{args_ns.port}")
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=args_ns.host,
            port=args_ns.port,
            workers=args_ns.workers,
        )
    )
    await server.serve()


def handle_check_command(args_ns) -> int:
    """Handles the 'check' command: load and compile the configuration."""
    config_path = _config_path(args_ns)
    if not config_path.exists():
        print(f"❌ Configuration file '{config_path}' not found")
        return 1

    try:
        matchers = load_matchers(load_config(config_path))
    except VanityConfigError as e:
        print(f"❌ {type(e).__name__}: {e}")
        return 1

    if not matchers:
        print(f"⚠️  No gopkg import paths configured in {config_path}")
        return 0

    width = max(len(matcher.path) for matcher in matchers)
    for matcher in matchers:
        print(f"{matcher.path.ljust(width)}  {matcher.vcs}  {matcher.uri}")
    print(f"✅ {len(matchers)} import path(s) OK")
    return 0


def handle_resolve_command(args_ns) -> int:
    """Handles the 'resolve' command: resolve an import path offline."""
    try:
        matchers = load_matchers(load_config(_config_path(args_ns)))
    except VanityConfigError as e:
        print(f"❌ {type(e).__name__}: {e}")
        return 1

    path = args_ns.path if args_ns.path.startswith("/") else f"/{args_ns.path}"
    try:
        resolved = resolve(matchers, args_ns.host, path)
    except NoMatchError as e:
        print(f"❌ {e.message}")
        return 1

    print(f"go-import: {go_import_content(resolved)}")
    print(f"go-source: {go_source_content(resolved)}")
    print(f"redirect:  {resolved.uri}")
    return 0
