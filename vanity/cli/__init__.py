import asyncio
import inspect
import logging
import os
import sys

from .parser import create_parser

logger = logging.getLogger("vanity")


def _configure_logging(debug: bool):
    if not logger.hasHandlers():
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        if debug:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if debug else logging.INFO)


def main(argv: list[str] | None = None):
    parser = create_parser()
    args_ns = parser.parse_args(argv)

    debug = args_ns.debug or bool(os.getenv("VANITY_DEBUG"))
    if debug:
        os.environ["VANITY_DEBUG"] = "1"
    _configure_logging(debug)
    logger.debug("Debug logging enabled.")

    handler = args_ns.func
    if inspect.iscoroutinefunction(handler):
        result = asyncio.run(handler(args_ns))
    else:
        result = handler(args_ns)

    if isinstance(result, int) and result:
        sys.exit(result)
