"""
sap_calm.server - Run as module

Usage: python -m sap_calm.server [--config config.json] [--debug]
"""

import argparse
import logging
import sys

import anyio

from sap_calm.core.config import CalmSettings
from sap_calm.core.errors import ConfigError
from sap_calm.server.server import serve
from sap_calm.tools.dispatcher import ToolDispatcher


def main(argv=None) -> int:
    """Run the MCP server on stdio."""
    parser = argparse.ArgumentParser(
        prog="sap-calm-mcp",
        description="MCP server exposing the SAP Cloud ALM APIs as tools",
    )
    parser.add_argument("--config", help="JSON settings file (default: CALM_* environment variables)")
    parser.add_argument("--debug", action="store_true", help="Write a request/response trace file")
    args = parser.parse_args(argv)

    # stdout is the MCP channel
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )
    logger = logging.getLogger("sap_calm.server")

    try:
        cfg = CalmSettings.from_file(args.config) if args.config else CalmSettings.from_env()
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    if args.debug:
        cfg.debug = True

    logger.info("Starting %r", cfg)
    dispatcher = ToolDispatcher.from_settings(cfg)
    try:
        anyio.run(serve, dispatcher)
    finally:
        dispatcher.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
