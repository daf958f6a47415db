"""Command line entry point: ``neon-mcp-gateway start`` / ``neon-mcp-gateway init KEY``."""

import argparse
import logging
import os
import sys
from typing import List, Optional

from neon_gateway import SERVER_NAME, __version__
from neon_gateway.errors import StartupError

logger = logging.getLogger("neon-gateway")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=SERVER_NAME, description="Neon MCP gateway")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("start", help="Serve the gateway (configured through environment variables)")

    init = commands.add_parser("init", help="Register the gateway with the Claude desktop client")
    init.add_argument("neon_api_key", help="Neon API key stored in the client configuration")
    return parser


def start() -> int:
    import uvicorn

    from neon_gateway.app import create_app
    from neon_gateway.config import Settings

    try:
        settings = Settings.from_env()
        logging.getLogger().setLevel(settings.log_level)
        app = create_app(settings)
    except StartupError as e:
        logger.error("FATAL ERROR: %s", e)
        return 1

    logger.info("MCP HTTP+SSE server listening on http://%s:%d", settings.host, settings.port)
    if settings.streaming_enabled:
        logger.info("SSE connections expected at /stream, client POSTs at /stream-post?sessionId=...")
    if settings.sync_enabled:
        logger.info("Synchronous invocations expected at /api/tools/{name}/execute")
    logger.info("Using Neon API key: %s", "provided" if settings.neon_api_key else "not provided")
    logger.info("API authentication: enabled (Bearer token)")

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)

    if args.command == "init":
        from neon_gateway.init_config import write_claude_config

        write_claude_config(args.neon_api_key)
        return 0
    return start()


if __name__ == "__main__":
    sys.exit(main())
