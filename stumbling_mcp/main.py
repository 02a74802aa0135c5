"""
Main entry point for Stumbling MCP Server.

This module provides the main() function and server initialization.
"""

import asyncio
import sys

from mcp.server.stdio import stdio_server

from .config import settings
from .logging import configure_logging, get_logger
from .tools import server


def main():
    """Main entry point."""
    configure_logging(settings.log_level)
    logger = get_logger(__name__)

    if not settings.root.is_dir():
        logger.error("root_not_found", root=str(settings.root), hint="set STUMBLING_ROOT to an existing directory")
        sys.exit(1)

    logger.info("server_starting", root=str(settings.root), parse_frontmatter=settings.parse_frontmatter)

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())

    asyncio.run(run())


if __name__ == "__main__":
    main()
