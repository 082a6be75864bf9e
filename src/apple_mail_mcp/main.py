#!/usr/bin/env python3
"""Entry point for apple-mail-mcp CLI."""

import logging
import sys

from apple_mail_mcp.config import settings
from apple_mail_mcp.apple_mail_mcp import mcp


def main():
    """Run the Apple Mail MCP server."""
    # stdout belongs to the stdio transport
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger(__name__).info(f"Starting Apple Mail MCP server ({settings.transport})")
    mcp.run(transport=settings.transport)


if __name__ == "__main__":
    main()
