"""
Logging utilities for the HTTP service and the MCP tool server.

Provides a consistent logging format and configuration.
"""

import logging
import sys


def configure_logging(level: str = "INFO", *, stream=sys.stdout) -> None:
    """Configure root logging with a sensible default format.

    The stdio MCP transport owns stdout, so the tool server passes ``sys.stderr``.
    """
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=stream,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
