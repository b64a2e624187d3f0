"""Process-wide logging setup."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | int = logging.INFO) -> None:
    """Route package logs to stderr.

    Stdout is left alone because the sample provider may speak MCP over it.
    """

    logging.basicConfig(
        level=level,
        format=_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    # httpx logs every request at INFO; the oracle is hit once per turn.
    logging.getLogger("httpx").setLevel(logging.WARNING)
