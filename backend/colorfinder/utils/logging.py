"""
ColorFinder Structured Logging
Centralized loguru sink configuration. Modules log through loguru's global
``logger``; this module only owns the sink it installs.
"""
import sys
from typing import Any, Optional

from loguru import logger

from colorfinder.config import config


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}"

_sink_id: Optional[int] = None


def configure_logging(level: Optional[str] = None, sink: Any = None) -> int:
    """
    Install the ColorFinder log sink, replacing the one from a previous call.

    Args:
        level: Minimum level (default from config)
        sink: Any loguru sink (default stdout)

    Returns:
        loguru handler id of the installed sink
    """
    global _sink_id

    if _sink_id is None:
        # Remove default handler
        logger.remove()
    else:
        logger.remove(_sink_id)

    _sink_id = logger.add(
        sink if sink is not None else sys.stdout,
        format=LOG_FORMAT,
        level=level or config.LOG_LEVEL,
        serialize=False  # Set to True for JSON output
    )
    return _sink_id
