"""
Logging setup for runnable scripts.

Library modules log through loguru's shared `logger` with a bracketed
component tag ("[engine]", "[grid]", "[coingecko]") and never configure
sinks themselves. Entry points call configure_logging() once.
"""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "{message}"
)


def configure_logging(level: str = "INFO") -> int:
    """
    Replace loguru's default sink with a single stderr sink at level.

    Calling it again replaces the sink rather than adding a second one.

    Args:
        level: Minimum level name ("DEBUG", "INFO", "WARNING", ...).

    Returns:
        The loguru handler id of the installed sink.
    """
    logger.remove()
    return logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)
