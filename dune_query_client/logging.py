import os
import sys
from typing import Final

from loguru import logger

PACKAGE_NAME: Final[str] = "dune_query_client"
HUMAN_FORMAT: Final[str] = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(*, level: str | None = None, json: bool | None = None) -> None:
    """Configure Loguru sinks and enable this package's log output.

    The package is silent by default, as libraries should be. Applications
    (and the CLI) call this once at startup.

    Args:
        level: Minimum level; falls back to ``LOG_LEVEL`` then INFO.
        json: Emit serialized records; falls back to ``LOG_JSON``.
    """
    logger.remove()

    level_env: str = level or os.getenv("LOG_LEVEL", "INFO")
    serialize: bool = (
        json
        if json is not None
        else os.getenv("LOG_JSON", "false").lower() in {"1", "true", "yes", "on"}
    )

    if serialize:
        logger.add(sys.stderr, level=level_env, serialize=True)
    else:
        logger.add(sys.stderr, level=level_env, format=HUMAN_FORMAT, colorize=True)

    logger.enable(PACKAGE_NAME)
