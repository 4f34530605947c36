"""
Logging setup for the Infoblox IPAM provider.

All modules obtain their logger through ``get_logger(__name__)``; the
controller entry point calls ``configure_logging`` once before starting.
Loggers are loguru's global logger bound to the module name.
"""

import sys
import traceback

from loguru import logger

from infoblox_ipam.models.enums import LogLevel

ROOT_LOGGER_NAME = "infoblox_ipam"

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

_LEVELS = {
    LogLevel.FULL: "DEBUG",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

# Records logged without a bound name still render
logger.configure(extra={"name": ROOT_LOGGER_NAME})


def get_logger(name: str):
    """Get the logger bound to a module name."""
    return logger.bind(name=name)


def configure_logging(level: LogLevel | str = LogLevel.INFO) -> None:
    """
    Replace all sinks with a single stderr sink.

    Args:
        level: Verbosity level. FULL additionally renders tracebacks with
            the whole stack and local variables.
    """
    level = LogLevel(level)
    full = level == LogLevel.FULL

    logger.remove()
    logger.add(
        sys.stderr,
        level=_LEVELS[level],
        format=LOG_FORMAT,
        backtrace=full,
        diagnose=full,
    )


def format_traceback(e: BaseException) -> str:
    """Render an exception with its traceback as a string."""
    return "".join(traceback.format_exception(type(e), e, e.__traceback__))
