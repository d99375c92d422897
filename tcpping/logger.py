"""
Logging configuration for tcpping.
"""

import logging

from rich.logging import RichHandler

from .ui import console


def setup_logging(level: int = logging.INFO) -> None:
    """Routes the root logger (and aiohttp's loggers) through a rich handler."""
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter('%(name)s: %(message)s', datefmt='[%X]'))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    logging.getLogger('tcpping').setLevel(level)
    logging.getLogger('aiohttp.access').setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def level_for_env(env: str) -> int:
    return logging.INFO if env == "production" else logging.DEBUG


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(f"tcpping.{name}")
