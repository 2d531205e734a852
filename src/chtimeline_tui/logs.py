"""
logs.py - Log to a file while curses owns the terminal.
"""
import os

from loguru import logger

from .config import Settings


def setup_logging(settings: Settings):
    """Replace loguru's stderr handler with a rotating file sink."""
    logger.remove()
    log_dir = os.path.dirname(settings.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")
    logger.debug(f"Logging to {settings.log_file} at {settings.log_level}")
