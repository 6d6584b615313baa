"""
Centralized logging for meetscribe.

All modules log through child loggers of the ``meetscribe`` logger. Handlers
are attached once by ``MeetscribeLogger.configure`` (called by the CLI), so
importing the package never creates files.
"""

import logging
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "meetscribe"

# Default log location (project root, next to src/)
LOGS_DIR = Path(__file__).parent.parent.parent / "logs"
LOG_FILE = LOGS_DIR / "meetscribe.log"

# Format: [2024-01-15 14:30:25] ERROR - message
LOG_FORMAT = '[%(asctime)s] %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class MeetscribeLogger:
    """Owns the handler setup of the ``meetscribe`` logger (singleton)."""

    @classmethod
    def configure(cls, level: str = "INFO", log_file: Optional[str] = None,
                  console: bool = False) -> logging.Logger:
        """Attach a file handler (and optionally a console handler).

        Args:
            level: Logging level name, e.g. "DEBUG" or "WARNING"
            log_file: Path of the log file; defaults to logs/meetscribe.log
            console: Also log to stderr

        Returns:
            The configured ``meetscribe`` logger
        """
        logger = logging.getLogger(ROOT_LOGGER_NAME)
        logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

        # Remove handlers from a previous configure() call
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        path = Path(log_file) if log_file else LOG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode='a', encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        if console:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger inside the ``meetscribe`` namespace."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# Convenience functions for logging
def log_exception(exception, context=""):
    """
    Log an exception with full traceback.

    Args:
        exception: Exception object
        context: Optional context string (e.g., "in transcription")
    """
    logger = get_logger()
    if context:
        logger.error(f"Exception {context}", exc_info=exception)
    else:
        logger.error("Exception occurred", exc_info=exception)
