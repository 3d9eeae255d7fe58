import logging
import sys
from pathlib import Path

LOGGER_NAME = "safestore"


def setup_logger(log_dir: str = ""):
    """Return the server logger, attaching handlers that are not there yet.

    Modules call this at import time to get the console logger; startup calls
    it again with the configured log directory to add the file handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Create formatters
    file_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
    )
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )

    has_file_handler = any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    has_console_handler = any(
        type(h) is logging.StreamHandler for h in logger.handlers
    )

    # File handler (for detailed logging)
    if log_dir and not has_file_handler:
        logs_dir = Path(log_dir)
        logs_dir.mkdir(exist_ok=True, parents=True)
        file_handler = logging.FileHandler(logs_dir / "safestore.log")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    # Console handler (for basic logging)
    if not has_console_handler:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    return logger
