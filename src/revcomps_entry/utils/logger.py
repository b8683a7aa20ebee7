"""
Logging setup for the RevComps entry automation.
"""

import logging
import os
from datetime import datetime
from typing import Optional

LOGGER_NAME = "revcomps_entry"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

_configured = False


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = "logs") -> logging.Logger:
    """
    Configure and return the package logger.

    Handlers are attached once; later calls only return the logger
    (and adjust the level when one is given explicitly).

    Args:
        log_level: Logging level name
        log_dir: Directory for the timestamped log file, None disables file logging

    Returns:
        The package logger
    """
    global _configured

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level.upper())

    if _configured:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    # stdout is reserved for the relayed result JSON
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        current_time = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_handler = logging.FileHandler(
            os.path.join(log_dir, f'revcomps_entry_{current_time}.log'),
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _configured = True
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger of the package logger."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
