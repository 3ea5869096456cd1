"""
Logging configuration for the collector.
"""

import logging
from logging.handlers import RotatingFileHandler


def setup_logging(
    log_file: str = "pairwatch.log", level: int = logging.INFO
) -> logging.Logger:
    """
    Configure console and rotating file handlers on the root logger.

    Console shows `level` and above; the file keeps only WARNING and above.

    Returns:
        Logger for the entry point
    """
    log_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(log_formatter)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10 MB per file
        backupCount=5,
    )
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(log_formatter)

    logging.basicConfig(
        level=level,
        handlers=[console_handler, file_handler],
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger("pairwatch")
