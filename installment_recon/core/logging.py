"""
Centralized logging configuration using Loguru
"""

import logging
import os
import sys
from typing import Optional

from loguru import logger


def setup_logging(log_level: str = "INFO", enable_json: bool = False, log_dir: Optional[str] = None):
    """
    Configure Loguru sinks for the API and the Celery workers

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_json: Serialize records as JSON (production)
        log_dir: Directory for rotated log files, console only when unset
    """
    logger.remove()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )
    logger.configure(extra={"name": "installment_recon"})

    logger.add(
        sys.stdout,
        format=log_format,
        level=log_level,
        colorize=not enable_json,
        serialize=enable_json
    )

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

        logger.add(
            os.path.join(log_dir, "app_{time:YYYY-MM-DD}.log"),
            format=log_format,
            level=log_level,
            rotation="00:00",
            retention="30 days",
            compression="gz",
            serialize=enable_json,
            encoding="utf-8"
        )

        # Webhook diagnostics and import failures end up here
        logger.add(
            os.path.join(log_dir, "error_{time:YYYY-MM-DD}.log"),
            format=log_format,
            level="WARNING",
            rotation="00:00",
            retention="90 days",
            compression="gz",
            serialize=enable_json,
            encoding="utf-8"
        )

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger.bind(name="installment_recon").info(
        "Logging configuration initialized", log_level=log_level, json_format=enable_json
    )


def get_logger(name: str):
    """
    Get a logger instance bound to a module name

    Args:
        name: Logger name (usually __name__)
    """
    return logger.bind(name=name)
