"""Logging configuration with rotating file handlers."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from dbbrowser.config import get_settings

settings = get_settings()

SQL_LOGGER_NAME = "dbbrowser.sql"


def setup_logging() -> None:
    """Configure application logging with rotating file handlers."""
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL))
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)

    file_format = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
    )

    app_handler = RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    app_handler.setLevel(logging.DEBUG)
    app_handler.setFormatter(file_format)
    root_logger.addHandler(app_handler)

    # Rendered statements go to their own file
    sql_logger = logging.getLogger(SQL_LOGGER_NAME)
    sql_logger.setLevel(logging.DEBUG)
    sql_logger.propagate = False
    sql_logger.handlers.clear()
    sql_handler = RotatingFileHandler(
        log_dir / "sql.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    sql_handler.setFormatter(file_format)
    sql_logger.addHandler(sql_handler)

    # Reduce noise from external libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
