"""
Fulfillment Logging Module
==========================
Structured JSON logging shared by the order, inventory and notification
services. Each module asks for its own named logger.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_RECORD_FIELDS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""

    def __init__(
        self, service_name: str = "fulfillment", exclude_fields: Optional[List[str]] = None
    ):
        super().__init__()
        self.service_name = service_name
        self.exclude_fields = exclude_fields or []

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Extra fields passed through `extra={...}`
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_FIELDS or key in self.exclude_fields:
                continue
            log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def setup_logging(
    logger_name: str,
    log_level: str = "INFO",
    enable_file_logging: bool = False,
    log_dir: Optional[str] = None,
    max_file_size: int = 100 * 1024 * 1024,  # 100MB
    backup_count: int = 5,
    exclude_fields: Optional[List[str]] = None,
) -> logging.Logger:
    """
    Setup a JSON logger for one module of a fulfillment service.

    The service name written into every entry is the first dotted segment
    of ``logger_name`` (``inventory_service.settlement`` -> ``inventory_service``).

    Returns:
        Configured logger instance
    """
    service_name = logger_name.split(".", 1)[0]
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplication on re-import
    logger.handlers.clear()

    json_formatter = JSONFormatter(
        service_name=service_name, exclude_fields=exclude_fields
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(json_formatter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir_path = Path.cwd() / "logs"
        else:
            log_dir_path = Path(log_dir)

        log_dir_path.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_dir_path / f"{service_name}.log",
            maxBytes=max_file_size,
            backupCount=backup_count,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(json_formatter)
        logger.addHandler(file_handler)

        error_handler = RotatingFileHandler(
            log_dir_path / f"{service_name}_errors.log",
            maxBytes=max_file_size,
            backupCount=backup_count,
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(json_formatter)
        logger.addHandler(error_handler)

    logger.debug(
        "Logging configured",
        extra={
            "log_level": log_level,
            "file_logging": enable_file_logging,
            "handlers": len(logger.handlers),
        },
    )

    return logger
