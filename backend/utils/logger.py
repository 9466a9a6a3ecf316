"""
Logging setup

Text formatter for local runs, JSON lines for anything that ships logs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict


class JsonFormatter(logging.Formatter):
    """Formats a LogRecord as one JSON object per line"""

    def __init__(self, service: str = "overload-dashboard", **kwargs):
        super().__init__(**kwargs)
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service,
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if record.__dict__.get("data"):
            entry["data"] = record.__dict__["data"]

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", format_type: str = "text") -> None:
    """Configure the root logger; replaces any handlers already attached"""
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)

    if format_type.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.addHandler(handler)

    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
