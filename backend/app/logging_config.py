"""
Logging Configuration - JSON log lines to stdout and LOG_DIR/server.log.
"""
import json
import logging
import os
import sys
import traceback
from datetime import datetime

from app.config import get_settings

# Extra attributes copied from LogRecord into the JSON line when present
EXTRA_FIELDS = (
    "token", "provider_payment_id", "status", "previous_status",
    "method", "path", "status_code", "duration_ms",
)


class JSONFormatter(logging.Formatter):
    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.utcnow().isoformat(),
            "service": self.service_name,
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_obj[field] = getattr(record, field)

        if record.exc_info:
            log_obj["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(log_obj, default=str)


def setup_logging(service_name: str) -> logging.Logger:
    """Attach stdout + file handlers to the root logger. Safe to call twice."""
    settings = get_settings()

    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL.upper())

    if root.handlers:
        root.handlers.clear()

    formatter = JSONFormatter(service_name)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    os.makedirs(settings.LOG_DIR, exist_ok=True)
    file_handler = logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log"))
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    return logging.getLogger(service_name)
