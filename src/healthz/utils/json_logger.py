"""
Logging setup for healthz: plain text or structured JSON on stderr.
"""

import json
import logging
import sys
import time
from typing import Optional, TextIO

# Probe/loop context attached through ``extra=`` on log calls
CONTEXT_FIELDS = ("endpoint", "attempt", "delay", "status_code", "elapsed")

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Custom formatter that outputs logs as structured JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""

        payload = {
            "ts": int(time.time() * 1000),  # Unix timestamp in milliseconds
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }

        for attr in CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value is not None:
                payload[attr] = value

        # Add exception info if present
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    level: str = "WARNING", fmt: str = "text", stream: Optional[TextIO] = None
) -> logging.Handler:
    """Configure the root logger for a CLI run and return the installed handler."""

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # urllib3 logs every connection at DEBUG; keep it out unless asked for
    logging.getLogger("urllib3").setLevel(max(root_logger.level, logging.INFO))

    return handler
