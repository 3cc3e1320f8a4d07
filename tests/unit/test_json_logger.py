"""Unit tests for logging configuration."""

import io
import json
import logging
import sys

from healthz.utils.json_logger import JsonFormatter, configure_logging


def test_json_format_includes_probe_context():
    stream = io.StringIO()
    configure_logging("INFO", "json", stream=stream)

    logging.getLogger("healthz.loop").info(
        "Attempt %d failed", 2, extra={"endpoint": "tcp://db:5432", "attempt": 2, "delay": 4.0}
    )

    record = json.loads(stream.getvalue().strip())
    assert record["level"] == "INFO"
    assert record["msg"] == "Attempt 2 failed"
    assert record["logger"] == "healthz.loop"
    assert record["endpoint"] == "tcp://db:5432"
    assert record["attempt"] == 2
    assert record["delay"] == 4.0
    assert "status_code" not in record


def test_text_format_and_level_filtering():
    stream = io.StringIO()
    configure_logging("WARNING", "text", stream=stream)

    logger = logging.getLogger("healthz.probe")
    logger.info("hidden")
    logger.warning("shown")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "WARNING - healthz.probe - shown" in output


def test_exception_is_serialized():
    formatter = JsonFormatter()
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.getLogger("t").makeRecord(
            "t", logging.ERROR, __file__, 1, "failed", (), exc_info=sys.exc_info()
        )

    payload = json.loads(formatter.format(record))
    assert "RuntimeError: boom" in payload["exception"]
