"""Logging configuration helpers."""

import json
import logging


class ContextFormatter(logging.Formatter):
    """Formatter that appends a record's ``context`` dict as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "context", None)
        if context:
            message = f"{message} {json.dumps(context, default=str, sort_keys=True)}"
        return message


def configure_logging(level: str = "INFO") -> None:
    """Configure application logging with a single stream handler."""
    logger = logging.getLogger("photo_worker")
    logger.setLevel(level.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
