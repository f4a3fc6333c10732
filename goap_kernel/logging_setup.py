"""Process-wide logging configuration (text or JSON lines)."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text", logger_name: Optional[str] = None) -> logging.Handler:
    """
    Install a single stream handler on ``logger_name`` (root by default).

    Calling it again replaces the handler it installed before.
    """
    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        if getattr(existing, "_goap_kernel", False):
            target.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))
    handler._goap_kernel = True
    target.addHandler(handler)
    target.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
