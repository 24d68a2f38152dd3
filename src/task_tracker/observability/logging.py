from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_OWNED = "_tracker_handler"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Only our structured extras (we always log with `extra={...}`)
        for k, v in record.__dict__.items():
            if k in _RESERVED:
                continue
            payload[k] = v

        # "tracker.storage" -> "storage" when the call site gave no category
        payload.setdefault("category", record.name.rsplit(".", 1)[-1])

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(console_level: Optional[str] = None) -> None:
    """
    Route everything to stderr and to LOG_DIR/tracker.jsonl as JSON lines.

    console_level lets the CLI keep its terminal output quiet while the
    file still gets LOG_LEVEL records.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = Path(os.getenv("LOG_DIR", "./logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    # replace handlers from an earlier call, leave foreign ones alone
    for handler in [h for h in root.handlers if getattr(h, _OWNED, False)]:
        root.removeHandler(handler)
        handler.close()

    fmt = JsonFormatter()

    console = logging.StreamHandler()
    console.setLevel((console_level or level).upper())

    file_handler = RotatingFileHandler(
        log_dir / "tracker.jsonl",
        maxBytes=10_000_000,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    file_handler.setLevel(level)

    for handler in (console, file_handler):
        handler.setFormatter(fmt)
        setattr(handler, _OWNED, True)
        root.addHandler(handler)

    # Silence uvicorn access logs; the middleware logs requests itself
    logging.getLogger("uvicorn.access").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.error").setLevel(level)
