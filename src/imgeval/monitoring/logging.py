from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import IO, Any

PACKAGE_LOGGER = "imgeval"
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    ``component`` is the logger name below ``imgeval`` (``ingest``, ``store``, ...).
    A ``context`` dict passed through ``extra`` is merged into the object without
    overwriting the standard keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": _component(record.name),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            for key, value in context.items():
                payload.setdefault(str(key), value)
        return json.dumps(payload, ensure_ascii=True, default=str)


class _PackageHandler(logging.StreamHandler):
    """Marks the handler ``configure_logging`` owns so a re-run replaces only it."""


def _component(name: str) -> str:
    if name == PACKAGE_LOGGER:
        return PACKAGE_LOGGER
    prefix = PACKAGE_LOGGER + "."
    return name[len(prefix):] if name.startswith(prefix) else name


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Route the ``imgeval.*`` loggers to one stream handler.

    Only the package logger is touched: the root logger and handlers added by an
    embedding application are left alone, and records do not propagate to root.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, _PackageHandler):
            logger.removeHandler(handler)
            handler.close()

    handler = _PackageHandler(stream)
    if json_logs:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger
