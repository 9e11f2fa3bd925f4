from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from salescrm.context import get_correlation_id
from salescrm.core.config import Settings, get_settings


ERROR_FIELD_LIMIT = 500
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"

# Only these extras reach the output; user payloads, passwords and bank details never do.
_KNOWN_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "actor_id",
        "actor_role",
        "user_id",
        "team_id",
        "resource",
        "action",
        "transfer_type",
        "data_type",
        "requested_count",
        "moved_count",
        "affected_count",
        "dropped_fields",
        "route_group",
        "retry_after",
        "event_name",
        "error",
    }
)

_default_record_factory = logging.getLogRecordFactory()


def _correlated_record(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _default_record_factory(*args, **kwargs)
    if getattr(record, "correlation_id", None) is None:
        record.correlation_id = get_correlation_id()
    return record


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = {key: value for key, value in vars(record).items() if key in _KNOWN_FIELDS}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:ERROR_FIELD_LIMIT]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "fields": fields,
        }
        return json.dumps(payload, default=str)


def _formatter(settings: Settings) -> logging.Formatter:
    if settings.log_json:
        return JsonLogFormatter()
    return logging.Formatter(PLAIN_FORMAT)


def configure_logging(settings: Settings | None = None) -> None:
    root = logging.getLogger()
    if getattr(root, "_salescrm_configured", False):
        return

    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(_formatter(settings))

    logging.setLogRecordFactory(_correlated_record)
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root._salescrm_configured = True  # type: ignore[attr-defined]
