from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from salescrm.context import get_correlation_id


logger = logging.getLogger("salescrm.audit")

# Append-only trail of destructive mutations and access denials, newest last.
audit_entries: list[dict[str, Any]] = []


def record(
    *,
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor_user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "correlation_id": correlation_id or get_correlation_id(),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    audit_entries.append(entry)
    logger.debug("audit.recorded", extra={"action": action, "resource": entity_type, "actor_id": actor_user_id})
    return entry


def entries_for(action: str, *, entity_id: str | None = None) -> list[dict[str, Any]]:
    return [
        entry
        for entry in audit_entries
        if entry["action"] == action and (entity_id is None or entry["entity_id"] == entity_id)
    ]
