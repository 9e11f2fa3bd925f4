from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from salescrm.context import get_correlation_id
from salescrm.core.events import InternalEvent, event_bus

USER_DELETED = "user.deleted"
TEAM_DELETED = "team.deleted"
INTERNAL_TRANSFER_COMPLETED = "transfer.internal.completed"
FINANCE_TRANSFER_COMPLETED = "transfer.finance.completed"

DOMAIN_EVENT_TYPES = (
    USER_DELETED,
    TEAM_DELETED,
    INTERNAL_TRANSFER_COMPLETED,
    FINANCE_TRANSFER_COMPLETED,
)

published_events: list[dict[str, Any]] = []


def publish(event_type: str, actor_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    envelope: dict[str, Any] = {
        "event_type": event_type,
        "actor_id": actor_id,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "correlation_id": get_correlation_id(),
        "payload": payload,
    }
    published_events.append(envelope)
    event_bus.publish(InternalEvent(name=event_type, payload=envelope))
    return envelope
