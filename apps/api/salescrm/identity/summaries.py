from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from salescrm.identity.models import User
from salescrm.identity.schemas import UserSummary


ReadModel = TypeVar("ReadModel", bound=BaseModel)

OWNER_SUMMARIES: Mapping[str, str] = {
    "sales_executive_id": "sales_executive",
    "team_lead_id": "team_lead",
}


def load_users(session: Session, ids: Iterable[uuid.UUID | None]) -> dict[uuid.UUID, User]:
    wanted = {user_id for user_id in ids if user_id is not None}
    if not wanted:
        return {}
    return {user.id: user for user in session.scalars(select(User).where(User.id.in_(wanted)))}


def with_user_summaries(
    session: Session,
    schema: type[ReadModel],
    items: Sequence[Any],
    fields: Mapping[str, str] = OWNER_SUMMARIES,
) -> list[ReadModel]:
    """Validate ``items`` into ``schema`` and fill each ``{name, email}`` summary named in ``fields``.

    Ids whose user no longer exists leave the summary as None.
    """

    present = {id_field: summary for id_field, summary in fields.items() if summary in schema.model_fields}
    people = load_users(session, (getattr(item, id_field) for item in items for id_field in present))

    reads: list[ReadModel] = []
    for item in items:
        updates: dict[str, UserSummary | None] = {}
        for id_field, summary in present.items():
            person = people.get(getattr(item, id_field))
            updates[summary] = UserSummary.model_validate(person) if person is not None else None
        reads.append(schema.model_validate(item).model_copy(update=updates))
    return reads
