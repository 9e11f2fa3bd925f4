from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from salescrm.errors import NotFoundError
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.fls import filter_write_payload
from salescrm.platform.security.policies import Relationship, Resource, ResourceAction, authorize_record
from salescrm.platform.security.rls import OwnerScope


class BaseRepository:
    resource: Resource
    model: type[Any]
    owner_field = "sales_executive_id"
    label = "record"

    def get(self, session: Session, record_id: uuid.UUID) -> Any | None:
        return session.get(self.model, record_id)

    def get_or_404(self, session: Session, record_id: uuid.UUID) -> Any:
        record = self.get(session, record_id)
        if record is None:
            raise NotFoundError(f"No {self.label} found with that ID")
        return record

    def owner_column(self) -> Any:
        return getattr(self.model, self.owner_field)

    def apply_scope_query(self, query: Select[Any], scope: OwnerScope) -> Select[Any]:
        return scope.apply(query, self.owner_column())

    def validate_record_access(
        self,
        session: Session,
        ctx: AuthContext,
        record: Any,
        action: ResourceAction,
    ) -> Relationship:
        return authorize_record(session, ctx, self.resource, action, getattr(record, self.owner_field))

    def apply_write_security(
        self,
        payload: dict[str, Any],
        allowed: frozenset[str],
        ctx: AuthContext,
        *,
        record: Any | None = None,
    ) -> dict[str, Any]:
        entity_id = str(getattr(record, "id", "new"))
        return filter_write_payload(self.resource.value, payload, allowed, ctx, entity_id=entity_id)
