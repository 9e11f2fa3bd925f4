from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, assert_never

from sqlalchemy import false, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement, Select

from salescrm import audit
from salescrm.errors import AuthorizationError, ValidationError
from salescrm.identity.models import User
from salescrm.identity.roles import Role
from salescrm.metrics import observe_scope_denied
from salescrm.platform.security.context import AuthContext


_REPORTS_CACHE_KEY = "scope.direct_reports"


@dataclass(frozen=True, slots=True)
class OwnerScope:
    """Set of owner ids whose records a caller may see. ``None`` means unrestricted."""

    user_ids: frozenset[uuid.UUID] | None

    @property
    def unrestricted(self) -> bool:
        return self.user_ids is None

    def contains(self, user_id: uuid.UUID | None) -> bool:
        if self.user_ids is None:
            return True
        return user_id is not None and user_id in self.user_ids

    def filter(self, column: Any) -> ColumnElement[bool] | None:
        if self.user_ids is None:
            return None
        if not self.user_ids:
            return false()
        return column.in_(self.user_ids)

    def apply(self, query: Select[Any], column: Any) -> Select[Any]:
        clause = self.filter(column)
        if clause is None:
            return query
        return query.where(clause)


UNRESTRICTED = OwnerScope(user_ids=None)


def direct_report_ids(session: Session, team_lead_id: uuid.UUID) -> list[uuid.UUID]:
    """Executives whose manager pointer is this team lead. One level only."""

    stmt = select(User.id).where(User.manager_id == team_lead_id, User.role == Role.SALES_EXECUTIVE.value)
    return list(session.scalars(stmt).all())


def caller_direct_reports(session: Session, ctx: AuthContext) -> frozenset[uuid.UUID]:
    cached = ctx._cache.get(_REPORTS_CACHE_KEY)
    if isinstance(cached, frozenset):
        return cached
    reports = frozenset(direct_report_ids(session, ctx.user_id)) if ctx.role is Role.TEAM_LEAD else frozenset()
    ctx._cache[_REPORTS_CACHE_KEY] = reports
    return reports


def base_owner_scope(session: Session, ctx: AuthContext) -> OwnerScope:
    role = ctx.role
    if role is Role.SALES_EXECUTIVE:
        return OwnerScope(user_ids=frozenset({ctx.user_id}))
    elif role is Role.TEAM_LEAD:
        return OwnerScope(user_ids=frozenset({ctx.user_id}) | caller_direct_reports(session, ctx))
    elif role is Role.MANAGER:
        return UNRESTRICTED
    else:
        assert_never(role)


def resolve_owner_scope(
    session: Session,
    ctx: AuthContext,
    resource: str,
    *,
    target_user_id: uuid.UUID | None = None,
    team_lead_id: uuid.UUID | None = None,
) -> OwnerScope:
    """Compute the owner-id filter for ``resource`` as seen by the caller.

    ``team_lead_id`` narrows to that lead plus their direct reports and
    ``target_user_id`` narrows to a single owner. Both are checked against the
    caller's own scope; a manager's unrestricted scope never rejects them.
    """

    scope = base_owner_scope(session, ctx)

    if team_lead_id is not None:
        if scope.unrestricted:
            lead = session.get(User, team_lead_id)
            if lead is None or lead.role != Role.TEAM_LEAD.value:
                raise ValidationError("Specified team lead not found or is not a team lead")
            scope = OwnerScope(user_ids=frozenset({team_lead_id, *direct_report_ids(session, team_lead_id)}))
        elif team_lead_id != ctx.user_id or ctx.role is not Role.TEAM_LEAD:
            deny_scope(ctx, resource, reason="team_lead_out_of_scope", value=str(team_lead_id))
            raise AuthorizationError("You can only view records of your own team")

    if target_user_id is not None:
        if scope.contains(target_user_id):
            scope = OwnerScope(user_ids=frozenset({target_user_id}))
        elif ctx.role is Role.MANAGER:
            # manager narrowed by team lead asked for someone outside that team
            scope = OwnerScope(user_ids=frozenset())
        else:
            deny_scope(ctx, resource, reason="target_out_of_scope", value=str(target_user_id))
            raise AuthorizationError("You do not have permission to view records for this user")

    return scope


def deny_scope(ctx: AuthContext, resource: str, *, reason: str, value: str | None = None) -> None:
    observe_scope_denied(resource=resource, role=ctx.role.value)
    audit.record(
        actor_user_id=ctx.actor,
        entity_type="security.scope",
        entity_id=value or "scope",
        action="scope.denied",
        before=None,
        after={
            "resource": resource,
            "reason": reason,
            "role": ctx.role.value,
        },
        correlation_id=ctx.correlation_id,
    )
