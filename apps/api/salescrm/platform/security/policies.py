from __future__ import annotations

import uuid
from enum import StrEnum
from typing import assert_never

from sqlalchemy.orm import Session

from salescrm import audit
from salescrm.errors import AuthorizationError
from salescrm.identity.models import User
from salescrm.identity.roles import Role
from salescrm.metrics import observe_scope_denied
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.rls import caller_direct_reports


class Resource(StrEnum):
    PROSPECT = "prospect"
    SALE = "sale"
    CALL_LOG = "call_log"
    USER = "user"
    TEAM = "team"
    PAYOUT = "payout"
    INTERNAL_TRANSFER = "transfer.internal"
    FINANCE_TRANSFER = "transfer.finance"
    MANAGER_REPORT = "report.manager"


class ResourceAction(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Relationship(StrEnum):
    SELF = "self"
    DIRECT_REPORT = "direct_report"
    UNRELATED = "unrelated"


_R = ResourceAction.READ
_C = ResourceAction.CREATE
_U = ResourceAction.UPDATE
_D = ResourceAction.DELETE

_EXECUTIVE_GRANTS: dict[Resource, frozenset[ResourceAction]] = {
    Resource.PROSPECT: frozenset({_R, _C, _U}),
    Resource.SALE: frozenset({_R, _C}),
    Resource.CALL_LOG: frozenset({_R, _C, _U}),
    Resource.USER: frozenset({_R, _U}),
}

_TEAM_LEAD_GRANTS: dict[Resource, frozenset[ResourceAction]] = {
    Resource.PROSPECT: frozenset({_R, _C, _U}),
    Resource.SALE: frozenset({_R, _C}),
    Resource.CALL_LOG: frozenset({_R, _U}),
    Resource.USER: frozenset({_R, _C, _U}),
    Resource.TEAM: frozenset({_R}),
    Resource.INTERNAL_TRANSFER: frozenset({_R, _C}),
}

_MANAGER_GRANTS: dict[Resource, frozenset[ResourceAction]] = {
    Resource.PROSPECT: frozenset({_R, _C, _U, _D}),
    Resource.SALE: frozenset({_R, _C, _D}),
    Resource.CALL_LOG: frozenset({_R, _U}),
    Resource.USER: frozenset({_R, _C, _U, _D}),
    Resource.TEAM: frozenset({_R, _C, _U, _D}),
    Resource.PAYOUT: frozenset({_R, _C, _U, _D}),
    Resource.INTERNAL_TRANSFER: frozenset({_R, _C}),
    Resource.FINANCE_TRANSFER: frozenset({_R, _C}),
    Resource.MANAGER_REPORT: frozenset({_R}),
}


def _grants_for(role: Role) -> dict[Resource, frozenset[ResourceAction]]:
    if role is Role.SALES_EXECUTIVE:
        return _EXECUTIVE_GRANTS
    elif role is Role.TEAM_LEAD:
        return _TEAM_LEAD_GRANTS
    elif role is Role.MANAGER:
        return _MANAGER_GRANTS
    else:
        assert_never(role)


def _reachable_relationships(role: Role) -> frozenset[Relationship]:
    if role is Role.SALES_EXECUTIVE:
        return frozenset({Relationship.SELF})
    elif role is Role.TEAM_LEAD:
        return frozenset({Relationship.SELF, Relationship.DIRECT_REPORT})
    elif role is Role.MANAGER:
        return frozenset(Relationship)
    else:
        assert_never(role)


def is_allowed(ctx: AuthContext, resource: Resource, action: ResourceAction) -> bool:
    return action in _grants_for(ctx.role).get(resource, frozenset())


def require(ctx: AuthContext, resource: Resource, action: ResourceAction, message: str | None = None) -> None:
    if is_allowed(ctx, resource, action):
        return
    deny(ctx, resource, action, reason="role")
    raise AuthorizationError(message or f"You do not have permission to {action.value} {resource.value} records")


def relationship_to(session: Session, ctx: AuthContext, owner_id: uuid.UUID | None) -> Relationship:
    if owner_id is not None and owner_id == ctx.user_id:
        return Relationship.SELF
    if ctx.role is Role.TEAM_LEAD and owner_id in caller_direct_reports(session, ctx):
        return Relationship.DIRECT_REPORT
    return Relationship.UNRELATED


def authorize_record(
    session: Session,
    ctx: AuthContext,
    resource: Resource,
    action: ResourceAction,
    owner_id: uuid.UUID | None,
) -> Relationship:
    """Role check plus relationship check for a record owned by ``owner_id``."""

    require(ctx, resource, action)
    relationship = relationship_to(session, ctx, owner_id)
    if relationship not in _reachable_relationships(ctx.role):
        deny(ctx, resource, action, reason=relationship.value, entity_id=str(owner_id))
        raise AuthorizationError(f"You do not have permission to {action.value} this {resource.value.replace('_', ' ')}")
    return relationship


def authorize_assignment(session: Session, ctx: AuthContext, resource: Resource, assignee: User) -> None:
    """Check the caller may create a record owned by ``assignee``."""

    role = ctx.role
    if role is Role.SALES_EXECUTIVE:
        allowed = assignee.id == ctx.user_id
    elif role is Role.TEAM_LEAD:
        allowed = assignee.id == ctx.user_id or (
            assignee.role == Role.SALES_EXECUTIVE.value and assignee.id in caller_direct_reports(session, ctx)
        )
    elif role is Role.MANAGER:
        allowed = assignee.role == Role.SALES_EXECUTIVE.value
    else:
        assert_never(role)

    if not allowed:
        deny(ctx, resource, ResourceAction.CREATE, reason="assignee", entity_id=str(assignee.id))
        raise AuthorizationError("Assigned executive not found or not part of your team")


def authorize_user_creation(ctx: AuthContext, new_role: Role) -> None:
    require(ctx, Resource.USER, ResourceAction.CREATE)
    role = ctx.role
    if role is Role.SALES_EXECUTIVE:
        allowed = False
    elif role is Role.TEAM_LEAD:
        allowed = new_role is Role.SALES_EXECUTIVE
    elif role is Role.MANAGER:
        allowed = new_role in {Role.SALES_EXECUTIVE, Role.TEAM_LEAD}
    else:
        assert_never(role)

    if not allowed:
        deny(ctx, Resource.USER, ResourceAction.CREATE, reason=f"create_{new_role.value}")
        raise AuthorizationError(f"You cannot create users with role '{new_role.value}'")


def authorize_user_access(session: Session, ctx: AuthContext, target: User, action: ResourceAction) -> Relationship:
    """Read/update/delete checks on a user account."""

    if action is ResourceAction.DELETE:
        require(ctx, Resource.USER, action)
        if target.id == ctx.user_id:
            deny(ctx, Resource.USER, action, reason="self_delete", entity_id=str(target.id))
            raise AuthorizationError("Managers cannot delete their own account")
        return Relationship.UNRELATED

    return authorize_record(session, ctx, Resource.USER, action, target.id)


def authorize_internal_transfer(session: Session, ctx: AuthContext, source: User, target: User) -> None:
    """Team leads move data only between themselves and their direct reports."""

    require(ctx, Resource.INTERNAL_TRANSFER, ResourceAction.CREATE)
    if ctx.role is not Role.TEAM_LEAD:
        return

    for label, user in (("from", source), ("to", target)):
        if relationship_to(session, ctx, user.id) is Relationship.UNRELATED:
            deny(ctx, Resource.INTERNAL_TRANSFER, ResourceAction.CREATE, reason=f"{label}_unrelated", entity_id=str(user.id))
            raise AuthorizationError(f"You can only transfer data {label} yourself or your direct reports")


def deny(
    ctx: AuthContext,
    resource: Resource,
    action: ResourceAction,
    *,
    reason: str,
    entity_id: str | None = None,
) -> None:
    observe_scope_denied(resource=resource.value, role=ctx.role.value)
    audit.record(
        actor_user_id=ctx.actor,
        entity_type="security.policy",
        entity_id=entity_id or "policy",
        action="policy.denied",
        before=None,
        after={
            "resource": resource.value,
            "action": action.value,
            "reason": reason,
            "role": ctx.role.value,
        },
        correlation_id=ctx.correlation_id,
    )
