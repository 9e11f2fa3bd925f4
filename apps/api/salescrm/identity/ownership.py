from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Iterable
from dataclasses import dataclass

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from salescrm.crm.models import Prospect, Sale
from salescrm.errors import ConflictError, CRMError, InternalError, ValidationError
from salescrm.identity.models import Team, User
from salescrm.identity.roles import Role
from salescrm.metrics import observe_ownership_cascade
from salescrm.otel import get_tracer
from salescrm.payouts.models import Payout


logger = logging.getLogger("salescrm.ownership")
tracer = get_tracer("salescrm.ownership")


@dataclass(frozen=True, slots=True)
class OwnerPointers:
    """The two ownership columns every prospect and sale carries, always set together."""

    sales_executive_id: uuid.UUID
    team_lead_id: uuid.UUID

    def as_values(self) -> dict[str, uuid.UUID]:
        return {"sales_executive_id": self.sales_executive_id, "team_lead_id": self.team_lead_id}


def owner_pointers(owner: User, *, unassigned_error: type[CRMError] = InternalError) -> OwnerPointers:
    """Derive the denormalized team-lead pointer for a record owned by ``owner``."""

    role = owner.role_enum
    if role is Role.TEAM_LEAD:
        return OwnerPointers(sales_executive_id=owner.id, team_lead_id=owner.id)
    if role is Role.SALES_EXECUTIVE:
        if owner.manager_id is None:
            raise unassigned_error("Executive not linked to a team lead")
        return OwnerPointers(sales_executive_id=owner.id, team_lead_id=owner.manager_id)
    raise ValidationError("Records can only be owned by sales executives or team leads")


def team_led_by(session: Session, team_lead_id: uuid.UUID) -> Team | None:
    return session.scalar(select(Team).where(Team.team_lead_id == team_lead_id))


def team_member_ids(session: Session, team_id: uuid.UUID) -> list[uuid.UUID]:
    stmt = select(User.id).where(User.team_id == team_id, User.role == Role.SALES_EXECUTIVE.value)
    return list(session.scalars(stmt).all())


def restamp_owned_records(session: Session, executive_ids: Collection[uuid.UUID], team_lead: User | None) -> None:
    """Recompute the chain cached on records owned by executives whose lead changed.

    Prospect and sale pointers are non-nullable, so an unassigned executive's
    records keep their last lead until the executive is assigned again.
    Payouts follow the chain exactly.
    """

    ids = list(executive_ids)
    if not ids:
        return
    if team_lead is not None:
        for model in (Prospect, Sale):
            session.execute(
                update(model)
                .where(model.sales_executive_id.in_(ids))
                .values(team_lead_id=team_lead.id)
                .execution_options(synchronize_session="fetch")
            )
    session.execute(
        update(Payout)
        .where(Payout.user_id.in_(ids))
        .values(
            team_lead_id=team_lead.id if team_lead is not None else None,
            manager_id=team_lead.manager_id if team_lead is not None else None,
        )
        .execution_options(synchronize_session="fetch")
    )


def assign_executive(session: Session, executive: User, team_lead: User) -> None:
    if executive.role != Role.SALES_EXECUTIVE.value:
        raise ValidationError("Only sales executives can report to a team lead")
    if team_lead.role != Role.TEAM_LEAD.value:
        raise ValidationError("Executives can only be assigned to a team lead")
    if team_lead.team_id is None:
        raise ValidationError("Team lead does not have an associated team")

    executive.manager_id = team_lead.id
    executive.team_id = team_lead.team_id
    session.flush()
    restamp_owned_records(session, [executive.id], team_lead)


def unassign_executive(session: Session, executive: User) -> None:
    executive.manager_id = None
    executive.team_id = None
    session.flush()
    restamp_owned_records(session, [executive.id], None)


def create_team(session: Session, team_lead: User, name: str) -> Team:
    if team_lead.role != Role.TEAM_LEAD.value:
        raise ValidationError("Teams can only be led by a team lead")
    if team_led_by(session, team_lead.id) is not None:
        raise ConflictError("This team lead is already assigned to a team")
    if session.scalar(select(Team.id).where(Team.name == name)) is not None:
        raise ConflictError(f"A team named '{name}' already exists")

    team = Team(name=name, team_lead_id=team_lead.id)
    session.add(team)
    session.flush()
    team_lead.team_id = team.id
    session.flush()
    return team


def reassign_team_lead(session: Session, team: Team, new_lead: User) -> None:
    """Hand a team to another lead; its members follow the new lead."""

    if new_lead.id == team.team_lead_id:
        return
    if new_lead.role != Role.TEAM_LEAD.value:
        raise ValidationError("New team lead is not a team lead")
    existing = team_led_by(session, new_lead.id)
    if existing is not None and existing.id != team.id:
        raise ValidationError("New team lead is already assigned to another team")

    with tracer.start_as_current_span("ownership.reassign_team_lead") as span:
        span.set_attribute("team_id", str(team.id))
        old_lead = session.get(User, team.team_lead_id)
        if old_lead is not None and old_lead.team_id == team.id:
            old_lead.team_id = None

        team.team_lead_id = new_lead.id
        new_lead.team_id = team.id
        session.flush()

        members = team_member_ids(session, team.id)
        session.execute(
            update(User)
            .where(User.id.in_(members))
            .values(manager_id=new_lead.id)
            .execution_options(synchronize_session="fetch")
        )
        restamp_owned_records(session, members, new_lead)

    observe_ownership_cascade("reassign_team_lead")
    logger.info(
        "ownership.team_lead_reassigned",
        extra={"team_id": str(team.id), "user_id": str(new_lead.id)},
    )


def add_members(session: Session, team: Team, executive_ids: Iterable[uuid.UUID]) -> int:
    """All-or-nothing: every id must be an existing sales executive."""

    requested = set(executive_ids)
    if not requested:
        return 0
    eligible = session.scalars(
        select(User.id).where(User.id.in_(requested), User.role == Role.SALES_EXECUTIVE.value)
    ).all()
    if len(eligible) != len(requested):
        raise ValidationError("One or more ids are not valid sales executives")

    result = session.execute(
        update(User)
        .where(User.id.in_(requested), User.role == Role.SALES_EXECUTIVE.value)
        .values(team_id=team.id, manager_id=team.team_lead_id)
        .execution_options(synchronize_session="fetch")
    )
    restamp_owned_records(session, requested, session.get(User, team.team_lead_id))
    return result.rowcount


def remove_members(session: Session, team: Team, executive_ids: Iterable[uuid.UUID]) -> int:
    """Unassign only those ids that currently belong to exactly this team."""

    requested = set(executive_ids)
    if not requested:
        return 0
    removed = [member_id for member_id in team_member_ids(session, team.id) if member_id in requested]
    if not removed:
        return 0
    session.execute(
        update(User)
        .where(User.id.in_(removed))
        .values(team_id=None, manager_id=None)
        .execution_options(synchronize_session="fetch")
    )
    restamp_owned_records(session, removed, None)
    return len(removed)


def delete_team(session: Session, team: Team) -> None:
    """Unassign the lead and every member, then drop the team row."""

    with tracer.start_as_current_span("ownership.delete_team") as span:
        span.set_attribute("team_id", str(team.id))
        session.execute(
            update(User)
            .where(User.id == team.team_lead_id, User.team_id == team.id)
            .values(team_id=None)
            .execution_options(synchronize_session="fetch")
        )
        members = team_member_ids(session, team.id)
        session.execute(
            update(User)
            .where(User.id.in_(members))
            .values(team_id=None, manager_id=None)
            .execution_options(synchronize_session="fetch")
        )
        restamp_owned_records(session, members, None)
        affected = len(members)
        session.delete(team)
        session.flush()

    observe_ownership_cascade("delete_team")
    logger.info("ownership.team_deleted", extra={"team_id": str(team.id), "affected_count": affected})


def release_team_lead(session: Session, team_lead: User) -> int:
    """Ordered cascade run before a team lead is deleted.

    Reports are unassigned first (both pointers in one statement), then the
    team row is removed. Each step filters on current state, so re-running
    after a partial failure converges.
    """

    with tracer.start_as_current_span("ownership.release_team_lead") as span:
        span.set_attribute("user_id", str(team_lead.id))
        team = team_led_by(session, team_lead.id)
        dependents = User.manager_id == team_lead.id
        if team is not None:
            dependents = or_(dependents, User.team_id == team.id)

        reports = list(session.scalars(select(User.id).where(dependents, User.role == Role.SALES_EXECUTIVE.value)))
        session.execute(
            update(User)
            .where(User.id.in_(reports))
            .values(manager_id=None, team_id=None)
            .execution_options(synchronize_session="fetch")
        )
        restamp_owned_records(session, reports, None)
        affected = len(reports)

        session.execute(delete(Team).where(Team.team_lead_id == team_lead.id).execution_options(synchronize_session="fetch"))
        team_lead.team_id = None
        session.flush()

    observe_ownership_cascade("release_team_lead")
    logger.info(
        "ownership.team_lead_released",
        extra={"user_id": str(team_lead.id), "affected_count": affected},
    )
    return affected


def release_manager(session: Session, manager: User) -> int:
    """Detach team leads from a manager that is about to be deleted."""

    affected = session.execute(
        update(User)
        .where(User.manager_id == manager.id, User.role == Role.TEAM_LEAD.value)
        .values(manager_id=None)
        .execution_options(synchronize_session="fetch")
    ).rowcount
    session.execute(
        update(Payout)
        .where(Payout.manager_id == manager.id)
        .values(manager_id=None)
        .execution_options(synchronize_session="fetch")
    )
    session.flush()

    observe_ownership_cascade("release_manager")
    logger.info("ownership.manager_released", extra={"user_id": str(manager.id), "affected_count": affected})
    return affected


def change_role(session: Session, user: User, new_role: Role) -> None:
    """Role changes only for users nothing hangs off; pointers are cleared."""

    if user.role_enum is new_role:
        return
    has_reports = session.scalar(select(User.id).where(User.manager_id == user.id).limit(1)) is not None
    if has_reports or team_led_by(session, user.id) is not None:
        raise ValidationError("Reassign this user's reports and team before changing their role")

    user.role = new_role.value
    user.manager_id = None
    user.team_id = None
    session.flush()

    # a team lead's own records point at the lead
    if new_role is Role.TEAM_LEAD:
        for model in (Prospect, Sale):
            session.execute(
                update(model)
                .where(model.sales_executive_id == user.id)
                .values(team_lead_id=user.id)
                .execution_options(synchronize_session="fetch")
            )
    restamp_owned_records(session, [user.id], None)


def set_team_lead_manager(session: Session, team_lead: User, manager: User | None) -> None:
    if manager is not None and manager.role != Role.MANAGER.value:
        raise ValidationError("A team lead can only report to a manager")
    team_lead.manager_id = manager.id if manager is not None else None
    session.flush()

    # the lead's own payouts and those of its reports carry the manager
    session.execute(
        update(Payout)
        .where(or_(Payout.user_id == team_lead.id, Payout.team_lead_id == team_lead.id))
        .values(manager_id=team_lead.manager_id)
        .execution_options(synchronize_session="fetch")
    )
