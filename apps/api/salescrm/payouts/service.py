from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from salescrm import audit
from salescrm.core.database import unit_of_work
from salescrm.errors import ValidationError
from salescrm.identity.models import User
from salescrm.identity.roles import Role
from salescrm.payouts.models import Payout
from salescrm.payouts.schemas import PayoutCreate, PayoutUpdate
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.fls import PAYOUT_UPDATE_FIELDS
from salescrm.platform.security.policies import Resource, ResourceAction, require
from salescrm.platform.security.repository import BaseRepository


class PayoutRepository(BaseRepository):
    resource = Resource.PAYOUT
    model = Payout
    owner_field = "user_id"
    label = "payout record"


def payout_chain(session: Session, employee: User) -> tuple[uuid.UUID | None, uuid.UUID | None]:
    """(team_lead_id, manager_id) above a payout's employee."""

    if employee.role == Role.SALES_EXECUTIVE.value:
        team_lead = session.get(User, employee.manager_id) if employee.manager_id is not None else None
        return employee.manager_id, team_lead.manager_id if team_lead is not None else None
    if employee.role == Role.TEAM_LEAD.value:
        return None, employee.manager_id
    raise ValidationError("Payouts can only be issued to sales executives or team leads")


class PayoutService:
    repository = PayoutRepository()

    def create_payout(self, session: Session, ctx: AuthContext, dto: PayoutCreate) -> Payout:
        require(ctx, Resource.PAYOUT, ResourceAction.CREATE)
        employee = session.get(User, dto.user_id)
        if employee is None:
            raise ValidationError("Invalid user ID provided or user is not an eligible employee for payout")
        team_lead_id, manager_id = payout_chain(session, employee)

        with unit_of_work(session):
            payout = Payout(
                user_id=employee.id,
                team_lead_id=team_lead_id,
                manager_id=manager_id,
                month=dto.month,
                amount=dto.amount,
                duration=dto.duration,
                description=dto.description,
            )
            if dto.payout_date is not None:
                payout.payout_date = dto.payout_date
            session.add(payout)
        return payout

    def list_payouts(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        user_id: uuid.UUID | None = None,
        month: str | None = None,
        team_lead_id: uuid.UUID | None = None,
    ) -> list[Payout]:
        require(ctx, Resource.PAYOUT, ResourceAction.READ)
        stmt = select(Payout)
        if user_id is not None:
            stmt = stmt.where(Payout.user_id == user_id)
        if month:
            stmt = stmt.where(Payout.month == month)
        if team_lead_id is not None:
            stmt = stmt.where(Payout.team_lead_id == team_lead_id)
        return list(session.scalars(stmt.order_by(Payout.payout_date.desc())).all())

    def get_payout(self, session: Session, ctx: AuthContext, payout_id: uuid.UUID) -> Payout:
        require(ctx, Resource.PAYOUT, ResourceAction.READ)
        return self.repository.get_or_404(session, payout_id)

    def update_payout(self, session: Session, ctx: AuthContext, payout_id: uuid.UUID, dto: PayoutUpdate) -> Payout:
        require(ctx, Resource.PAYOUT, ResourceAction.UPDATE)
        payout = self.repository.get_or_404(session, payout_id)
        payload = self.repository.apply_write_security(
            dto.model_dump(exclude_unset=True),
            PAYOUT_UPDATE_FIELDS,
            ctx,
            record=payout,
        )
        with unit_of_work(session):
            for key, value in payload.items():
                if value is None and key in {"month", "amount"}:
                    continue
                setattr(payout, key, value)
        return payout

    def delete_payout(self, session: Session, ctx: AuthContext, payout_id: uuid.UUID) -> None:
        require(ctx, Resource.PAYOUT, ResourceAction.DELETE)
        payout = self.repository.get_or_404(session, payout_id)
        snapshot = {"user_id": str(payout.user_id), "month": payout.month, "amount": str(payout.amount)}
        with unit_of_work(session):
            session.delete(payout)

        audit.record(
            actor_user_id=ctx.actor,
            entity_type="payout",
            entity_id=str(payout_id),
            action="payout.deleted",
            before=snapshot,
            after=None,
            correlation_id=ctx.correlation_id,
        )


payout_service = PayoutService()
