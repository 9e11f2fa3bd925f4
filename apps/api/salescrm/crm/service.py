from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, assert_never

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from salescrm import audit
from salescrm.core.database import unit_of_work
from salescrm.core.timewindow import month_window, resolve_window
from salescrm.crm.models import (
    ACTIVITY_CONVERTED,
    ACTIVITY_DELETED,
    ACTIVITY_NEW,
    DELETE_PROFILE_MARKER,
    CallLog,
    Prospect,
    Sale,
)
from salescrm.crm.repositories import CallLogRepository, ProspectRepository, SaleRepository
from salescrm.crm.schemas import CallLogCreate, CallLogUpdate, ProspectCreate, ProspectUpdate, SaleCreate
from salescrm.errors import AuthorizationError, NotFoundError, ValidationError
from salescrm.identity.models import User
from salescrm.identity.ownership import OwnerPointers, owner_pointers
from salescrm.identity.roles import Role
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.fls import CALL_LOG_UPDATE_FIELDS, PROSPECT_UPDATE_FIELDS
from salescrm.platform.security.policies import (
    Resource,
    ResourceAction,
    authorize_assignment,
    deny,
    require,
)
from salescrm.platform.security.rls import resolve_owner_scope


logger = logging.getLogger("salescrm.crm")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_record_owner(
    session: Session,
    ctx: AuthContext,
    resource: Resource,
    assigned_executive_id: uuid.UUID | None,
) -> OwnerPointers:
    """Pick the owner of a new prospect/sale and derive both owner pointers."""

    require(ctx, resource, ResourceAction.CREATE)
    role = ctx.role
    if role is Role.SALES_EXECUTIVE or role is Role.TEAM_LEAD:
        assignee_id = assigned_executive_id or ctx.user_id
        assignee = session.get(User, assignee_id)
        if assignee is None:
            raise ValidationError("Assigned executive not found")
        authorize_assignment(session, ctx, resource, assignee)
        return owner_pointers(assignee)
    elif role is Role.MANAGER:
        if assigned_executive_id is None:
            raise ValidationError(f"Manager must assign the {resource.value} to a sales executive")
        assignee = session.get(User, assigned_executive_id)
        if assignee is None:
            raise ValidationError("Assigned executive not found")
        authorize_assignment(session, ctx, resource, assignee)
        return owner_pointers(assignee, unassigned_error=ValidationError)
    else:
        assert_never(role)


class ProspectService:
    repository = ProspectRepository()

    def create_prospect(self, session: Session, ctx: AuthContext, dto: ProspectCreate) -> Prospect:
        pointers = resolve_record_owner(session, ctx, Resource.PROSPECT, dto.assigned_executive_id)
        now = utcnow()
        with unit_of_work(session):
            prospect = Prospect(
                company_name=dto.company_name,
                client_name=dto.client_name,
                email_id=dto.email_id,
                contact_no=dto.contact_no,
                reminder_date=dto.reminder_date,
                comment=dto.comment,
                activity=ACTIVITY_NEW,
                is_untouched=True,
                last_update=now,
                created_at=now,
                **pointers.as_values(),
            )
            session.add(prospect)
        return prospect

    def list_prospects(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        member_id: uuid.UUID | None = None,
        day: date | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Prospect]:
        require(ctx, Resource.PROSPECT, ResourceAction.READ)
        scope = resolve_owner_scope(session, ctx, Resource.PROSPECT.value, target_user_id=member_id)
        stmt = self.repository.apply_scope_query(select(Prospect), scope)
        window = resolve_window(day=day, start=start_date, end=end_date)
        if window is not None:
            stmt = window.apply(stmt, Prospect.created_at)
        return list(session.scalars(stmt.order_by(Prospect.last_update.desc())).all())

    def list_untouched(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        member_id: uuid.UUID | None = None,
        day: date | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> list[Prospect]:
        if ctx.role is Role.SALES_EXECUTIVE:
            deny(ctx, Resource.PROSPECT, ResourceAction.READ, reason="untouched_view")
            raise AuthorizationError("Sales executives do not have access to the untouched data view")

        scope = resolve_owner_scope(session, ctx, Resource.PROSPECT.value, target_user_id=member_id)
        stmt = self.repository.apply_scope_query(select(Prospect).where(Prospect.is_untouched.is_(True)), scope)
        window = resolve_window(day=day, start=start_date, end=end_date)
        if window is not None:
            stmt = window.apply(stmt, Prospect.created_at)
        return list(session.scalars(stmt.order_by(Prospect.created_at.desc())).all())

    def get_prospect(self, session: Session, ctx: AuthContext, prospect_id: uuid.UUID) -> Prospect:
        prospect = self.repository.get_or_404(session, prospect_id)
        self.repository.validate_record_access(session, ctx, prospect, ResourceAction.READ)
        return prospect

    def update_prospect(
        self,
        session: Session,
        ctx: AuthContext,
        prospect_id: uuid.UUID,
        dto: ProspectUpdate,
    ) -> Prospect:
        prospect = self.repository.get_or_404(session, prospect_id)
        self.repository.validate_record_access(session, ctx, prospect, ResourceAction.UPDATE)
        payload = self.repository.apply_write_security(
            dto.model_dump(exclude_unset=True),
            PROSPECT_UPDATE_FIELDS,
            ctx,
            record=prospect,
        )

        with unit_of_work(session):
            for key, value in payload.items():
                if value is None and key in {"company_name", "client_name", "activity"}:
                    continue
                setattr(prospect, key, value)
            if payload.get("activity"):
                prospect.last_update = utcnow()
                prospect.is_untouched = False
        return prospect

    def delete_prospect(self, session: Session, ctx: AuthContext, prospect_id: uuid.UUID) -> None:
        require(ctx, Resource.PROSPECT, ResourceAction.DELETE)
        prospect = self.repository.get_or_404(session, prospect_id)
        snapshot = {"sales_executive_id": str(prospect.sales_executive_id), "activity": prospect.activity}

        with unit_of_work(session):
            session.execute(
                update(CallLog)
                .where(CallLog.prospect_id == prospect.id)
                .values(prospect_id=None)
                .execution_options(synchronize_session="fetch")
            )
            session.execute(
                update(Sale)
                .where(Sale.prospect_id == prospect.id)
                .values(prospect_id=None)
                .execution_options(synchronize_session="fetch")
            )
            session.delete(prospect)

        audit.record(
            actor_user_id=ctx.actor,
            entity_type="prospect",
            entity_id=str(prospect_id),
            action="prospect.deleted",
            before=snapshot,
            after=None,
            correlation_id=ctx.correlation_id,
        )

    def referenced_prospect(self, session: Session, ctx: AuthContext, prospect_id: uuid.UUID) -> Prospect:
        """A prospect linked from a sale or call log: must exist and be writable by the caller."""

        prospect = self.repository.get(session, prospect_id)
        if prospect is None:
            raise NotFoundError("Referenced prospect not found")
        self.repository.validate_record_access(session, ctx, prospect, ResourceAction.UPDATE)
        return prospect


class SaleService:
    repository = SaleRepository()

    def create_sale(self, session: Session, ctx: AuthContext, dto: SaleCreate) -> Sale:
        pointers = resolve_record_owner(session, ctx, Resource.SALE, dto.assigned_executive_id)
        prospect = (
            prospect_service.referenced_prospect(session, ctx, dto.prospect_id) if dto.prospect_id is not None else None
        )

        values: dict[str, Any] = {
            "company_name": dto.company_name,
            "client_name": dto.client_name,
            "email_id": dto.email_id,
            "contact_no": dto.contact_no,
            "services": dto.services,
            "amount": dto.amount,
            "prospect_id": dto.prospect_id,
            **pointers.as_values(),
        }
        if dto.sale_date is not None:
            values["sale_date"] = dto.sale_date

        with unit_of_work(session):
            sale = Sale(**values)
            session.add(sale)
            if prospect is not None:
                prospect.activity = ACTIVITY_CONVERTED
                prospect.is_untouched = False
                prospect.last_update = utcnow()

        logger.info(
            "sale.created",
            extra={"resource": Resource.SALE.value, "actor_id": ctx.actor, "user_id": str(sale.sales_executive_id)},
        )
        return sale

    def list_sales(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        month: int | None = None,
        team_lead_id: uuid.UUID | None = None,
        executive_id: uuid.UUID | None = None,
        client_name: str | None = None,
    ) -> list[Sale]:
        require(ctx, Resource.SALE, ResourceAction.READ)
        if team_lead_id is not None and ctx.role is not Role.MANAGER:
            deny(ctx, Resource.SALE, ResourceAction.READ, reason="team_lead_filter")
            raise AuthorizationError("Only managers can filter sales by team lead")

        scope = resolve_owner_scope(
            session,
            ctx,
            Resource.SALE.value,
            target_user_id=executive_id,
            team_lead_id=team_lead_id,
        )
        stmt = self.repository.apply_scope_query(select(Sale), scope)
        if month is not None:
            stmt = month_window(utcnow().year, month).apply(stmt, Sale.sale_date)
        if client_name:
            stmt = stmt.where(Sale.client_name.ilike(f"%{client_name}%"))
        return list(session.scalars(stmt.order_by(Sale.sale_date.desc())).all())

    def get_sale(self, session: Session, ctx: AuthContext, sale_id: uuid.UUID) -> Sale:
        sale = self.repository.get_or_404(session, sale_id)
        self.repository.validate_record_access(session, ctx, sale, ResourceAction.READ)
        return sale

    def delete_sale(self, session: Session, ctx: AuthContext, sale_id: uuid.UUID) -> None:
        require(ctx, Resource.SALE, ResourceAction.DELETE)
        sale = self.repository.get_or_404(session, sale_id)
        snapshot = {"amount": str(sale.amount), "sales_executive_id": str(sale.sales_executive_id)}
        with unit_of_work(session):
            session.delete(sale)

        audit.record(
            actor_user_id=ctx.actor,
            entity_type="sale",
            entity_id=str(sale_id),
            action="sale.deleted",
            before=snapshot,
            after=None,
            correlation_id=ctx.correlation_id,
        )


class CallLogService:
    repository = CallLogRepository()

    def create_call_log(self, session: Session, ctx: AuthContext, dto: CallLogCreate) -> CallLog:
        require(
            ctx,
            Resource.CALL_LOG,
            ResourceAction.CREATE,
            "Only sales executives can log calls",
        )
        prospect = (
            prospect_service.referenced_prospect(session, ctx, dto.prospect_id) if dto.prospect_id is not None else None
        )

        with unit_of_work(session):
            call_log = CallLog(
                company_name=dto.company_name,
                client_name=dto.client_name,
                email_id=dto.email_id,
                contact_no=dto.contact_no,
                activity=dto.activity,
                comment=dto.comment,
                sales_executive_id=ctx.user_id,
                prospect_id=dto.prospect_id,
            )
            session.add(call_log)
            if prospect is not None:
                _stamp_prospect(prospect, dto.activity)
        return call_log

    def list_call_logs(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        day: date | None = None,
        company_name: str | None = None,
        executive_id: uuid.UUID | None = None,
    ) -> list[CallLog]:
        require(ctx, Resource.CALL_LOG, ResourceAction.READ)
        scope = resolve_owner_scope(session, ctx, Resource.CALL_LOG.value, target_user_id=executive_id)
        stmt = self.repository.apply_scope_query(select(CallLog), scope)
        window = resolve_window(day=day)
        if window is not None:
            stmt = window.apply(stmt, CallLog.call_date)
        if company_name:
            stmt = stmt.where(CallLog.company_name.ilike(f"%{company_name}%"))
        return list(session.scalars(stmt.order_by(CallLog.call_date.desc())).all())

    def get_call_log(self, session: Session, ctx: AuthContext, call_log_id: uuid.UUID) -> CallLog:
        call_log = self.repository.get_or_404(session, call_log_id)
        self.repository.validate_record_access(session, ctx, call_log, ResourceAction.READ)
        return call_log

    def update_call_log(
        self,
        session: Session,
        ctx: AuthContext,
        call_log_id: uuid.UUID,
        dto: CallLogUpdate,
    ) -> CallLog:
        call_log = self.repository.get_or_404(session, call_log_id)
        self.repository.validate_record_access(session, ctx, call_log, ResourceAction.UPDATE)
        payload = self.repository.apply_write_security(
            dto.model_dump(exclude_unset=True),
            CALL_LOG_UPDATE_FIELDS,
            ctx,
            record=call_log,
        )

        with unit_of_work(session):
            if payload.get("activity"):
                call_log.activity = payload["activity"]
            if "comment" in payload:
                call_log.comment = payload["comment"]
            if call_log.prospect_id is not None and call_log.activity == DELETE_PROFILE_MARKER:
                prospect = session.get(Prospect, call_log.prospect_id)
                if prospect is not None:
                    _stamp_prospect(prospect, call_log.activity)
        return call_log


def _stamp_prospect(prospect: Prospect, activity: str) -> None:
    prospect.activity = ACTIVITY_DELETED if activity == DELETE_PROFILE_MARKER else activity
    prospect.is_untouched = False
    prospect.last_update = utcnow()


prospect_service = ProspectService()
sale_service = SaleService()
call_log_service = CallLogService()
