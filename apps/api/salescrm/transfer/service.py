from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from salescrm import audit, events
from salescrm.core.database import unit_of_work
from salescrm.crm.models import Prospect, Sale
from salescrm.errors import NotFoundError, ValidationError
from salescrm.identity.models import User
from salescrm.identity.ownership import owner_pointers
from salescrm.identity.roles import OWNER_ROLES, Role
from salescrm.metrics import observe_transfer
from salescrm.otel import get_tracer
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.policies import Resource, ResourceAction, authorize_internal_transfer, require
from salescrm.platform.security.rls import caller_direct_reports
from salescrm.transfer.models import TransferDataType, TransferLog, TransferType
from salescrm.transfer.schemas import FinanceTransferRequest, InternalTransferRequest


logger = logging.getLogger("salescrm.transfer")
tracer = get_tracer("salescrm.transfer")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _unique(ids: list[uuid.UUID]) -> list[uuid.UUID]:
    return list(dict.fromkeys(ids))


@dataclass(slots=True)
class TransferOutcome:
    log: TransferLog
    requested_count: int
    modified_count: int
    amount: Decimal | None = None


class TransferService:
    def transfer_internal(self, session: Session, ctx: AuthContext, dto: InternalTransferRequest) -> TransferOutcome:
        require(ctx, Resource.INTERNAL_TRANSFER, ResourceAction.CREATE)
        if dto.source_user_id == dto.target_user_id:
            raise ValidationError("Source and target user must be different")

        source = session.get(User, dto.source_user_id)
        target = session.get(User, dto.target_user_id)
        if source is None or target is None:
            raise NotFoundError("Source or target user not found")
        if source.role_enum not in OWNER_ROLES or target.role_enum not in OWNER_ROLES:
            raise ValidationError("Data can only be transferred between sales executives and team leads")

        authorize_internal_transfer(session, ctx, source, target)
        pointers = owner_pointers(target, unassigned_error=ValidationError)

        model: type[Prospect] | type[Sale] = Prospect if dto.data_type is TransferDataType.PROSPECTS else Sale
        requested = _unique(dto.data_ids)

        with tracer.start_as_current_span("transfer.internal") as span:
            span.set_attribute("data_type", dto.data_type.value)
            span.set_attribute("requested_count", len(requested))
            with unit_of_work(session):
                # Matching on the current owner turns a stale or repeated call into a no-op.
                moved = session.execute(
                    update(model)
                    .where(model.id.in_(requested), model.sales_executive_id == source.id)
                    .values(**pointers.as_values())
                    .execution_options(synchronize_session="fetch")
                ).rowcount
                if moved == 0:
                    raise NotFoundError("No matching data found to transfer or data already transferred")

                log = TransferLog(
                    transfer_type=TransferType.INTERNAL.value,
                    transferred_by_id=ctx.user_id,
                    transferred_from_id=source.id,
                    transferred_to_id=target.id,
                    data_type=dto.data_type.value,
                    data_ids=[str(item) for item in requested],
                    data_count=moved,
                )
                session.add(log)
            span.set_attribute("moved_count", moved)

        observe_transfer(TransferType.INTERNAL.value, moved)
        audit.record(
            actor_user_id=ctx.actor,
            entity_type="transfer.internal",
            entity_id=str(log.id),
            action="transfer.internal",
            before={"owner_id": str(source.id)},
            after={"owner_id": str(target.id), "moved_count": moved, "requested_count": len(requested)},
            correlation_id=ctx.correlation_id,
        )
        events.publish(
            events.INTERNAL_TRANSFER_COMPLETED,
            ctx.actor,
            {
                "transfer_log_id": str(log.id),
                "data_type": dto.data_type.value,
                "from_id": str(source.id),
                "to_id": str(target.id),
                "moved_count": moved,
            },
        )
        logger.info(
            "transfer.internal.completed",
            extra={
                "actor_id": ctx.actor,
                "transfer_type": TransferType.INTERNAL.value,
                "data_type": dto.data_type.value,
                "requested_count": len(requested),
                "moved_count": moved,
            },
        )
        return TransferOutcome(log=log, requested_count=len(requested), modified_count=moved)

    def transfer_to_finance(self, session: Session, ctx: AuthContext, dto: FinanceTransferRequest) -> TransferOutcome:
        require(ctx, Resource.FINANCE_TRANSFER, ResourceAction.CREATE, "Only managers can transfer data to finance")
        requested = _unique(dto.sales_ids)
        stamp = utcnow()

        with tracer.start_as_current_span("transfer.finance") as span:
            span.set_attribute("requested_count", len(requested))
            with unit_of_work(session):
                moved = session.execute(
                    update(Sale)
                    .where(Sale.id.in_(requested), Sale.is_transferred_to_finance.is_(False))
                    .values(is_transferred_to_finance=True, transferred_to_finance_date=stamp)
                    .execution_options(synchronize_session="fetch")
                ).rowcount
                if moved == 0:
                    raise NotFoundError("No eligible sales found to transfer to finance")

                # Only the rows flagged by this call carry this exact stamp.
                flagged = session.scalars(
                    select(Sale)
                    .where(Sale.id.in_(requested), Sale.transferred_to_finance_date == stamp)
                    .order_by(Sale.sale_date.asc())
                ).all()
                amount = sum((sale.amount for sale in flagged), Decimal("0"))

                log = TransferLog(
                    transfer_type=TransferType.FINANCE.value,
                    transferred_by_id=ctx.user_id,
                    data_type=TransferDataType.SALES.value,
                    data_ids=[str(item) for item in requested],
                    data_count=moved,
                    amount=amount,
                    company_name=", ".join(sale.company_name for sale in flagged),
                    client_name=", ".join(sale.client_name for sale in flagged),
                )
                session.add(log)
            span.set_attribute("moved_count", moved)

        observe_transfer(TransferType.FINANCE.value, moved)
        audit.record(
            actor_user_id=ctx.actor,
            entity_type="transfer.finance",
            entity_id=str(log.id),
            action="transfer.finance",
            before=None,
            after={"moved_count": moved, "requested_count": len(requested), "amount": str(amount)},
            correlation_id=ctx.correlation_id,
        )
        events.publish(
            events.FINANCE_TRANSFER_COMPLETED,
            ctx.actor,
            {"transfer_log_id": str(log.id), "moved_count": moved, "amount": str(amount)},
        )
        logger.info(
            "transfer.finance.completed",
            extra={
                "actor_id": ctx.actor,
                "transfer_type": TransferType.FINANCE.value,
                "requested_count": len(requested),
                "moved_count": moved,
            },
        )
        return TransferOutcome(log=log, requested_count=len(requested), modified_count=moved, amount=amount)

    def internal_history(self, session: Session, ctx: AuthContext) -> list[TransferLog]:
        require(
            ctx,
            Resource.INTERNAL_TRANSFER,
            ResourceAction.READ,
            "You do not have permission to view internal transfer history",
        )
        stmt = select(TransferLog).where(TransferLog.transfer_type == TransferType.INTERNAL.value)
        if ctx.role is Role.TEAM_LEAD:
            visible = {ctx.user_id, *caller_direct_reports(session, ctx)}
            stmt = stmt.where(
                or_(
                    TransferLog.transferred_by_id.in_(visible),
                    TransferLog.transferred_from_id.in_(visible),
                    TransferLog.transferred_to_id.in_(visible),
                )
            )
        return list(session.scalars(stmt.order_by(TransferLog.transfer_date.desc())).all())

    def finance_history(self, session: Session, ctx: AuthContext) -> list[TransferLog]:
        require(
            ctx,
            Resource.FINANCE_TRANSFER,
            ResourceAction.READ,
            "You do not have permission to view finance transfer history",
        )
        stmt = select(TransferLog).where(TransferLog.transfer_type == TransferType.FINANCE.value)
        return list(session.scalars(stmt.order_by(TransferLog.transfer_date.desc())).all())


transfer_service = TransferService()
