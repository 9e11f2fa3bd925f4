from __future__ import annotations

import heapq
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, assert_never

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from salescrm.core.config import get_settings
from salescrm.core.timewindow import (
    current_month_window,
    month_window,
    previous_month_window,
    resolve_window,
    today_window,
)
from salescrm.crm.models import ACTIVITY_CONVERTED, CallLog, Prospect, Sale
from salescrm.errors import ValidationError
from salescrm.identity.models import User
from salescrm.identity.ownership import team_led_by, team_member_ids
from salescrm.identity.roles import OWNER_ROLES, Role
from salescrm.payouts.models import Payout
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.policies import Resource, ResourceAction, require
from salescrm.platform.security.rls import resolve_owner_scope
from salescrm.reporting.schemas import (
    ActivityEntry,
    DashboardSummary,
    ExecutiveDashboard,
    ManagerDashboard,
    PerformanceRow,
    TeamLeadDashboard,
)
from salescrm.transfer.models import TransferLog, TransferType

ReportPeriod = Literal["day", "month"]


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def _count(session: Session, stmt: Select[Any]) -> int:
    return int(session.scalar(stmt) or 0)


def _sales_total(session: Session, *criteria: Any) -> Decimal:
    stmt = select(func.sum(Sale.amount))
    if criteria:
        stmt = stmt.where(*criteria)
    return _decimal(session.scalar(stmt))


def _grouped_counts(session: Session, stmt: Select[Any]) -> dict[uuid.UUID, int]:
    return {owner_id: int(total) for owner_id, total in session.execute(stmt).all()}


class ReportingService:
    def dashboard_summary(self, session: Session, ctx: AuthContext) -> DashboardSummary:
        role = ctx.role
        if role is Role.SALES_EXECUTIVE:
            return self._executive_dashboard(session, ctx)
        elif role is Role.TEAM_LEAD:
            return self._team_lead_dashboard(session, ctx)
        elif role is Role.MANAGER:
            return self._manager_dashboard(session)
        else:
            assert_never(role)

    def _executive_dashboard(self, session: Session, ctx: AuthContext) -> ExecutiveDashboard:
        own = Prospect.sales_executive_id == ctx.user_id
        last_month = previous_month_window()
        return ExecutiveDashboard(
            total_clients_data=_count(
                session, select(func.count(Prospect.id)).where(own, Prospect.activity == ACTIVITY_CONVERTED)
            ),
            total_sales=_sales_total(session, Sale.sales_executive_id == ctx.user_id),
            prospect_number=_count(
                session, select(func.count(Prospect.id)).where(own, Prospect.activity != ACTIVITY_CONVERTED)
            ),
            last_month_payout=_decimal(
                session.scalar(
                    select(func.sum(Payout.amount)).where(
                        Payout.user_id == ctx.user_id,
                        *last_month.criteria(Payout.payout_date),
                    )
                )
            ),
        )

    def _team_lead_dashboard(self, session: Session, ctx: AuthContext) -> TeamLeadDashboard:
        team = team_led_by(session, ctx.user_id)
        if team is None:
            return TeamLeadDashboard()

        members = team_member_ids(session, team.id)
        return TeamLeadDashboard(
            team_members=len(members),
            total_call_by_team=_count(
                session, select(func.count(CallLog.id)).where(CallLog.sales_executive_id.in_(members))
            ),
            total_prospect=_count(
                session, select(func.count(Prospect.id)).where(Prospect.sales_executive_id.in_(members))
            ),
            total_client_data=_count(session, select(func.count(Sale.id)).where(Sale.sales_executive_id.in_(members))),
        )

    def _manager_dashboard(self, session: Session) -> ManagerDashboard:
        today = today_window()
        return ManagerDashboard(
            total_sales=_sales_total(session),
            last_month_sales=_sales_total(session, *previous_month_window().criteria(Sale.sale_date)),
            this_month_sales=_sales_total(session, *current_month_window().criteria(Sale.sale_date)),
            today_sales=_sales_total(session, *today.criteria(Sale.sale_date)),
            total_transfer_data=_count(
                session,
                select(func.sum(TransferLog.data_count)).where(TransferLog.transfer_type == TransferType.INTERNAL.value),
            ),
            total_employees=_count(
                session,
                select(func.count(User.id)).where(User.role.in_([role.value for role in OWNER_ROLES])),
            ),
            total_tls=_count(session, select(func.count(User.id)).where(User.role == Role.TEAM_LEAD.value)),
            total_prospect_overall=_count(session, select(func.count(Prospect.id))),
            today_prospect=_count(
                session,
                select(func.count(Prospect.id)).where(*today.criteria(Prospect.created_at)),
            ),
        )

    def performance(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        period: ReportPeriod | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        team_lead_id: uuid.UUID | None = None,
    ) -> list[PerformanceRow]:
        window = resolve_window(start=start_date, end=end_date)
        if window is None:
            if period == "day":
                window = today_window()
            elif period == "month":
                window = current_month_window()
            else:
                raise ValidationError("Please provide a valid period (day or month) or a start_date and end_date")

        scope = resolve_owner_scope(session, ctx, "report.performance", team_lead_id=team_lead_id)
        users_stmt = select(User).where(User.role.in_([role.value for role in OWNER_ROLES]))
        users_stmt = scope.apply(users_stmt, User.id)
        users = session.scalars(users_stmt.order_by(User.name.asc())).all()
        user_ids = [user.id for user in users]
        if not user_ids:
            return []

        calls = _grouped_counts(
            session,
            select(CallLog.sales_executive_id, func.count(CallLog.id))
            .where(CallLog.sales_executive_id.in_(user_ids), *window.criteria(CallLog.call_date))
            .group_by(CallLog.sales_executive_id),
        )
        prospects = _grouped_counts(
            session,
            select(Prospect.sales_executive_id, func.count(Prospect.id))
            .where(Prospect.sales_executive_id.in_(user_ids), *window.criteria(Prospect.created_at))
            .group_by(Prospect.sales_executive_id),
        )
        untouched = _grouped_counts(
            session,
            select(Prospect.sales_executive_id, func.count(Prospect.id))
            .where(
                Prospect.sales_executive_id.in_(user_ids),
                Prospect.is_untouched.is_(True),
                *window.criteria(Prospect.created_at),
            )
            .group_by(Prospect.sales_executive_id),
        )
        sales = {
            owner_id: (_decimal(total), int(count))
            for owner_id, total, count in session.execute(
                select(Sale.sales_executive_id, func.sum(Sale.amount), func.count(Sale.id))
                .where(Sale.sales_executive_id.in_(user_ids), *window.criteria(Sale.sale_date))
                .group_by(Sale.sales_executive_id)
            ).all()
        }

        return [
            PerformanceRow(
                user_id=user.id,
                name=user.name,
                role=user.role,
                total_calls=calls.get(user.id, 0),
                total_prospects=prospects.get(user.id, 0),
                untouched_data=untouched.get(user.id, 0),
                period_sales_amount=sales.get(user.id, (Decimal("0"), 0))[0],
                total_sales_count=sales.get(user.id, (Decimal("0"), 0))[1],
            )
            for user in users
        ]

    def manager_calls(
        self,
        session: Session,
        ctx: AuthContext,
        *,
        month: int | None = None,
        team_lead_id: uuid.UUID | None = None,
        executive_id: uuid.UUID | None = None,
    ) -> list[CallLog]:
        require(ctx, Resource.MANAGER_REPORT, ResourceAction.READ, "You do not have permission to access this report")
        scope = resolve_owner_scope(
            session,
            ctx,
            Resource.MANAGER_REPORT.value,
            target_user_id=executive_id,
            team_lead_id=team_lead_id,
        )
        stmt = scope.apply(select(CallLog), CallLog.sales_executive_id)
        if month is not None:
            stmt = month_window(datetime.now(timezone.utc).year, month).apply(stmt, CallLog.call_date)
        return list(session.scalars(stmt.order_by(CallLog.call_date.desc())).all())

    def activity_logs(self, session: Session, ctx: AuthContext) -> list[ActivityEntry]:
        require(ctx, Resource.MANAGER_REPORT, ResourceAction.READ, "You do not have permission to access activity logs")
        limit = get_settings().activity_feed_window

        prospects = session.execute(
            select(Prospect, User.name)
            .outerjoin(User, User.id == Prospect.sales_executive_id)
            .order_by(Prospect.last_update.desc())
            .limit(limit)
        ).all()
        calls = session.execute(
            select(CallLog, User.name)
            .outerjoin(User, User.id == CallLog.sales_executive_id)
            .order_by(CallLog.call_date.desc())
            .limit(limit)
        ).all()

        prospect_entries: Iterable[ActivityEntry] = (
            ActivityEntry(
                type="Prospect Update",
                date=prospect.last_update,
                description=f"Prospect {prospect.client_name} ({prospect.company_name}) activity: {prospect.activity}",
                user=name or "N/A",
            )
            for prospect, name in prospects
        )
        call_entries: Iterable[ActivityEntry] = (
            ActivityEntry(
                type="Call Log",
                date=call.call_date,
                description=(
                    f"Call with {call.client_name} ({call.company_name}): {call.activity}"
                    f" - {call.comment or 'No comment'}"
                ),
                user=name or "N/A",
            )
            for call, name in calls
        )
        # Both streams are already newest-first.
        return list(heapq.merge(prospect_entries, call_entries, key=lambda entry: entry.date, reverse=True))


reporting_service = ReportingService()
