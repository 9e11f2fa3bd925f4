from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from salescrm.api.schemas import DataEnvelope, ListEnvelope, wrap, wrap_list
from salescrm.core.auth import get_auth_context
from salescrm.core.database import get_db
from salescrm.crm.schemas import CallLogRead
from salescrm.platform.security.context import AuthContext
from salescrm.reporting.schemas import ActivityEntry, DashboardSummary, PerformanceRow
from salescrm.reporting.service import ReportPeriod, reporting_service

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/dashboard-summary", response_model=DataEnvelope[DashboardSummary])
def dashboard_summary(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[DashboardSummary]:
    return wrap(reporting_service.dashboard_summary(db, ctx))


@router.get("/performance", response_model=ListEnvelope[PerformanceRow])
def performance(
    period: ReportPeriod | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    team_lead_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[PerformanceRow]:
    rows = reporting_service.performance(
        db,
        ctx,
        period=period,
        start_date=start_date,
        end_date=end_date,
        team_lead_id=team_lead_id,
    )
    return wrap_list(rows)


@router.get("/manager-calls", response_model=ListEnvelope[CallLogRead])
def manager_calls(
    month: int | None = Query(default=None, ge=1, le=12),
    team_lead_id: uuid.UUID | None = Query(default=None),
    executive_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[CallLogRead]:
    call_logs = reporting_service.manager_calls(
        db,
        ctx,
        month=month,
        team_lead_id=team_lead_id,
        executive_id=executive_id,
    )
    return wrap_list([CallLogRead.model_validate(item) for item in call_logs])


@router.get("/activity-logs", response_model=ListEnvelope[ActivityEntry])
def activity_logs(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[ActivityEntry]:
    return wrap_list(reporting_service.activity_logs(db, ctx))
