from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from salescrm.api.schemas import DataEnvelope, ListEnvelope, wrap, wrap_list
from salescrm.core.auth import get_auth_context
from salescrm.core.database import get_db
from salescrm.crm.schemas import (
    CallLogCreate,
    CallLogRead,
    CallLogUpdate,
    ProspectCreate,
    ProspectRead,
    ProspectUpdate,
    SaleCreate,
    SaleRead,
)
from salescrm.crm.service import call_log_service, prospect_service, sale_service
from salescrm.identity.summaries import ReadModel, with_user_summaries
from salescrm.platform.security.context import AuthContext

prospects_router = APIRouter(prefix="/api/v1/prospects", tags=["crm.prospects"])
sales_router = APIRouter(prefix="/api/v1/sales", tags=["crm.sales"])
call_logs_router = APIRouter(prefix="/api/v1/calllogs", tags=["crm.call_logs"])


def _one(db: Session, schema: type[ReadModel], item: Any) -> ReadModel:
    return with_user_summaries(db, schema, [item])[0]


@prospects_router.post("", response_model=DataEnvelope[ProspectRead], status_code=status.HTTP_201_CREATED)
def create_prospect(
    dto: ProspectCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[ProspectRead]:
    return wrap(_one(db, ProspectRead, prospect_service.create_prospect(db, ctx, dto)))


@prospects_router.get("", response_model=ListEnvelope[ProspectRead])
def list_prospects(
    member_id: uuid.UUID | None = Query(default=None),
    day: date | None = Query(default=None, alias="date"),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[ProspectRead]:
    prospects = prospect_service.list_prospects(
        db,
        ctx,
        member_id=member_id,
        day=day,
        start_date=start_date,
        end_date=end_date,
    )
    return wrap_list(with_user_summaries(db, ProspectRead, prospects))


@prospects_router.get("/untouched", response_model=ListEnvelope[ProspectRead])
def list_untouched_prospects(
    member_id: uuid.UUID | None = Query(default=None),
    day: date | None = Query(default=None, alias="date"),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[ProspectRead]:
    prospects = prospect_service.list_untouched(
        db,
        ctx,
        member_id=member_id,
        day=day,
        start_date=start_date,
        end_date=end_date,
    )
    return wrap_list(with_user_summaries(db, ProspectRead, prospects))


@prospects_router.get("/{prospect_id}", response_model=DataEnvelope[ProspectRead])
def get_prospect(
    prospect_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[ProspectRead]:
    return wrap(_one(db, ProspectRead, prospect_service.get_prospect(db, ctx, prospect_id)))


@prospects_router.patch("/{prospect_id}", response_model=DataEnvelope[ProspectRead])
def update_prospect(
    prospect_id: uuid.UUID,
    dto: ProspectUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[ProspectRead]:
    return wrap(_one(db, ProspectRead, prospect_service.update_prospect(db, ctx, prospect_id, dto)))


@prospects_router.delete("/{prospect_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_prospect(
    prospect_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Response:
    prospect_service.delete_prospect(db, ctx, prospect_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@sales_router.post("", response_model=DataEnvelope[SaleRead], status_code=status.HTTP_201_CREATED)
def create_sale(
    dto: SaleCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[SaleRead]:
    return wrap(_one(db, SaleRead, sale_service.create_sale(db, ctx, dto)))


@sales_router.get("", response_model=ListEnvelope[SaleRead])
def list_sales(
    month: int | None = Query(default=None, ge=1, le=12),
    team_lead_id: uuid.UUID | None = Query(default=None),
    executive_id: uuid.UUID | None = Query(default=None),
    client_name: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[SaleRead]:
    sales = sale_service.list_sales(
        db,
        ctx,
        month=month,
        team_lead_id=team_lead_id,
        executive_id=executive_id,
        client_name=client_name,
    )
    return wrap_list(with_user_summaries(db, SaleRead, sales))


@sales_router.get("/{sale_id}", response_model=DataEnvelope[SaleRead])
def get_sale(
    sale_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[SaleRead]:
    return wrap(_one(db, SaleRead, sale_service.get_sale(db, ctx, sale_id)))


@sales_router.delete("/{sale_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sale(
    sale_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Response:
    sale_service.delete_sale(db, ctx, sale_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@call_logs_router.post("", response_model=DataEnvelope[CallLogRead], status_code=status.HTTP_201_CREATED)
def create_call_log(
    dto: CallLogCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[CallLogRead]:
    return wrap(_one(db, CallLogRead, call_log_service.create_call_log(db, ctx, dto)))


@call_logs_router.get("", response_model=ListEnvelope[CallLogRead])
def list_call_logs(
    day: date | None = Query(default=None, alias="date"),
    company_name: str | None = Query(default=None),
    executive_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[CallLogRead]:
    call_logs = call_log_service.list_call_logs(
        db,
        ctx,
        day=day,
        company_name=company_name,
        executive_id=executive_id,
    )
    return wrap_list(with_user_summaries(db, CallLogRead, call_logs))


@call_logs_router.get("/{call_log_id}", response_model=DataEnvelope[CallLogRead])
def get_call_log(
    call_log_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[CallLogRead]:
    return wrap(_one(db, CallLogRead, call_log_service.get_call_log(db, ctx, call_log_id)))


@call_logs_router.patch("/{call_log_id}", response_model=DataEnvelope[CallLogRead])
def update_call_log(
    call_log_id: uuid.UUID,
    dto: CallLogUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[CallLogRead]:
    return wrap(_one(db, CallLogRead, call_log_service.update_call_log(db, ctx, call_log_id, dto)))
