from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from salescrm.api.schemas import DataEnvelope, ListEnvelope, wrap, wrap_list
from salescrm.core.auth import get_auth_context
from salescrm.core.database import get_db
from salescrm.payouts.schemas import PayoutCreate, PayoutRead, PayoutUpdate
from salescrm.payouts.service import payout_service
from salescrm.platform.security.context import AuthContext

router = APIRouter(prefix="/api/v1/salary", tags=["payouts"])


@router.post("", response_model=DataEnvelope[PayoutRead], status_code=status.HTTP_201_CREATED)
def create_payout(
    dto: PayoutCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[PayoutRead]:
    return wrap(PayoutRead.model_validate(payout_service.create_payout(db, ctx, dto)))


@router.get("", response_model=ListEnvelope[PayoutRead])
def list_payouts(
    user_id: uuid.UUID | None = Query(default=None),
    month: str | None = Query(default=None),
    team_lead_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[PayoutRead]:
    payouts = payout_service.list_payouts(db, ctx, user_id=user_id, month=month, team_lead_id=team_lead_id)
    return wrap_list([PayoutRead.model_validate(item) for item in payouts])


@router.get("/{payout_id}", response_model=DataEnvelope[PayoutRead])
def get_payout(
    payout_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[PayoutRead]:
    return wrap(PayoutRead.model_validate(payout_service.get_payout(db, ctx, payout_id)))


@router.patch("/{payout_id}", response_model=DataEnvelope[PayoutRead])
def update_payout(
    payout_id: uuid.UUID,
    dto: PayoutUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[PayoutRead]:
    return wrap(PayoutRead.model_validate(payout_service.update_payout(db, ctx, payout_id, dto)))


@router.delete("/{payout_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payout(
    payout_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> Response:
    payout_service.delete_payout(db, ctx, payout_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
