from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from salescrm.api.schemas import DataEnvelope, ListEnvelope, wrap, wrap_list
from salescrm.core.auth import get_auth_context
from salescrm.core.database import get_db
from salescrm.identity.summaries import with_user_summaries
from salescrm.platform.security.context import AuthContext
from salescrm.transfer.models import TransferLog
from salescrm.transfer.schemas import FinanceTransferRequest, InternalTransferRequest, TransferLogRead, TransferResult
from salescrm.transfer.service import TransferOutcome, transfer_service

router = APIRouter(prefix="/api/v1/transfer", tags=["transfer"])

TRANSFER_PARTIES = {
    "transferred_by_id": "transferred_by",
    "transferred_from_id": "transferred_from",
    "transferred_to_id": "transferred_to",
}


def _log_reads(db: Session, logs: list[TransferLog]) -> list[TransferLogRead]:
    return with_user_summaries(db, TransferLogRead, logs, TRANSFER_PARTIES)


def _to_result(db: Session, outcome: TransferOutcome) -> TransferResult:
    return TransferResult(
        requested_count=outcome.requested_count,
        modified_count=outcome.modified_count,
        amount=outcome.amount,
        log=_log_reads(db, [outcome.log])[0],
    )


@router.post("/internal", response_model=DataEnvelope[TransferResult])
def transfer_internal(
    dto: InternalTransferRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[TransferResult]:
    outcome = transfer_service.transfer_internal(db, ctx, dto)
    message = f"{outcome.modified_count} of {outcome.requested_count} {dto.data_type.value} transferred successfully"
    return wrap(_to_result(db, outcome), message)


@router.get("/internal-history", response_model=ListEnvelope[TransferLogRead])
def internal_history(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[TransferLogRead]:
    return wrap_list(_log_reads(db, transfer_service.internal_history(db, ctx)))


@router.post("/finance", response_model=DataEnvelope[TransferResult])
def transfer_to_finance(
    dto: FinanceTransferRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> DataEnvelope[TransferResult]:
    outcome = transfer_service.transfer_to_finance(db, ctx, dto)
    message = f"{outcome.modified_count} sales marked for finance transfer. Total amount: {outcome.amount}"
    return wrap(_to_result(db, outcome), message)


@router.get("/finance-history", response_model=ListEnvelope[TransferLogRead])
def finance_history(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_auth_context),
) -> ListEnvelope[TransferLogRead]:
    return wrap_list(_log_reads(db, transfer_service.finance_history(db, ctx)))
