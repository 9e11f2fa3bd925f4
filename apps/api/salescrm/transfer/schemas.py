from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salescrm.identity.schemas import UserSummary
from salescrm.transfer.models import TransferDataType, TransferType


class InternalTransferRequest(BaseModel):
    source_user_id: UUID
    target_user_id: UUID
    data_ids: list[UUID] = Field(min_length=1)
    data_type: TransferDataType


class FinanceTransferRequest(BaseModel):
    sales_ids: list[UUID] = Field(min_length=1)


class TransferLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transfer_type: TransferType
    transferred_by_id: UUID
    transferred_from_id: UUID | None
    transferred_to_id: UUID | None
    data_type: TransferDataType
    data_ids: list[UUID]
    data_count: int
    amount: Decimal
    company_name: str | None
    client_name: str | None
    transfer_date: datetime
    transferred_by: UserSummary | None = None
    transferred_from: UserSummary | None = None
    transferred_to: UserSummary | None = None


class TransferResult(BaseModel):
    requested_count: int
    modified_count: int
    amount: Decimal | None = None
    log: TransferLogRead
