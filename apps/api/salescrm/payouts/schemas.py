from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PayoutCreate(BaseModel):
    user_id: UUID
    month: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)
    duration: str | None = None
    description: str | None = None
    payout_date: datetime | None = None


class PayoutUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    month: str | None = Field(default=None, min_length=1)
    amount: Decimal | None = Field(default=None, ge=0)
    duration: str | None = None
    description: str | None = None


class PayoutRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    team_lead_id: UUID | None
    manager_id: UUID | None
    month: str
    amount: Decimal
    duration: str | None
    description: str | None
    payout_date: datetime
    created_at: datetime
    updated_at: datetime
