from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from salescrm.identity.schemas import UserSummary


class ProspectCreate(BaseModel):
    company_name: str = Field(min_length=1)
    client_name: str = Field(min_length=1)
    email_id: EmailStr | None = None
    contact_no: str | None = None
    reminder_date: datetime | None = None
    comment: str | None = None
    assigned_executive_id: UUID | None = None


class ProspectUpdate(BaseModel):
    # Unknown keys are kept so field-level policy can drop and count them.
    model_config = ConfigDict(extra="allow")

    company_name: str | None = Field(default=None, min_length=1)
    client_name: str | None = Field(default=None, min_length=1)
    email_id: EmailStr | None = None
    contact_no: str | None = None
    reminder_date: datetime | None = None
    comment: str | None = None
    activity: str | None = Field(default=None, min_length=1)


class ProspectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_name: str
    client_name: str
    email_id: str | None
    contact_no: str | None
    reminder_date: datetime | None
    comment: str | None
    activity: str
    sales_executive_id: UUID
    team_lead_id: UUID
    sales_executive: UserSummary | None = None
    team_lead: UserSummary | None = None
    is_untouched: bool
    last_update: datetime
    created_at: datetime
    updated_at: datetime


class SaleCreate(BaseModel):
    company_name: str = Field(min_length=1)
    client_name: str = Field(min_length=1)
    email_id: EmailStr | None = None
    contact_no: str | None = None
    services: str | None = None
    amount: Decimal = Field(gt=0)
    sale_date: datetime | None = None
    prospect_id: UUID | None = None
    assigned_executive_id: UUID | None = None


class SaleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_name: str
    client_name: str
    email_id: str | None
    contact_no: str | None
    services: str | None
    amount: Decimal
    sale_date: datetime
    sales_executive_id: UUID
    team_lead_id: UUID
    sales_executive: UserSummary | None = None
    team_lead: UserSummary | None = None
    prospect_id: UUID | None
    is_transferred_to_finance: bool
    transferred_to_finance_date: datetime | None
    created_at: datetime


class CallLogCreate(BaseModel):
    company_name: str = Field(min_length=1)
    client_name: str = Field(min_length=1)
    email_id: EmailStr | None = None
    contact_no: str | None = None
    activity: str = Field(min_length=1)
    comment: str | None = None
    prospect_id: UUID | None = None


class CallLogUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    activity: str | None = Field(default=None, min_length=1)
    comment: str | None = None


class CallLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_name: str
    client_name: str
    email_id: str | None
    contact_no: str | None
    activity: str
    comment: str | None
    call_date: datetime
    sales_executive_id: UUID
    sales_executive: UserSummary | None = None
    prospect_id: UUID | None
    created_at: datetime
