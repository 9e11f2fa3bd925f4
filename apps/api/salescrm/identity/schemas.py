from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from salescrm.identity.roles import Role, UserStatus


class BankDetails(BaseModel):
    bank_name: str | None = None
    account_no: str | None = None
    ifsc_code: str | None = None
    upi_id: str | None = None


class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    password_confirm: str = Field(min_length=1, max_length=72)
    ref_id: str = Field(min_length=1)
    role: Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    role: Role
    password: str | None = Field(default=None, max_length=72)
    password_confirm: str | None = Field(default=None, max_length=72)
    ref_id: str | None = None
    contact_no: str | None = None
    location: str | None = None
    joining_date: datetime | None = None
    assigned_team_lead_id: UUID | None = None


class UserUpdate(BaseModel):
    """Every field any caller might send. Field-level policy decides what is kept."""

    # Unknown keys are kept so field-level policy can drop and count them.
    model_config = ConfigDict(extra="allow")

    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    contact_no: str | None = None
    location: str | None = None
    status: UserStatus | None = None
    role: Role | None = None
    ref_id: str | None = None
    team: UUID | None = None
    manager: UUID | None = None
    bank_details: dict[str, Any] | None = None
    password: str | None = None
    password_confirm: str | None = None


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str


class UserListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: Role
    ref_id: str
    status: UserStatus
    contact_no: str | None
    location: str | None
    joining_date: datetime
    manager_id: UUID | None
    team_id: UUID | None
    created_at: datetime
    updated_at: datetime


class UserRead(UserListItem):
    bank_details: BankDetails | None = None


class LoginResponse(BaseModel):
    token: str
    user: UserRead


class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    team_lead_id: UUID


class TeamUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    team_lead_id: UUID | None = None
    add_members: list[UUID] = Field(default_factory=list)
    remove_members: list[UUID] = Field(default_factory=list)


class TeamRead(BaseModel):
    id: UUID
    name: str
    team_lead: UserSummary | None
    members: list[UserSummary]
    created_at: datetime
    updated_at: datetime


class UserCreated(UserRead):
    temporary_password: str | None = None
