from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from salescrm.core.database import Base
from salescrm.identity.models import utcnow

ACTIVITY_NEW = "New"
ACTIVITY_CONVERTED = "Converted"
ACTIVITY_DELETED = "Deleted"
DELETE_PROFILE_MARKER = "Delete Client's Profile"


class Prospect(Base):
    __tablename__ = "crm_prospect"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    client_name: Mapped[str] = mapped_column(Text, nullable=False)
    email_id: Mapped[str | None] = mapped_column(String(320), nullable=True)
    contact_no: Mapped[str | None] = mapped_column(String(32), nullable=True)
    reminder_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    activity: Mapped[str] = mapped_column(String(64), nullable=False, default=ACTIVITY_NEW, server_default=ACTIVITY_NEW)
    # Owner pointers are written together through ownership.owner_pointers.
    sales_executive_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    team_lead_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    is_untouched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    last_update: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        Index("ix_crm_prospect_owner", "sales_executive_id", "last_update"),
        Index("ix_crm_prospect_team_lead", "team_lead_id"),
        Index("ix_crm_prospect_untouched", "is_untouched", "created_at"),
    )


class Sale(Base):
    __tablename__ = "crm_sale"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    client_name: Mapped[str] = mapped_column(Text, nullable=False)
    email_id: Mapped[str | None] = mapped_column(String(320), nullable=True)
    contact_no: Mapped[str | None] = mapped_column(String(32), nullable=True)
    services: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    sale_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    sales_executive_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    team_lead_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    prospect_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crm_prospect.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_transferred_to_finance: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )
    transferred_to_finance_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        Index("ix_crm_sale_owner", "sales_executive_id", "sale_date"),
        Index("ix_crm_sale_team_lead", "team_lead_id"),
    )


class CallLog(Base):
    __tablename__ = "crm_call_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    client_name: Mapped[str] = mapped_column(Text, nullable=False)
    email_id: Mapped[str | None] = mapped_column(String(320), nullable=True)
    contact_no: Mapped[str | None] = mapped_column(String(32), nullable=True)
    activity: Mapped[str] = mapped_column(String(64), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    call_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    sales_executive_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    prospect_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crm_prospect.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("ix_crm_call_log_owner", "sales_executive_id", "call_date"),)
