from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from salescrm.core.database import Base
from salescrm.identity.models import utcnow


class TransferType(StrEnum):
    INTERNAL = "internal_data_transfer"
    FINANCE = "transfer_to_finance"


class TransferDataType(StrEnum):
    PROSPECTS = "prospects"
    SALES = "sales"


class TransferLog(Base):
    """Append-only record of one transfer call."""

    __tablename__ = "crm_transfer_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    transfer_type: Mapped[str] = mapped_column(String(32), nullable=False)
    transferred_by_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    transferred_from_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    transferred_to_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    data_type: Mapped[str] = mapped_column(String(16), nullable=False)
    # Requested ids, not only the moved ones; data_count holds the effect.
    data_ids: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    data_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=0, server_default="0")
    company_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    transfer_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_crm_transfer_log_type_date", "transfer_type", "transfer_date"),
        Index("ix_crm_transfer_log_by", "transferred_by_id"),
    )
