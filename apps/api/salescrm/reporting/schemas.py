from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel


class ExecutiveDashboard(BaseModel):
    role: Literal["sales_executive"] = "sales_executive"
    total_clients_data: int
    total_sales: Decimal
    prospect_number: int
    last_month_payout: Decimal


class TeamLeadDashboard(BaseModel):
    role: Literal["team_lead"] = "team_lead"
    team_members: int = 0
    total_call_by_team: int = 0
    total_prospect: int = 0
    total_client_data: int = 0


class ManagerDashboard(BaseModel):
    role: Literal["manager"] = "manager"
    total_sales: Decimal
    last_month_sales: Decimal
    this_month_sales: Decimal
    today_sales: Decimal
    total_transfer_data: int
    total_employees: int
    total_tls: int
    total_prospect_overall: int
    today_prospect: int


DashboardSummary = ExecutiveDashboard | TeamLeadDashboard | ManagerDashboard


class PerformanceRow(BaseModel):
    user_id: UUID
    name: str
    role: str
    total_calls: int
    total_prospects: int
    untouched_data: int
    period_sales_amount: Decimal
    total_sales_count: int


class ActivityEntry(BaseModel):
    type: Literal["Prospect Update", "Call Log"]
    date: datetime
    description: str
    user: str
