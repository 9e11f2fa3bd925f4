from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """The closed, three-level role hierarchy. Not data-driven."""

    SALES_EXECUTIVE = "sales_executive"
    TEAM_LEAD = "team_lead"
    MANAGER = "manager"


class UserStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"


# Roles that can own prospects and sales, and therefore send or receive transfers.
OWNER_ROLES = frozenset({Role.SALES_EXECUTIVE, Role.TEAM_LEAD})
