from __future__ import annotations

from typing import Any, assert_never

from salescrm import audit
from salescrm.identity.roles import Role
from salescrm.metrics import observe_discarded_fields
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.policies import Relationship


SELF_PROFILE_FIELDS = frozenset({"name", "email", "contact_no", "location"})
REPORT_PROFILE_FIELDS = SELF_PROFILE_FIELDS | {"status"}
MANAGED_PROFILE_FIELDS = SELF_PROFILE_FIELDS | {"role", "ref_id", "status", "team", "manager", "bank_details"}
BANK_DETAIL_FIELDS = frozenset({"bank_name", "account_no", "ifsc_code", "upi_id"})

PROSPECT_UPDATE_FIELDS = frozenset(
    {"company_name", "client_name", "email_id", "contact_no", "reminder_date", "comment", "activity"}
)
CALL_LOG_UPDATE_FIELDS = frozenset({"activity", "comment"})
PAYOUT_UPDATE_FIELDS = frozenset({"month", "amount", "duration", "description"})


def writable_user_fields(ctx: AuthContext, relationship: Relationship) -> frozenset[str]:
    """Fields of a user account the caller may change, given how they relate to it."""

    if relationship is Relationship.SELF:
        return SELF_PROFILE_FIELDS

    role = ctx.role
    if role is Role.SALES_EXECUTIVE:
        return frozenset()
    elif role is Role.TEAM_LEAD:
        return REPORT_PROFILE_FIELDS if relationship is Relationship.DIRECT_REPORT else frozenset()
    elif role is Role.MANAGER:
        return MANAGED_PROFILE_FIELDS
    else:
        assert_never(role)


def filter_write_payload(
    resource: str,
    payload: dict[str, Any],
    allowed: frozenset[str],
    ctx: AuthContext,
    *,
    entity_id: str = "unknown",
) -> dict[str, Any]:
    """Keep only writable fields. Anything else is dropped, not rejected."""

    kept = {key: value for key, value in payload.items() if key in allowed}
    dropped = sorted(key for key in payload if key not in allowed)
    if dropped:
        observe_discarded_fields(resource=resource, count=len(dropped))
        audit.record(
            actor_user_id=ctx.actor,
            entity_type="security.fls",
            entity_id=entity_id,
            action="fls.discarded",
            before=None,
            after={
                "resource": resource,
                "role": ctx.role.value,
                "dropped_fields": dropped,
            },
            correlation_id=ctx.correlation_id,
        )
    return kept


def sanitize_bank_details(value: dict[str, Any] | None) -> dict[str, Any] | None:
    if value is None:
        return None
    return {key: item for key, item in value.items() if key in BANK_DETAIL_FIELDS}
