from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from salescrm import audit
from salescrm.errors import AuthorizationError, ValidationError
from salescrm.identity.models import User
from salescrm.platform.security.rls import OwnerScope, resolve_owner_scope


def test_executive_scope_is_self_only(org, db_session: Session, ctx_for) -> None:
    scope = resolve_owner_scope(db_session, ctx_for(org.exec_a1), "prospect")

    assert scope.user_ids == frozenset({org.exec_a1.id})


def test_team_lead_scope_is_self_plus_direct_reports(org, db_session: Session, ctx_for) -> None:
    scope = resolve_owner_scope(db_session, ctx_for(org.lead_a), "prospect")

    assert scope.user_ids == frozenset({org.lead_a.id, org.exec_a1.id, org.exec_a2.id})
    assert not scope.contains(org.exec_b1.id)
    assert not scope.contains(org.lead_b.id)


def test_team_lead_scope_is_not_transitive(org, db_session: Session, ctx_for) -> None:
    # A lead reporting to a lead is not a direct report.
    org.lead_b.manager_id = org.lead_a.id
    db_session.commit()

    scope = resolve_owner_scope(db_session, ctx_for(org.lead_a), "sale")

    assert org.exec_b1.id not in scope.user_ids
    assert org.lead_b.id not in scope.user_ids


def test_manager_scope_is_unrestricted(org, db_session: Session, ctx_for) -> None:
    scope = resolve_owner_scope(db_session, ctx_for(org.manager), "sale")

    assert scope.unrestricted
    assert scope.filter(User.id) is None


def test_manager_team_lead_narrowing(org, db_session: Session, ctx_for) -> None:
    scope = resolve_owner_scope(db_session, ctx_for(org.manager), "sale", team_lead_id=org.lead_b.id)

    assert scope.user_ids == frozenset({org.lead_b.id, org.exec_b1.id})

    with pytest.raises(ValidationError):
        resolve_owner_scope(db_session, ctx_for(org.manager), "sale", team_lead_id=org.exec_a1.id)


def test_manager_target_outside_narrowed_team_is_empty(org, db_session: Session, ctx_for) -> None:
    scope = resolve_owner_scope(
        db_session,
        ctx_for(org.manager),
        "sale",
        team_lead_id=org.lead_a.id,
        target_user_id=org.exec_b1.id,
    )

    assert scope.user_ids == frozenset()
    assert db_session.scalars(scope.apply(select(User), User.id)).all() == []


def test_manager_target_narrowing_never_rejected(org, db_session: Session, ctx_for) -> None:
    scope = resolve_owner_scope(db_session, ctx_for(org.manager), "prospect", target_user_id=org.exec_b1.id)

    assert scope.user_ids == frozenset({org.exec_b1.id})


def test_team_lead_target_outside_scope_is_forbidden(org, db_session: Session, ctx_for) -> None:
    with pytest.raises(AuthorizationError):
        resolve_owner_scope(db_session, ctx_for(org.lead_a), "prospect", target_user_id=org.exec_b1.id)

    denied = audit.entries_for("scope.denied")
    assert denied
    assert denied[-1]["after"]["reason"] == "target_out_of_scope"

    narrowed = resolve_owner_scope(db_session, ctx_for(org.lead_a), "prospect", target_user_id=org.exec_a2.id)
    assert narrowed.user_ids == frozenset({org.exec_a2.id})


def test_team_lead_may_only_narrow_to_own_team(org, db_session: Session, ctx_for) -> None:
    own = resolve_owner_scope(db_session, ctx_for(org.lead_a), "sale", team_lead_id=org.lead_a.id)
    assert own.user_ids == frozenset({org.lead_a.id, org.exec_a1.id, org.exec_a2.id})

    with pytest.raises(AuthorizationError):
        resolve_owner_scope(db_session, ctx_for(org.lead_a), "sale", team_lead_id=org.lead_b.id)
    with pytest.raises(AuthorizationError):
        resolve_owner_scope(db_session, ctx_for(org.exec_a1), "sale", team_lead_id=org.lead_a.id)


def test_owner_scope_filters() -> None:
    assert OwnerScope(user_ids=None).unrestricted
    assert OwnerScope(user_ids=frozenset()).contains(None) is False
    assert OwnerScope(user_ids=None).contains(None) is True

    sql = str(OwnerScope(user_ids=frozenset()).apply(select(User), User.id))
    assert "WHERE" in sql
