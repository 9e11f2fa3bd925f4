from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from salescrm.errors import ConflictError, InternalError, ValidationError
from salescrm.identity import ownership
from salescrm.identity.models import Team, User
from salescrm.identity.roles import Role
from salescrm.payouts.models import Payout


def _executives_consistent(session: Session) -> None:
    executives = session.scalars(select(User).where(User.role == Role.SALES_EXECUTIVE.value)).all()
    for executive in executives:
        if executive.manager_id is None:
            assert executive.team_id is None
            continue
        lead = session.get(User, executive.manager_id)
        assert lead is not None
        assert lead.role == Role.TEAM_LEAD.value
        assert executive.team_id == lead.team_id


def test_assign_executive_sets_both_pointers(org, db_session: Session) -> None:
    assert org.exec_a1.manager_id == org.lead_a.id
    assert org.exec_a1.team_id == org.team_a.id
    _executives_consistent(db_session)


def test_assign_executive_requires_lead_with_team(org, db_session: Session, make_user) -> None:
    lonely_lead = make_user(Role.TEAM_LEAD, "Lonely Lead")
    newcomer = make_user(Role.SALES_EXECUTIVE, "New Exec")

    with pytest.raises(ValidationError):
        ownership.assign_executive(db_session, newcomer, lonely_lead)
    with pytest.raises(ValidationError):
        ownership.assign_executive(db_session, newcomer, org.manager)

    assert newcomer.manager_id is None
    assert newcomer.team_id is None


def test_second_team_for_same_lead_conflicts(org, db_session: Session) -> None:
    with pytest.raises(ConflictError):
        ownership.create_team(db_session, org.lead_a, "Alpha Two")


def test_reassign_team_lead_moves_members(org, db_session: Session, make_user) -> None:
    new_lead = make_user(Role.TEAM_LEAD, "Nina Lead")

    ownership.reassign_team_lead(db_session, org.team_a, new_lead)
    db_session.commit()

    assert org.team_a.team_lead_id == new_lead.id
    assert new_lead.team_id == org.team_a.id
    assert org.lead_a.team_id is None
    assert org.exec_a1.manager_id == new_lead.id
    assert org.exec_a2.manager_id == new_lead.id
    _executives_consistent(db_session)


def test_reassign_to_lead_of_another_team_fails(org, db_session: Session) -> None:
    with pytest.raises(ValidationError):
        ownership.reassign_team_lead(db_session, org.team_a, org.lead_b)


def test_release_team_lead_unassigns_reports_and_drops_team(org, db_session: Session) -> None:
    team_id = org.team_a.id
    exec_ids = [org.exec_a1.id, org.exec_a2.id]

    affected = ownership.release_team_lead(db_session, org.lead_a)
    db_session.commit()

    assert affected == 2
    assert db_session.scalar(select(Team).where(Team.id == team_id)) is None
    for executive_id in exec_ids:
        executive = db_session.get(User, executive_id)
        assert executive is not None
        assert executive.manager_id is None
        assert executive.team_id is None
    assert org.exec_b1.manager_id == org.lead_b.id
    _executives_consistent(db_session)

    # Re-running after completion converges to the same state.
    assert ownership.release_team_lead(db_session, org.lead_a) == 0


def test_release_manager_detaches_team_leads_only(org, db_session: Session) -> None:
    affected = ownership.release_manager(db_session, org.manager)
    db_session.commit()

    assert affected == 2
    assert org.lead_a.manager_id is None
    assert org.lead_b.manager_id is None
    assert org.exec_a1.manager_id == org.lead_a.id
    assert org.lead_a.team_id == org.team_a.id


def test_add_members_is_all_or_nothing(org, db_session: Session) -> None:
    with pytest.raises(ValidationError):
        ownership.add_members(db_session, org.team_a, [org.exec_b1.id, org.lead_b.id])
    db_session.rollback()

    assert org.exec_b1.manager_id == org.lead_b.id
    assert org.exec_b1.team_id == org.team_b.id

    with pytest.raises(ValidationError):
        ownership.add_members(db_session, org.team_a, [org.exec_b1.id, uuid.uuid4()])

    moved = ownership.add_members(db_session, org.team_a, [org.exec_b1.id])
    db_session.commit()

    assert moved == 1
    assert org.exec_b1.manager_id == org.lead_a.id
    assert org.exec_b1.team_id == org.team_a.id
    _executives_consistent(db_session)


def test_remove_members_only_touches_current_team(org, db_session: Session) -> None:
    removed = ownership.remove_members(db_session, org.team_a, [org.exec_a1.id, org.exec_b1.id])
    db_session.commit()

    assert removed == 1
    assert org.exec_a1.manager_id is None
    assert org.exec_a1.team_id is None
    assert org.exec_b1.team_id == org.team_b.id
    _executives_consistent(db_session)


def test_delete_team_unassigns_lead_and_members(org, db_session: Session) -> None:
    team_id = org.team_b.id

    ownership.delete_team(db_session, org.team_b)
    db_session.commit()

    assert db_session.scalar(select(Team).where(Team.id == team_id)) is None
    assert org.lead_b.team_id is None
    assert org.exec_b1.manager_id is None
    assert org.exec_b1.team_id is None


def test_owner_pointers_follow_owner_role(org, make_user) -> None:
    lead_pointers = ownership.owner_pointers(org.lead_a)
    assert lead_pointers.sales_executive_id == org.lead_a.id
    assert lead_pointers.team_lead_id == org.lead_a.id

    exec_pointers = ownership.owner_pointers(org.exec_b1)
    assert exec_pointers.as_values() == {"sales_executive_id": org.exec_b1.id, "team_lead_id": org.lead_b.id}

    stray = make_user(Role.SALES_EXECUTIVE, "Stray Exec")
    with pytest.raises(InternalError):
        ownership.owner_pointers(stray)
    with pytest.raises(ValidationError):
        ownership.owner_pointers(stray, unassigned_error=ValidationError)
    with pytest.raises(ValidationError):
        ownership.owner_pointers(org.manager)


def test_change_role_requires_no_dependents(org, db_session: Session) -> None:
    with pytest.raises(ValidationError):
        ownership.change_role(db_session, org.lead_a, Role.SALES_EXECUTIVE)

    ownership.change_role(db_session, org.exec_a1, Role.TEAM_LEAD)
    db_session.commit()

    assert org.exec_a1.role == Role.TEAM_LEAD.value
    assert org.exec_a1.manager_id is None
    assert org.exec_a1.team_id is None


def test_team_lead_can_only_report_to_manager(org, db_session: Session) -> None:
    with pytest.raises(ValidationError):
        ownership.set_team_lead_manager(db_session, org.lead_a, org.lead_b)

    ownership.set_team_lead_manager(db_session, org.lead_a, None)
    assert org.lead_a.manager_id is None


def _payout_for(session: Session, user: User, **chain) -> Payout:
    payout = Payout(user_id=user.id, month="March", amount=Decimal("500.00"), **chain)
    session.add(payout)
    session.commit()
    return payout


def test_moving_an_executive_restamps_owned_records(org, db_session: Session, make_prospect, make_sale) -> None:
    prospect = make_prospect(org.exec_a1)
    sale = make_sale(org.exec_a1)
    payout = _payout_for(db_session, org.exec_a1, team_lead_id=org.lead_a.id, manager_id=org.manager.id)

    ownership.add_members(db_session, org.team_b, [org.exec_a1.id])
    db_session.commit()

    for record in (prospect, sale, payout):
        db_session.refresh(record)
    assert prospect.team_lead_id == org.lead_b.id
    assert sale.team_lead_id == org.lead_b.id
    assert payout.team_lead_id == org.lead_b.id
    assert payout.manager_id == org.manager.id


def test_reassigning_team_lead_restamps_member_records(
    org, db_session: Session, make_user, make_prospect, make_sale
) -> None:
    new_lead = make_user(Role.TEAM_LEAD, "Nora Lead")
    prospect = make_prospect(org.exec_a2)
    sale = make_sale(org.exec_a1)
    untouched = make_prospect(org.exec_b1)

    ownership.reassign_team_lead(db_session, org.team_a, new_lead)
    db_session.commit()

    for record in (prospect, sale, untouched):
        db_session.refresh(record)
    assert prospect.team_lead_id == new_lead.id
    assert sale.team_lead_id == new_lead.id
    assert untouched.team_lead_id == org.lead_b.id


def test_unassigned_executive_payouts_drop_their_chain(org, db_session: Session, make_prospect) -> None:
    prospect = make_prospect(org.exec_a1)
    payout = _payout_for(db_session, org.exec_a1, team_lead_id=org.lead_a.id, manager_id=org.manager.id)

    ownership.remove_members(db_session, org.team_a, [org.exec_a1.id])
    db_session.commit()

    db_session.refresh(payout)
    db_session.refresh(prospect)
    assert payout.team_lead_id is None
    assert payout.manager_id is None
    # prospect pointers are non-nullable and keep the last lead
    assert prospect.team_lead_id == org.lead_a.id


def test_team_lead_manager_change_reaches_payouts(org, db_session: Session, make_user) -> None:
    other_manager = make_user(Role.MANAGER, "Milo Manager")
    lead_payout = _payout_for(db_session, org.lead_a, team_lead_id=None, manager_id=org.manager.id)
    report_payout = _payout_for(db_session, org.exec_a1, team_lead_id=org.lead_a.id, manager_id=org.manager.id)
    other_payout = _payout_for(db_session, org.exec_b1, team_lead_id=org.lead_b.id, manager_id=org.manager.id)

    ownership.set_team_lead_manager(db_session, org.lead_a, other_manager)
    db_session.commit()

    for payout in (lead_payout, report_payout, other_payout):
        db_session.refresh(payout)
    assert lead_payout.manager_id == other_manager.id
    assert report_payout.manager_id == other_manager.id
    assert other_payout.manager_id == org.manager.id
