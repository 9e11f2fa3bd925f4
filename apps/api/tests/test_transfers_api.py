from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from salescrm import audit, events
from salescrm.crm.models import Prospect, Sale
from salescrm.identity.roles import Role


def _internal(source, target, data_ids, data_type: str = "prospects") -> dict[str, object]:
    return {
        "source_user_id": str(source.id),
        "target_user_id": str(target.id),
        "data_ids": [str(item) for item in data_ids],
        "data_type": data_type,
    }


def test_manager_moves_prospects_across_teams(client: TestClient, org, make_prospect, db_session: Session, auth_headers) -> None:
    first = make_prospect(org.exec_a1)
    second = make_prospect(org.exec_a1)

    response = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.exec_b1, [first.id, second.id]),
        headers=auth_headers(org.manager),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["requested_count"] == 2
    assert data["modified_count"] == 2
    assert data["log"]["transfer_type"] == "internal_data_transfer"
    assert data["log"]["transferred_from_id"] == str(org.exec_a1.id)
    assert data["log"]["transferred_to_id"] == str(org.exec_b1.id)

    db_session.expire_all()
    for prospect_id in (first.id, second.id):
        moved = db_session.get(Prospect, prospect_id)
        assert moved.sales_executive_id == org.exec_b1.id
        assert moved.team_lead_id == org.lead_b.id

    repeated = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.exec_b1, [first.id, second.id]),
        headers=auth_headers(org.manager),
    )
    assert repeated.status_code == 404


def test_partial_transfer_logs_requested_ids(client: TestClient, org, make_sale, auth_headers) -> None:
    owned = make_sale(org.exec_a1)
    foreign = make_sale(org.exec_a2)

    response = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.exec_a2, [owned.id, foreign.id], data_type="sales"),
        headers=auth_headers(org.manager),
    )

    assert response.status_code == 200
    log = response.json()["data"]["log"]
    assert log["data_count"] == 1
    assert set(log["data_ids"]) == {str(owned.id), str(foreign.id)}
    assert response.json()["message"] == "1 of 2 sales transferred successfully"


def test_team_lead_transfers_within_team(client: TestClient, org, make_prospect, auth_headers) -> None:
    prospect = make_prospect(org.exec_a1)

    within = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.exec_a2, [prospect.id]),
        headers=auth_headers(org.lead_a),
    )
    assert within.status_code == 200

    to_self = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a2, org.lead_a, [prospect.id]),
        headers=auth_headers(org.lead_a),
    )
    assert to_self.status_code == 200
    assert to_self.json()["data"]["modified_count"] == 1


def test_team_lead_cannot_transfer_across_teams(client: TestClient, org, make_prospect, auth_headers) -> None:
    prospect = make_prospect(org.exec_a1)

    response = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.exec_b1, [prospect.id]),
        headers=auth_headers(org.lead_a),
    )

    assert response.status_code == 403
    assert audit.entries_for("policy.denied")[-1]["after"]["reason"] == "to_unrelated"


def test_executives_cannot_transfer(client: TestClient, org, make_prospect, auth_headers) -> None:
    prospect = make_prospect(org.exec_a1)

    response = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.exec_a2, [prospect.id]),
        headers=auth_headers(org.exec_a1),
    )

    assert response.status_code == 403


def test_transfer_target_validation(client: TestClient, org, make_prospect, make_user, db_session: Session, auth_headers) -> None:
    prospect = make_prospect(org.exec_a1)
    stray = make_user(Role.SALES_EXECUTIVE, "Stray Exec")
    db_session.commit()

    same = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.exec_a1, [prospect.id]),
        headers=auth_headers(org.manager),
    )
    assert same.status_code == 400

    unassigned = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, stray, [prospect.id]),
        headers=auth_headers(org.manager),
    )
    assert unassigned.status_code == 400

    to_manager = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.manager, [prospect.id]),
        headers=auth_headers(org.manager),
    )
    assert to_manager.status_code == 400

    missing = client.post(
        "/api/v1/transfer/internal",
        json={**_internal(org.exec_a1, org.exec_a2, [prospect.id]), "target_user_id": str(uuid.uuid4())},
        headers=auth_headers(org.manager),
    )
    assert missing.status_code == 404


def test_transfer_to_team_lead_uses_lead_pointers(client: TestClient, org, make_prospect, db_session: Session, auth_headers) -> None:
    prospect = make_prospect(org.exec_a1)

    response = client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.lead_b, [prospect.id]),
        headers=auth_headers(org.manager),
    )

    assert response.status_code == 200
    db_session.expire_all()
    moved = db_session.get(Prospect, prospect.id)
    assert moved.sales_executive_id == org.lead_b.id
    assert moved.team_lead_id == org.lead_b.id


def test_finance_transfer_flags_only_unflagged_sales(client: TestClient, org, make_sale, db_session: Session, auth_headers) -> None:
    already = make_sale(
        org.exec_a1,
        amount="500.00",
        is_transferred_to_finance=True,
        transferred_to_finance_date=datetime(2026, 1, 5, tzinfo=timezone.utc),
    )
    fresh = make_sale(org.exec_b1, amount="120.25", company_name="Globex", client_name="Gina")

    response = client.post(
        "/api/v1/transfer/finance",
        json={"sales_ids": [str(already.id), str(fresh.id)]},
        headers=auth_headers(org.manager),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["requested_count"] == 2
    assert data["modified_count"] == 1
    assert Decimal(str(data["amount"])) == Decimal("120.25")
    assert data["log"]["company_name"] == "Globex"
    assert data["log"]["client_name"] == "Gina"

    db_session.expire_all()
    assert db_session.get(Sale, fresh.id).is_transferred_to_finance is True
    assert db_session.get(Sale, already.id).transferred_to_finance_date.day == 5

    again = client.post(
        "/api/v1/transfer/finance",
        json={"sales_ids": [str(already.id), str(fresh.id)]},
        headers=auth_headers(org.manager),
    )
    assert again.status_code == 404


def test_finance_transfer_is_manager_only(client: TestClient, org, make_sale, auth_headers) -> None:
    sale = make_sale(org.exec_a1)

    response = client.post(
        "/api/v1/transfer/finance",
        json={"sales_ids": [str(sale.id)]},
        headers=auth_headers(org.lead_a),
    )

    assert response.status_code == 403
    assert response.json()["message"] == "Only managers can transfer data to finance"


def test_transfer_history_scoping(client: TestClient, org, make_prospect, make_sale, auth_headers) -> None:
    a_prospect = make_prospect(org.exec_a1)
    b_prospect = make_prospect(org.exec_b1)
    sale = make_sale(org.exec_a1)

    client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_a1, org.exec_a2, [a_prospect.id]),
        headers=auth_headers(org.manager),
    )
    client.post(
        "/api/v1/transfer/internal",
        json=_internal(org.exec_b1, org.lead_b, [b_prospect.id]),
        headers=auth_headers(org.manager),
    )
    client.post("/api/v1/transfer/finance", json={"sales_ids": [str(sale.id)]}, headers=auth_headers(org.manager))

    manager_view = client.get("/api/v1/transfer/internal-history", headers=auth_headers(org.manager))
    assert manager_view.json()["results"] == 2

    lead_view = client.get("/api/v1/transfer/internal-history", headers=auth_headers(org.lead_a))
    assert lead_view.json()["results"] == 1
    assert lead_view.json()["data"][0]["transferred_to_id"] == str(org.exec_a2.id)

    finance_view = client.get("/api/v1/transfer/finance-history", headers=auth_headers(org.manager))
    assert finance_view.json()["results"] == 1
    assert client.get("/api/v1/transfer/finance-history", headers=auth_headers(org.lead_a)).status_code == 403
    assert client.get("/api/v1/transfer/internal-history", headers=auth_headers(org.exec_a1)).status_code == 403

    published = [event["event_type"] for event in events.published_events]
    assert published.count("transfer.internal.completed") == 2
    assert published.count("transfer.finance.completed") == 1


def test_history_names_transfer_parties(client: TestClient, org, make_prospect, auth_headers) -> None:
    prospect = make_prospect(org.exec_a1)
    client.post(
        "/api/v1/transfer/internal",
        json={
            "source_user_id": str(org.exec_a1.id),
            "target_user_id": str(org.exec_b1.id),
            "data_ids": [str(prospect.id)],
            "data_type": "prospects",
        },
        headers=auth_headers(org.manager),
    )

    entry = client.get("/api/v1/transfer/internal-history", headers=auth_headers(org.manager)).json()["data"][0]

    assert entry["transferred_by"]["name"] == "Maya Manager"
    assert entry["transferred_from"]["name"] == "Ada Exec"
    assert entry["transferred_to"]["email"] == org.exec_b1.email
