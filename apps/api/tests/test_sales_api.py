from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from salescrm.crm.models import Prospect, Sale


def test_sale_converts_referenced_prospect(client: TestClient, org, make_prospect, db_session: Session, auth_headers) -> None:
    prospect = make_prospect(org.exec_a1)

    response = client.post(
        "/api/v1/sales",
        json={
            "company_name": "Acme",
            "client_name": "Bob",
            "amount": "2500.50",
            "services": "Annual plan",
            "prospect_id": str(prospect.id),
        },
        headers=auth_headers(org.exec_a1),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert Decimal(str(data["amount"])) == Decimal("2500.50")
    assert data["sales_executive_id"] == str(org.exec_a1.id)
    assert data["team_lead_id"] == str(org.lead_a.id)
    assert data["is_transferred_to_finance"] is False
    assert data["transferred_to_finance_date"] is None

    db_session.expire_all()
    converted = db_session.get(Prospect, prospect.id)
    assert converted.activity == "Converted"
    assert converted.is_untouched is False


def test_sale_amount_must_be_positive(client: TestClient, org, auth_headers) -> None:
    for amount in ("0", "-10"):
        response = client.post(
            "/api/v1/sales",
            json={"company_name": "Acme", "client_name": "Bob", "amount": amount},
            headers=auth_headers(org.exec_a1),
        )
        assert response.status_code == 400


def test_sale_referenced_prospect_checks(client: TestClient, org, make_prospect, auth_headers) -> None:
    missing = client.post(
        "/api/v1/sales",
        json={"company_name": "Acme", "client_name": "Bob", "amount": "10", "prospect_id": str(uuid.uuid4())},
        headers=auth_headers(org.exec_a1),
    )
    assert missing.status_code == 404

    foreign = make_prospect(org.exec_b1)
    out_of_scope = client.post(
        "/api/v1/sales",
        json={"company_name": "Acme", "client_name": "Bob", "amount": "10", "prospect_id": str(foreign.id)},
        headers=auth_headers(org.exec_a1),
    )
    assert out_of_scope.status_code == 403


def test_manager_records_sale_for_executive(client: TestClient, org, auth_headers) -> None:
    response = client.post(
        "/api/v1/sales",
        json={
            "company_name": "Acme",
            "client_name": "Bob",
            "amount": "99.99",
            "assigned_executive_id": str(org.exec_b1.id),
        },
        headers=auth_headers(org.manager),
    )

    assert response.status_code == 201
    assert response.json()["data"]["team_lead_id"] == str(org.lead_b.id)


def test_team_lead_filter_is_manager_only(client: TestClient, org, make_sale, auth_headers) -> None:
    make_sale(org.exec_a1)
    b_sale = make_sale(org.exec_b1)
    b_lead_sale = make_sale(org.lead_b)

    forbidden = client.get(
        "/api/v1/sales",
        params={"team_lead_id": str(org.lead_a.id)},
        headers=auth_headers(org.lead_a),
    )
    assert forbidden.status_code == 403

    narrowed = client.get(
        "/api/v1/sales",
        params={"team_lead_id": str(org.lead_b.id)},
        headers=auth_headers(org.manager),
    )
    assert narrowed.status_code == 200
    assert {item["id"] for item in narrowed.json()["data"]} == {str(b_sale.id), str(b_lead_sale.id)}

    not_a_lead = client.get(
        "/api/v1/sales",
        params={"team_lead_id": str(org.exec_a1.id)},
        headers=auth_headers(org.manager),
    )
    assert not_a_lead.status_code == 400


def test_list_sales_filters(client: TestClient, org, make_sale, auth_headers) -> None:
    year = datetime.now(timezone.utc).year
    february = make_sale(org.exec_a1, client_name="Bobby Tables", sale_date=datetime(year, 2, 14, 9, tzinfo=timezone.utc))
    make_sale(org.exec_a1, client_name="Carol", sale_date=datetime(year, 3, 1, 9, tzinfo=timezone.utc))
    make_sale(org.exec_a2, client_name="bob marley", sale_date=datetime(year, 3, 2, 9, tzinfo=timezone.utc))

    by_month = client.get("/api/v1/sales", params={"month": 2}, headers=auth_headers(org.lead_a))
    assert [item["id"] for item in by_month.json()["data"]] == [str(february.id)]

    by_client = client.get("/api/v1/sales", params={"client_name": "BOB"}, headers=auth_headers(org.lead_a))
    assert by_client.json()["results"] == 2

    by_executive = client.get(
        "/api/v1/sales",
        params={"executive_id": str(org.exec_a2.id)},
        headers=auth_headers(org.manager),
    )
    assert by_executive.json()["results"] == 1

    assert client.get("/api/v1/sales", params={"month": 13}, headers=auth_headers(org.manager)).status_code == 400

    own = client.get("/api/v1/sales", headers=auth_headers(org.exec_a2))
    assert [item["client_name"] for item in own.json()["data"]] == ["bob marley"]


def test_get_sale_visibility(client: TestClient, org, make_sale, auth_headers) -> None:
    sale = make_sale(org.exec_a1)

    assert client.get(f"/api/v1/sales/{sale.id}", headers=auth_headers(org.lead_a)).status_code == 200
    assert client.get(f"/api/v1/sales/{sale.id}", headers=auth_headers(org.lead_b)).status_code == 403
    assert client.get(f"/api/v1/sales/{uuid.uuid4()}", headers=auth_headers(org.manager)).status_code == 404


def test_only_managers_delete_sales(client: TestClient, org, make_sale, db_session: Session, auth_headers) -> None:
    sale = make_sale(org.exec_a1)
    sale_id = sale.id

    assert client.delete(f"/api/v1/sales/{sale_id}", headers=auth_headers(org.exec_a1)).status_code == 403
    assert client.delete(f"/api/v1/sales/{sale_id}", headers=auth_headers(org.lead_a)).status_code == 403
    assert client.delete(f"/api/v1/sales/{sale_id}", headers=auth_headers(org.manager)).status_code == 204

    db_session.expire_all()
    assert db_session.get(Sale, sale_id) is None
