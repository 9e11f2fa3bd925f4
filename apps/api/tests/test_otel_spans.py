from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from salescrm.otel import setup_inmemory_otel


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("salescrm-api")
    exporter.clear()
    return exporter


def test_request_span_contains_correlation_id(
    client: TestClient,
    org,
    auth_headers,
    span_exporter: InMemorySpanExporter,
) -> None:
    response = client.post(
        "/api/v1/prospects",
        json={"company_name": "Span Co", "client_name": "Sia"},
        headers={**auth_headers(org.exec_a1), "X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_transfer_span_records_counts(
    client: TestClient,
    org,
    make_sale,
    auth_headers,
    span_exporter: InMemorySpanExporter,
) -> None:
    sale = make_sale(org.exec_a1)

    response = client.post(
        "/api/v1/transfer/internal",
        json={
            "source_user_id": str(org.exec_a1.id),
            "target_user_id": str(org.exec_a2.id),
            "data_ids": [str(sale.id)],
            "data_type": "sales",
        },
        headers=auth_headers(org.manager),
    )
    assert response.status_code == 200

    transfer_spans = [span for span in span_exporter.get_finished_spans() if span.name == "transfer.internal"]
    assert transfer_spans
    assert any(
        span.attributes.get("data_type") == "sales"
        and span.attributes.get("requested_count") == 1
        and span.attributes.get("moved_count") == 1
        for span in transfer_spans
    )


def test_ownership_cascade_span(
    client: TestClient,
    org,
    auth_headers,
    span_exporter: InMemorySpanExporter,
) -> None:
    response = client.delete(f"/api/v1/teams/{org.team_b.id}", headers=auth_headers(org.manager))
    assert response.status_code == 204

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "ownership.delete_team"]
    assert spans
    assert spans[-1].attributes.get("team_id") == str(org.team_b.id)
