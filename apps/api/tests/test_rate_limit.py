from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from salescrm.core.config import get_settings
from salescrm.middleware.rate_limit import reset_rate_limiter


@pytest.fixture(autouse=True)
def configure_rate_limiter_env(configure_env: None, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "false")
    monkeypatch.setenv("RATE_LIMIT_MUTATIONS_PER_MINUTE", "3")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    reset_rate_limiter()
    get_settings.cache_clear()


def _prospect(client: TestClient, headers: dict[str, str], index: int, correlation_id: str | None = None):
    if correlation_id is not None:
        headers = {**headers, "X-Correlation-Id": correlation_id}
    return client.post(
        "/api/v1/prospects",
        json={"company_name": f"Rate Limit Co {index}", "client_name": "Bob"},
        headers=headers,
    )


def test_mutating_endpoints_are_rate_limited(client: TestClient, org, auth_headers) -> None:
    headers = auth_headers(org.exec_a1)
    responses = [_prospect(client, headers, index) for index in range(4)]

    assert [response.status_code for response in responses[:3]] == [201, 201, 201]
    limited = responses[3]
    assert limited.status_code == 429
    body = limited.json()
    assert body["code"] == "rate_limited"
    assert body["message"] == "Too many requests"
    assert body["correlation_id"] is not None
    assert limited.headers.get("Retry-After") is not None


def test_buckets_are_per_user(client: TestClient, org, auth_headers) -> None:
    for index in range(3):
        _prospect(client, auth_headers(org.exec_a1), index)

    assert _prospect(client, auth_headers(org.exec_a1), 3).status_code == 429
    assert _prospect(client, auth_headers(org.exec_a2), 4).status_code == 201


def test_get_endpoints_are_not_rate_limited(client: TestClient, org, auth_headers) -> None:
    headers = auth_headers(org.exec_a1)
    assert _prospect(client, headers, 0).status_code == 201

    responses = [client.get("/api/v1/prospects", headers=headers) for _ in range(10)]
    assert all(response.status_code == 200 for response in responses)


def test_rate_limited_response_includes_correlation_id(client: TestClient, org, auth_headers) -> None:
    headers = auth_headers(org.exec_a1)
    for index in range(3):
        _prospect(client, headers, index)

    limited = _prospect(client, headers, 3, correlation_id="corr-rate-1")

    assert limited.status_code == 429
    assert limited.json()["correlation_id"] == "corr-rate-1"
    assert limited.headers.get("x-correlation-id") == "corr-rate-1"
