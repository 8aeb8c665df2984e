"""HTTP tests for the charge, health and metrics endpoints."""

import pytest
from fastapi.testclient import TestClient

from paysim.services.payment import main


client = TestClient(main.app)


def test_valid_body_is_charged():
    """Valid invoices are echoed back with a boolean result."""

    resp = client.post("/rest/v1/charge", content='{"currency":{},"customer_id":1,"value":301.99}')

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json"
    body = resp.json()
    assert body["customer_id"] == 1
    assert body["currency"] == {}
    assert body["value"] == 301.99
    assert isinstance(body["result"], bool)


@pytest.mark.parametrize("outcome", [True, False])
def test_result_is_always_overwritten(monkeypatch, outcome):
    """The caller's result never survives; the drawn outcome does."""

    monkeypatch.setattr(main.service, "outcome", lambda: outcome)

    resp = client.post(
        "/rest/v1/charge",
        content=f'{{"currency":{{}},"customer_id":3,"value":10,"result":{str(not outcome).lower()}}}',
    )

    assert resp.status_code == 200
    assert resp.json()["result"] is outcome


@pytest.mark.parametrize(
    "body",
    [
        "",
        "this is not a valid body",
        '{"currency":{},"customer_id":"1","value":"301.99"}',
        '{"currency":{},"customer_id":1,"value":"301.99"}',
        '{"currency":{},"customer_id":"1","value":301.99}',
    ],
)
def test_invalid_body_is_bad_request(body):
    """Decode failures are a 400 with an empty body."""

    resp = client.post("/rest/v1/charge", content=body)

    assert resp.status_code == 400
    assert resp.content == b""


def test_serialization_failure_is_server_error(monkeypatch):
    """A response that cannot be serialized is a 500 with an empty body."""

    class Unserializable:
        def model_dump_json(self):
            raise ValueError("boom")

    monkeypatch.setattr(main.service, "charge", lambda invoice: Unserializable())

    resp = client.post("/rest/v1/charge", content='{"currency":{},"customer_id":1,"value":301.99}')

    assert resp.status_code == 500
    assert resp.content == b""


def test_charge_requires_post():
    """The charge route only answers POST."""

    assert client.get("/rest/v1/charge").status_code == 405


@pytest.mark.parametrize("path", ["/rest/ready", "/rest/alive"])
def test_health_probe(path):
    """Both probes always pass with the health+json media type."""

    resp = client.get(path)

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/health+json"
    assert resp.text == '{"status":"pass"}'


@pytest.mark.parametrize("path", ["/rest/ready", "/rest/alive"])
def test_health_requires_get(path):
    """Health routes only answer GET."""

    assert client.post(path).status_code == 405


def test_metrics_exposes_charge_outcomes():
    """Charge outcomes show up on the Prometheus scrape endpoint."""

    client.post("/rest/v1/charge", content='{"currency":{},"customer_id":1,"value":1.0}')

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "charge_outcomes_total" in resp.text
    assert "http_requests_total" in resp.text


def test_non_finite_currency_is_bad_request():
    """Currency that could not be echoed unchanged is rejected, not rewritten."""

    resp = client.post("/rest/v1/charge", content='{"currency":{"a":1e400},"customer_id":1,"value":301.99}')

    assert resp.status_code == 400
    assert resp.content == b""
