import asyncio
import json
import logging

from clinic_api.logging_utils import JSONLogFormatter, _request_id_ctx_var
from clinic_api.middleware import SlidingWindowLimiter


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_endpoint(client):
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "clinic_api_requests_total" in response.text
    assert response.headers["content-type"].startswith("text/plain")


def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_is_generated(client):
    response = client.get("/health")
    assert response.headers["X-Request-ID"]


def test_json_formatter_includes_context_and_extras():
    token = _request_id_ctx_var.set("abc")
    try:
        record = logging.LogRecord("clinic", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.request_id = _request_id_ctx_var.get()
        record.booking = "b-1"
        payload = json.loads(JSONLogFormatter().format(record))
    finally:
        _request_id_ctx_var.reset(token)

    assert payload["message"] == "hello world"
    assert payload["request_id"] == "abc"
    assert payload["booking"] == "b-1"
    assert payload["level"] == "INFO"


def test_metrics_use_route_templates(client, patient, patient_headers):
    client.get(f"/auth/{patient.id}", headers=patient_headers)

    body = client.get("/metrics").text

    assert 'route="/auth/{identity_id}"' in body
    assert str(patient.id) not in body


def test_sliding_window_limiter_is_per_client():
    limiter = SlidingWindowLimiter(limit=2, window_seconds=60)

    async def hits():
        results = [await limiter.allow("10.0.0.1") for _ in range(3)]
        results.append(await limiter.allow("10.0.0.2"))
        return results

    assert asyncio.run(hits()) == [True, True, False, True]
