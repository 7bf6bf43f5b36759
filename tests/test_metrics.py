from fastapi.testclient import TestClient

from src.room_of_requirements.api.main import app
from src.room_of_requirements.observability import metrics
from src.room_of_requirements.observability.metrics import sanitize_path


client = TestClient(app)


def test_metrics_endpoint_exposes_histogram():
    r = client.get("/health")
    assert r.status_code == 200

    m = client.get("/metrics")
    assert m.status_code == 200
    body = m.text
    assert "# HELP ror_request_latency_seconds" in body
    assert "# TYPE ror_request_latency_seconds histogram" in body
    assert "ror_request_latency_seconds_count" in body


def test_sanitize_path_collapses_ids():
    assert sanitize_path("") == "/"
    assert sanitize_path("/") == "/"
    assert sanitize_path("/health?x=1") == "/health"
    assert sanitize_path("/api/v1/tasks/TASK-001/status") == "/api/v1/tasks"


def test_metric_failure_does_not_break_request(monkeypatch):
    class Broken:
        def labels(self, **_kw):
            raise RuntimeError("registry gone")

    monkeypatch.setattr(metrics, "REQUEST_LATENCY", Broken())
    assert client.get("/api/v1/test").status_code == 200
