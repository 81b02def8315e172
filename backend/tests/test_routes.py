import json

import pytest
from fastapi.testclient import TestClient

from autoops.core.errors import UpstreamError
from autoops.main import app
from autoops.services.enrichment import get_search_client
from autoops.services.llm_client import get_model_client
from fakes import FakeModelClient, FakeSearchClient

LOGS = "ERROR api-gateway upstream primary-db timed out after 30s"


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use_model(model, search=None):
    app.dependency_overrides[get_model_client] = lambda: model
    app.dependency_overrides[get_search_client] = lambda: search or FakeSearchClient()


def _parse_sse(body):
    frames = []
    for block in body.strip().split("\n\n"):
        lines = block.split("\n")
        event = lines[0].removeprefix("event: ")
        data = json.loads(lines[1].removeprefix("data: "))
        frames.append((event, data))
    return frames


class TestAnalyzeRoute:
    def test_returns_scored_report(self, client, sample_payload):
        _use_model(FakeModelClient(text=json.dumps(sample_payload)))

        resp = client.post("/api/analyze", json={"logs": LOGS})

        assert resp.status_code == 200
        body = resp.json()
        assert body["severity_score"] == 50
        assert body["business_impact_score"] == 49
        assert body["external_intelligence"] == "No external context available."
        assert body["propagation"]["edges"][0]["from"] == "api-gateway"

    @pytest.mark.parametrize("payload", [{}, {"logs": ""}, {"logs": "   "}])
    def test_missing_logs(self, client, payload):
        model = FakeModelClient(text="{}")
        _use_model(model)

        resp = client.post("/api/analyze", json=payload)

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Logs are required"
        assert model.prompts == []

    def test_malformed_model_output(self, client):
        _use_model(FakeModelClient(text="not json at all"))

        resp = client.post("/api/analyze", json={"logs": LOGS})

        assert resp.status_code == 502
        assert resp.json()["detail"] == "AI returned invalid JSON"

    def test_upstream_failure(self, client):
        _use_model(FakeModelClient(error=UpstreamError("Model rate limit exceeded")))

        resp = client.post("/api/analyze", json={"logs": LOGS})

        assert resp.status_code == 502

    def test_lone_surrogate_still_produces_report(self, client, sample_payload):
        sample_payload["incident_type"] = "DB \ud800 failure"
        _use_model(FakeModelClient(text=json.dumps(sample_payload)))

        resp = client.post("/api/analyze", json={"logs": LOGS})

        assert resp.status_code == 200
        assert resp.json()["incident_type"] == "DB ? failure"


class TestStreamRoute:
    def test_streams_narration_then_final(self, client, sample_payload):
        _use_model(FakeModelClient(fragments=[
            "Checking gateway errors. ",
            "<FINAL_JSON>" + json.dumps(sample_payload) + "</FINAL_JSON>",
        ]))

        resp = client.post("/api/analyze/stream", json={"logs": LOGS})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        frames = _parse_sse(resp.text)
        assert frames[0] == ("token", {"text": "Checking gateway errors. "})
        assert [event for event, _ in frames] == ["token", "final"]
        assert frames[1][1]["severity_score"] == 50

    def test_streams_error_without_block(self, client):
        _use_model(FakeModelClient(fragments=["no payload here"]))

        resp = client.post("/api/analyze/stream", json={"logs": LOGS})

        frames = _parse_sse(resp.text)
        assert frames[-1] == ("error", {"message": "Model did not return FINAL_JSON block."})
        assert sum(event == "error" for event, _ in frames) == 1

    def test_narration_with_lone_surrogate(self, client):
        _use_model(FakeModelClient(fragments=["pool \ud800 stuck ", "<FINAL_JSON>{}</FINAL_JSON>"]))

        resp = client.post("/api/analyze/stream", json={"logs": LOGS})

        frames = _parse_sse(resp.text)
        assert frames[0] == ("token", {"text": "pool \ud800 stuck "})
        assert frames[-1][0] == "final"

    def test_missing_logs(self, client):
        _use_model(FakeModelClient())

        resp = client.post("/api/analyze/stream", json={"logs": ""})

        assert resp.status_code == 400


class TestOtherRoutes:
    def test_execute_rejects_unknown_service(self, client):
        resp = client.post("/api/execute", json={"service": "payments"})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid service"

    def test_report_document(self, client, sample_payload):
        resp = client.post("/api/report", json={"report": sample_payload, "incident_id": "INC-ABC12345"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["incident_id"] == "INC-ABC12345"
        assert body["labels"]["severity_tier"] == "P3"
        assert body["labels"]["confidence_percent"] == 80
        assert body["report"]["incident_type"] == "Database Connectivity Failure"

    def test_health(self, client):
        resp = client.get("/api/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_error_schema_matches_error_bodies(self, client):
        schema = client.get("/openapi.json").json()["components"]["schemas"]["ErrorResponse"]
        resp = client.post("/api/execute", json={"service": "payments"})

        assert set(schema["properties"]) == set(resp.json()) == {"detail"}
