import json

import pytest

from agent.errors import MetricsProviderError
from agent.orchestrator import AutoOpsPipeline
from app.main import create_app
from ingestion.monitoring import DemoMetricsProvider


class BrokenMetrics:
    name = "broken"

    def get_metrics(self):
        raise MetricsProviderError("datadog 403")


def _pipeline(health_store, cache, provider=None, metrics_provider=None):
    pipeline = AutoOpsPipeline.from_config(
        provider=provider,
        metrics_provider=metrics_provider or DemoMetricsProvider(health_store),
        health_store=health_store,
        cache=cache,
    )
    pipeline.executor.processing_delay_sec = 0
    pipeline.executor.step_delay_sec = 0
    pipeline.executor.restart_delay_sec = 0
    return pipeline


@pytest.fixture
def client(health_store, cache):
    app = create_app(_pipeline(health_store, cache))
    app.config["TESTING"] = True
    return app.test_client()


class TestRunFlow:

    def test_with_metrics_body(self, client):
        resp = client.post("/run-flow", json={"metrics": {"errors": 60, "latency_ms": 100}})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["decision"]["decision"] == "rollback"
        assert body["action_result"]["status"] == "success"
        assert body["metrics"]["errors"] == 60
        assert isinstance(body["execution_time_ms"], int)
        assert "summary" in body

    def test_null_extra_metric_round_trips(self, client):
        resp = client.post("/run-flow", json={"metrics": {"region": None, "errors": 1}})

        assert resp.status_code == 200
        metrics = resp.get_json()["metrics"]
        assert "region" in metrics
        assert metrics["region"] is None
        assert "source" not in metrics

    def test_oversized_integer_is_zero(self, client):
        resp = client.post(
            "/run-flow",
            data='{"metrics": {"errors": 1' + "0" * 400 + "}}",
            content_type="application/json",
        )
        assert resp.status_code == 200
        assert resp.get_json()["metrics"]["errors"] == 0

    def test_without_body_uses_metrics_source(self, client):
        resp = client.post("/run-flow")
        assert resp.status_code == 200
        assert resp.get_json()["metrics"]["source"] == "demo"

    def test_ignores_non_json_body(self, client):
        resp = client.post("/run-flow", data="not json", content_type="text/plain")
        assert resp.status_code == 200

    def test_failure_is_500(self, health_store, cache):
        app = create_app(_pipeline(health_store, cache, metrics_provider=BrokenMetrics()))
        resp = app.test_client().post("/run-flow")

        assert resp.status_code == 500
        body = resp.get_json()
        assert body["error"] == "Ingestion failed"
        assert "datadog 403" in body["message"]
        assert body["timestamp"]

    def test_get_not_allowed(self, client):
        resp = client.get("/run-flow")
        assert resp.status_code == 405
        assert resp.get_json()["error"] == "Method not allowed"


class TestClearCache:

    def test_clears(self, health_store, cache, make_provider):
        provider = make_provider(["Summary.", json.dumps({"decision": "monitor", "reason": "ok"})])
        app = create_app(_pipeline(health_store, cache, provider=provider))
        client = app.test_client()

        client.post("/run-flow", json={"metrics": {"errors": 1}})
        assert len(cache) == 2

        resp = client.post("/clear-cache")
        assert resp.status_code == 200
        assert resp.get_json() == {"message": "Cache cleared successfully"}
        assert len(cache) == 0

    def test_idempotent(self, client):
        assert client.post("/clear-cache").status_code == 200
        assert client.post("/clear-cache").status_code == 200


class TestHealth:

    def test_reports_state(self, client):
        body = client.get("/health").get_json()
        assert body["status"] == "ok"
        assert body["reasoning_provider"] is None
        assert body["cache_entries"] == 0
        assert body["system_health"]["status"] == "degraded"

    def test_reflects_fix(self, client):
        client.post("/run-flow", json={"metrics": {"errors": 42, "conversion_drop_percent": 12}})
        body = client.get("/health").get_json()
        assert body["system_health"]["status"] == "healthy"
        assert body["system_health"]["fix_type"] == "fix_code"
