import json

import pytest

from agent.errors import MetricsProviderError, ProviderNotConfigured
from agent import orchestrator
from agent.orchestrator import AutoOpsPipeline
from ingestion.event_schema import ActionKind, PipelineFailure, PipelineResult
from ingestion.monitoring import DemoMetricsProvider


class BrokenMetrics:
    name = "broken"

    def get_metrics(self):
        raise MetricsProviderError("prometheus unreachable")


@pytest.fixture
def build(health_store, cache, monkeypatch):
    """Pipeline factory with zero execution delays"""
    def _build(provider=None, metrics_provider=None):
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
    return _build


class TestRun:

    def test_fallback_only_run(self, build):
        result = build().run({"errors": 60, "latency_ms": 100})

        assert isinstance(result, PipelineResult)
        assert result.summary.startswith("System Alert:")
        assert result.decision.decision == ActionKind.ROLLBACK
        assert result.action_result.status == "success"
        assert result.execution_time_ms >= 0

    def test_provider_run(self, build, make_provider):
        provider = make_provider([
            "Error spike with a conversion drop.",
            json.dumps({"decision": "fix_code", "reason": "Checkout bug."}),
        ])
        result = build(provider=provider).run({"errors": 42, "conversion_drop_percent": 12})

        assert result.summary == "Error spike with a conversion drop."
        assert result.decision.decision == ActionKind.FIX_CODE
        assert len(provider.calls) == 2

    def test_repeat_run_hits_cache(self, build, make_provider):
        provider = make_provider([
            "Summary.",
            json.dumps({"decision": "monitor", "reason": "Quiet."}),
        ])
        pipeline = build(provider=provider)

        pipeline.run({"errors": 1})
        pipeline.run({"errors": 1})

        assert len(provider.calls) == 2

    def test_clear_cache_forces_new_calls(self, build, make_provider):
        provider = make_provider([
            "Summary.",
            json.dumps({"decision": "monitor", "reason": "Quiet."}),
        ])
        pipeline = build(provider=provider)

        pipeline.run({"errors": 1})
        pipeline.clear_cache()
        pipeline.clear_cache()
        assert len(pipeline.cache) == 0

        pipeline.run({"errors": 1})
        assert len(provider.calls) == 4

    def test_demo_loop_heals_after_fix(self, build, health_store):
        pipeline = build()

        first = pipeline.run()
        assert first.metrics.errors == 42
        # critical latency outranks the moderate error count
        assert first.decision.decision == ActionKind.OPTIMIZE_PERFORMANCE
        assert health_store.read().status == "healthy"

        second = pipeline.run()
        assert second.metrics.errors == 2
        assert second.decision.decision == ActionKind.MONITOR


class TestInvoke:

    def test_ingestion_failure(self, build):
        outcome = build(metrics_provider=BrokenMetrics()).invoke()

        assert isinstance(outcome, PipelineFailure)
        assert outcome.error == "Ingestion failed"
        assert "prometheus unreachable" in outcome.message

    def test_bad_override_is_ingestion_failure(self, build):
        outcome = build().invoke(["not", "a", "dict"])
        assert isinstance(outcome, PipelineFailure)
        assert outcome.error == "Ingestion failed"

    def test_stage_error_with_fallback_disabled(self, build, make_provider):
        from agent.errors import ProviderError

        pipeline = build(provider=make_provider([ProviderError("upstream 500")]))
        pipeline.summary_stage.fallback_enabled = False

        outcome = pipeline.invoke({"errors": 1})
        assert isinstance(outcome, PipelineFailure)
        assert outcome.error == "Pipeline failed"

    def test_unexpected_crash(self, build, monkeypatch):
        pipeline = build()

        def crash(decision):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(pipeline.executor, "execute", crash)
        outcome = pipeline.invoke({"errors": 1})

        assert outcome.error == "Internal server error"
        assert outcome.message == "kaboom"


class TestFromConfig:

    def test_missing_credentials_means_fallback(self, health_store, cache, monkeypatch):
        def not_configured():
            raise ProviderNotConfigured("ANTHROPIC_API_KEY is not set")

        monkeypatch.setattr(orchestrator, "build_reasoning_provider", not_configured)
        pipeline = AutoOpsPipeline.from_config(
            metrics_provider=DemoMetricsProvider(health_store),
            health_store=health_store,
            cache=cache,
        )

        assert pipeline.provider is None
        assert pipeline.decision_stage.provider is None

    def test_one_provider_shared_by_both_stages(self, build, make_provider):
        provider = make_provider()
        pipeline = build(provider=provider)
        assert pipeline.summary_stage.provider is provider
        assert pipeline.decision_stage.provider is provider
        assert pipeline.summary_stage.cache is pipeline.decision_stage.cache
