import pytest

from agent.fallback import (
    HEALTHY_SUMMARY,
    FallbackThresholds,
    fallback_decision,
    fallback_summary,
)
from ingestion.event_schema import ActionKind, MetricsSnapshot


class TestFallbackSummary:

    def test_healthy(self):
        snap = MetricsSnapshot(errors=2, latency_ms=120, cpu_load=20, memory_usage=30)
        assert fallback_summary(snap) == HEALTHY_SUMMARY

    def test_lists_every_crossed_threshold(self):
        snap = MetricsSnapshot(errors=60, latency_ms=1800, conversion_drop_percent=12)
        summary = fallback_summary(snap)

        assert summary.startswith("System Alert:")
        assert "high error count (60)" in summary
        assert "critical latency (1800ms)" in summary
        assert "conversion drop of 12%" in summary
        assert summary.endswith("Immediate attention recommended.")

    def test_resource_metrics(self):
        summary = fallback_summary(MetricsSnapshot(cpu_load=95, memory_usage=92, process_count=800))
        assert "high CPU load (95%)" in summary
        assert "critical memory usage (92%)" in summary
        assert "abnormal process count (800)" in summary

    def test_thresholds_are_strict(self):
        snap = MetricsSnapshot(errors=50, latency_ms=1000, cpu_load=80)
        assert fallback_summary(snap) == HEALTHY_SUMMARY

    def test_custom_thresholds(self):
        snap = MetricsSnapshot(errors=5)
        assert fallback_summary(snap, FallbackThresholds(errors_critical=4)) != HEALTHY_SUMMARY


class TestFallbackDecision:

    @pytest.mark.parametrize("metrics, expected", [
        ({"cpu_load": 95, "memory_usage": 40, "latency_ms": 100}, ActionKind.SCALE_RESOURCES),
        ({"memory_usage": 95}, ActionKind.RESTART_SERVICE),
        ({"errors": 60}, ActionKind.ROLLBACK),
        ({"latency_ms": 1800}, ActionKind.OPTIMIZE_PERFORMANCE),
        ({"process_count": 900}, ActionKind.OPTIMIZE_PERFORMANCE),
        ({"errors": 42, "conversion_drop_percent": 12}, ActionKind.FIX_CODE),
        ({"errors": 11}, ActionKind.FIX_CODE),
        ({"conversion_drop_percent": 15}, ActionKind.FIX_CODE),
        ({"cpu_load": 60}, ActionKind.OPTIMIZE_PERFORMANCE),
        ({"memory_usage": 70}, ActionKind.OPTIMIZE_PERFORMANCE),
        ({"latency_ms": 600}, ActionKind.OPTIMIZE_PERFORMANCE),
        ({"errors": 2, "latency_ms": 120}, ActionKind.MONITOR),
        ({}, ActionKind.MONITOR),
    ])
    def test_decision_tree(self, metrics, expected):
        assert fallback_decision(MetricsSnapshot(**metrics)).decision == expected

    def test_most_severe_rule_wins(self):
        # critical CPU outranks the error spike
        decision = fallback_decision(MetricsSnapshot(cpu_load=99, errors=500))
        assert decision.decision == ActionKind.SCALE_RESOURCES

    def test_reason_cites_value(self):
        decision = fallback_decision(MetricsSnapshot(cpu_load=95, memory_usage=40, latency_ms=100))
        assert "95" in decision.reason

    def test_deterministic(self):
        snap = MetricsSnapshot(errors=42, latency_ms=1800, conversion_drop_percent=12)
        assert fallback_decision(snap) == fallback_decision(snap)

    def test_disallowed_action_substituted_with_monitor(self):
        decision = fallback_decision(
            MetricsSnapshot(errors=60),
            valid_actions=["fix_code", "monitor"],
        )
        assert decision.decision == ActionKind.MONITOR
        assert "rollback" in decision.reason

    def test_disallowed_without_monitor_uses_first_allowed(self):
        decision = fallback_decision(MetricsSnapshot(), valid_actions=["fix_code"])
        assert decision.decision == ActionKind.FIX_CODE

    def test_empty_valid_actions(self):
        with pytest.raises(ValueError):
            fallback_decision(MetricsSnapshot(), valid_actions=[])
