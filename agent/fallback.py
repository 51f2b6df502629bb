# Folder: autoops/agent/fallback.py
#
# Rule-based stand-ins for the LLM.
# Used when no provider is configured, or when the provider times out,
# errors, or returns something we can't accept.
#
# Both functions read whichever metric fields are present, so they work
# for resource-style snapshots (cpu/memory/processes) and application-style
# snapshots (errors/latency/conversion) alike. Absent fields count as 0.

import logging
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel
from ingestion.event_schema import ActionKind, Decision, MetricsSnapshot
import config

logger = logging.getLogger(__name__)

HEALTHY_SUMMARY = "System metrics are within healthy limits."


class FallbackThresholds(BaseModel):
    """Cut-offs for the fallback rules. Defaults come from config.py."""
    cpu_critical: float = config.CPU_CRITICAL
    memory_critical: float = config.MEMORY_CRITICAL
    errors_critical: float = config.ERRORS_CRITICAL
    latency_critical_ms: float = config.LATENCY_CRITICAL_MS
    process_count_critical: float = config.PROCESS_COUNT_CRITICAL
    conversion_drop_critical: float = config.CONVERSION_DROP_CRITICAL

    errors_moderate: float = config.ERRORS_MODERATE
    conversion_drop_moderate: float = config.CONVERSION_DROP_MODERATE
    cpu_moderate: float = config.CPU_MODERATE
    memory_moderate: float = config.MEMORY_MODERATE
    latency_moderate_ms: float = config.LATENCY_MODERATE_MS


def _fmt(value: float) -> str:
    return f"{value:g}"


def fallback_summary(metrics: MetricsSnapshot,
                     thresholds: Optional[FallbackThresholds] = None) -> str:
    """One sentence listing every threshold the snapshot crosses"""
    t = thresholds or FallbackThresholds()
    m = metrics.value
    issues: List[str] = []

    if m("errors") > t.errors_critical:
        issues.append(f"high error count ({_fmt(m('errors'))})")
    if m("latency_ms") > t.latency_critical_ms:
        issues.append(f"critical latency ({_fmt(m('latency_ms'))}ms)")
    if m("conversion_drop_percent") > t.conversion_drop_critical:
        issues.append(f"conversion drop of {_fmt(m('conversion_drop_percent'))}%")
    if m("cpu_load") > t.cpu_critical:
        issues.append(f"high CPU load ({_fmt(m('cpu_load'))}%)")
    if m("memory_usage") > t.memory_critical:
        issues.append(f"critical memory usage ({_fmt(m('memory_usage'))}%)")
    if m("process_count") > t.process_count_critical:
        issues.append(f"abnormal process count ({_fmt(m('process_count'))})")

    if not issues:
        return HEALTHY_SUMMARY

    return f"System Alert: {', '.join(issues)} detected. Immediate attention recommended."


def _choose(metrics: MetricsSnapshot, t: FallbackThresholds) -> Tuple[ActionKind, str]:
    """The decision tree. First match wins, most severe first."""
    m = metrics.value

    # ── Critical resource exhaustion ──────────────────────────────────────
    if m("cpu_load") > t.cpu_critical:
        return (ActionKind.SCALE_RESOURCES,
                f"Critical CPU load ({_fmt(m('cpu_load'))}%) detected. Scaling up resources.")

    if m("memory_usage") > t.memory_critical:
        return (ActionKind.RESTART_SERVICE,
                f"Critical memory usage ({_fmt(m('memory_usage'))}%) detected. "
                f"Restarting service to clear memory.")

    # ── Severe error / latency spike ──────────────────────────────────────
    if m("errors") > t.errors_critical:
        return (ActionKind.ROLLBACK,
                f"Error spike ({_fmt(m('errors'))} errors) detected. "
                f"Rolling back to the last stable version.")

    if m("latency_ms") > t.latency_critical_ms:
        return (ActionKind.OPTIMIZE_PERFORMANCE,
                f"Critical latency detected ({_fmt(m('latency_ms'))}ms). "
                f"Optimizing database queries and caching.")

    if m("process_count") > t.process_count_critical:
        return (ActionKind.OPTIMIZE_PERFORMANCE,
                f"High process count ({_fmt(m('process_count'))}). "
                f"Optimizing process management.")

    # ── Moderate trouble ──────────────────────────────────────────────────
    if m("errors") > t.errors_moderate or m("conversion_drop_percent") > t.conversion_drop_moderate:
        return (ActionKind.FIX_CODE,
                f"Elevated errors ({_fmt(m('errors'))}) with a "
                f"{_fmt(m('conversion_drop_percent'))}% conversion drop. Applying a code fix.")

    if (m("cpu_load") > t.cpu_moderate
            or m("memory_usage") > t.memory_moderate
            or m("latency_ms") > t.latency_moderate_ms):
        return (ActionKind.OPTIMIZE_PERFORMANCE,
                "Moderate system load detected. Applying proactive optimizations.")

    return (ActionKind.MONITOR,
            "System metrics within normal parameters. Continuing monitoring.")


def fallback_decision(metrics: MetricsSnapshot,
                      valid_actions: Iterable[str] = config.VALID_ACTIONS,
                      thresholds: Optional[FallbackThresholds] = None) -> Decision:
    """
    Deterministic decision: same metrics + thresholds → same Decision.
    Always returns an action from valid_actions.
    """
    allowed = [str(a) for a in valid_actions]
    if not allowed:
        raise ValueError("valid_actions must not be empty")

    action, reason = _choose(metrics, thresholds or FallbackThresholds())

    if action.value not in allowed:
        substitute = ActionKind.MONITOR.value if ActionKind.MONITOR.value in allowed else allowed[0]
        logger.warning(
            f"Fallback picked '{action.value}' but it is not an allowed action - "
            f"using '{substitute}' instead"
        )
        reason = f"{reason} ('{action.value}' is disabled; falling back to '{substitute}'.)"
        action = ActionKind(substitute)

    return Decision(decision=action, reason=reason)
