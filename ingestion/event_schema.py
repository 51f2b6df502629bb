# Folder: autoops/ingestion/event_schema.py
#
# These are the core data models used EVERYWHERE in the project.
# Every other file imports from here.
#
# Flow of one pipeline run:
# MetricsSnapshot → Summary (str) → Decision → ActionResult → PipelineResult

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp, millisecond precision, 'Z' suffix"""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


# Recognized numeric fields across both metric vocabularies.
# Resource utilization: cpu_load, memory_usage, process_count, uptime_seconds
# Application health:   errors, latency_ms, conversion_drop_percent, active_users
INT_FIELDS = ("errors", "process_count", "active_users")
FLOAT_FIELDS = (
    "cpu_load",
    "memory_usage",
    "latency_ms",
    "conversion_drop_percent",
    "uptime_seconds",
)
NUMERIC_FIELDS = INT_FIELDS + FLOAT_FIELDS


class MetricsSnapshot(BaseModel):
    """
    One point-in-time reading of system health.

    Superset of both metric vocabularies - every numeric field is optional,
    so a snapshot from local telemetry and one from Prometheus share a type.
    Unknown fields from the source are kept (extra="allow").

    Frozen: created once per run by ingestion, then only read.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    # Mandatory - when the reading was taken
    timestamp: str = Field(default_factory=utc_now_iso)

    # Resource utilization
    cpu_load: Optional[float] = Field(default=None, ge=0)        # percent
    memory_usage: Optional[float] = Field(default=None, ge=0)    # percent
    process_count: Optional[int] = Field(default=None, ge=0)
    uptime_seconds: Optional[float] = Field(default=None, ge=0)

    # Application health
    errors: Optional[int] = Field(default=None, ge=0)
    latency_ms: Optional[float] = Field(default=None, ge=0)
    conversion_drop_percent: Optional[float] = Field(default=None, ge=0)
    active_users: Optional[int] = Field(default=None, ge=0)

    # Where it came from, and what went wrong getting it (if anything)
    source: Optional[str] = None
    error: Optional[str] = None

    def value(self, name: str) -> float:
        """Numeric value of a field, 0 when absent or not a number"""
        raw = getattr(self, name, None)
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            return 0
        return raw

    def payload(self) -> Dict[str, Any]:
        """
        JSON-ready dict of the fields that are actually present.
        Only unset declared fields are left out - extras keep their
        value even when it is null.
        """
        unset = {name for name in type(self).model_fields if getattr(self, name) is None}
        return self.model_dump(mode="json", exclude=unset)

    def cache_payload(self) -> Dict[str, Any]:
        """
        Payload used for cache keys.
        Timestamp is dropped - two readings with the same values
        should share one summary / decision.
        """
        data = self.payload()
        data.pop("timestamp", None)
        return data


class ActionKind(str, Enum):
    """Closed set of remediation actions the decision stage may pick"""
    FIX_CODE = "fix_code"
    ROLLBACK = "rollback"
    OPTIMIZE_PERFORMANCE = "optimize_performance"
    SCALE_UP = "scale_up"
    SCALE_RESOURCES = "scale_resources"
    RESTART_SERVICE = "restart_service"
    MONITOR = "monitor"


class Decision(BaseModel):
    """
    Exactly one action plus why.
    Built by the decision stage (provider or fallback), consumed by the executor.
    """
    model_config = ConfigDict(frozen=True)

    decision: ActionKind
    reason: str


class ActionResult(BaseModel):
    """Terminal output of the execution stage"""
    status: Literal["success", "error"]
    action_log: str                  # cumulative, human-readable
    timestamp: str = Field(default_factory=utc_now_iso)


class HealthStatus(BaseModel):
    """
    The small JSON health document written by the executor after a fix.
    Read back by the demo metrics provider.
    """
    status: str = "degraded"         # "healthy" after a fix
    last_fix_timestamp: Optional[str] = None
    fix_type: Optional[str] = None


class PipelineResult(BaseModel):
    """The complete record of one pipeline run"""
    metrics: MetricsSnapshot
    summary: str
    decision: Decision
    action_result: ActionResult
    execution_time_ms: int


class PipelineFailure(BaseModel):
    """Single aggregate error returned when a run cannot complete"""
    error: str
    message: str
    timestamp: str = Field(default_factory=utc_now_iso)
