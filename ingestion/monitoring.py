# Folder: autoops/ingestion/monitoring.py
#
# Where metrics come from when the caller doesn't supply them.
#
# Every provider has the same tiny contract:
#     provider.name            -> short tag, also used as snapshot.source
#     provider.get_metrics()   -> MetricsSnapshot
#
# Providers:
#   demo        deterministic, flips healthy/degraded off the health file
#   system      local telemetry via psutil (never raises)
#   prometheus  PromQL over HTTP
#   datadog     Datadog v1 query API
#   webhook     any endpoint that returns our snapshot shape

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import psutil
import requests

from agent.errors import MetricsProviderError
from ingestion.event_schema import MetricsSnapshot
from ingestion.metrics import safe_number, normalize_metrics
from storage.health_store import HealthStore
import config

logger = logging.getLogger(__name__)


# ─── Demo ─────────────────────────────────────────────────────────────────

DEGRADED_DEMO_METRICS = {
    "errors": 42,
    "latency_ms": 1800,
    "conversion_drop_percent": 12,
    "active_users": 1250,
}

HEALTHY_DEMO_METRICS = {
    "errors": 2,
    "latency_ms": 120,
    "conversion_drop_percent": 0,
    "active_users": 1250,
}


class DemoMetricsProvider:
    """
    Deterministic stand-in for a monitoring system.

    Reports a degraded application until the executor records a fix in
    the health store; then reports healthy for `healthy_window_sec`,
    after which the system "degrades" again and the loop repeats.
    """
    name = "demo"

    def __init__(self, health_store: HealthStore,
                 healthy_window_sec: float = config.DEMO_HEALTHY_WINDOW_SEC):
        self.health_store = health_store
        self.healthy_window_sec = healthy_window_sec

    def get_metrics(self) -> MetricsSnapshot:
        age = self.health_store.seconds_since_fix()
        healthy = age is not None and age < self.healthy_window_sec
        values = HEALTHY_DEMO_METRICS if healthy else DEGRADED_DEMO_METRICS
        return MetricsSnapshot(**values, source=self.name)


# ─── Local system telemetry ───────────────────────────────────────────────

class SystemMetricsProvider:
    """
    CPU / memory / process count / uptime of this machine.
    Each reading is taken independently - if one fails the others
    are still reported and `error` says what was missing.
    """
    name = "system"

    def __init__(self, cpu_interval_sec: float = 0.1):
        self.cpu_interval_sec = cpu_interval_sec

    def get_metrics(self) -> MetricsSnapshot:
        readings: Dict[str, Any] = {}
        failures: List[str] = []

        probes = {
            "cpu_load": lambda: round(psutil.cpu_percent(interval=self.cpu_interval_sec), 1),
            "memory_usage": lambda: round(psutil.virtual_memory().percent, 1),
            "process_count": lambda: len(psutil.pids()),
            "uptime_seconds": lambda: round(max(0.0, time.time() - psutil.boot_time())),
        }

        for field, probe in probes.items():
            try:
                readings[field] = probe()
            except (psutil.Error, OSError, RuntimeError) as e:
                failures.append(f"{field}: {e}")

        error = None
        if failures:
            error = "System telemetry partially unavailable - " + "; ".join(failures)
            logger.warning(error)

        return MetricsSnapshot(**readings, source=self.name, error=error)


# ─── HTTP integrations ────────────────────────────────────────────────────

class PrometheusMetricsProvider:
    """Runs one instant PromQL query per metric"""
    name = "prometheus"

    def __init__(self, url: str = config.PROMETHEUS_URL,
                 queries: Optional[Dict[str, str]] = None,
                 timeout_sec: float = config.MONITORING_TIMEOUT_SEC):
        self.url = url.rstrip("/")
        self.queries = {**config.PROMETHEUS_QUERIES, **(queries or {})}
        self.timeout_sec = timeout_sec

    def get_metrics(self) -> MetricsSnapshot:
        values: Dict[str, float] = {}

        for key, query in self.queries.items():
            try:
                resp = requests.get(
                    f"{self.url}/api/v1/query",
                    params={"query": query},
                    timeout=self.timeout_sec
                )
                resp.raise_for_status()
                data = resp.json()
            except (requests.RequestException, ValueError) as e:
                raise MetricsProviderError(f"Failed to fetch from Prometheus: {e}") from e

            result = (data.get("data") or {}).get("result") or []
            if data.get("status") == "success" and result:
                try:
                    values[key] = safe_number(result[0]["value"][1])
                except (KeyError, IndexError, TypeError):
                    logger.warning(f"Prometheus: unexpected result shape for '{key}'")

        # latency query returns seconds
        return MetricsSnapshot(
            errors=round(values.get("errors", 0)),
            latency_ms=round(values.get("latency", 0) * 1000),
            active_users=round(values.get("active_users", 0)),
            conversion_drop_percent=0,
            source=self.name,
        )


class DatadogMetricsProvider:
    """Latest point of each series over the last 5 minutes"""
    name = "datadog"

    def __init__(self, api_key: str, app_key: str,
                 queries: Optional[Dict[str, str]] = None,
                 url: str = config.DATADOG_URL,
                 timeout_sec: float = config.MONITORING_TIMEOUT_SEC):
        self.api_key = api_key
        self.app_key = app_key
        self.queries = {**config.DATADOG_QUERIES, **(queries or {})}
        self.url = url.rstrip("/")
        self.timeout_sec = timeout_sec

    def get_metrics(self) -> MetricsSnapshot:
        now = int(time.time())
        window_start = now - 300
        values: Dict[str, float] = {}

        for key, query in self.queries.items():
            try:
                resp = requests.get(
                    f"{self.url}/query",
                    params={"query": query, "from": window_start, "to": now},
                    headers={
                        "DD-API-KEY": self.api_key,
                        "DD-APPLICATION-KEY": self.app_key,
                    },
                    timeout=self.timeout_sec
                )
                resp.raise_for_status()
                data = resp.json()
            except (requests.RequestException, ValueError) as e:
                raise MetricsProviderError(f"Failed to fetch from Datadog: {e}") from e

            series = data.get("series") or []
            if series:
                points = series[0].get("pointlist") or []
                if points:
                    values[key] = safe_number(points[-1][1])

        return MetricsSnapshot(
            errors=round(values.get("errors", 0)),
            latency_ms=round(values.get("latency", 0)),
            active_users=round(values.get("active_users", 0)),
            conversion_drop_percent=0,
            source=self.name,
        )


class WebhookMetricsProvider:
    """
    Generic endpoint. Expects our own snapshot shape unless a
    transformer is given to map the response into it.
    """
    name = "webhook"

    def __init__(self, url: str, method: str = "GET",
                 headers: Optional[Dict[str, str]] = None,
                 body: Optional[Dict[str, Any]] = None,
                 transformer: Optional[Callable[[Any], Dict[str, Any]]] = None,
                 timeout_sec: float = config.MONITORING_TIMEOUT_SEC):
        self.url = url
        self.method = method.upper()
        self.headers = headers or {}
        self.body = body
        self.transformer = transformer
        self.timeout_sec = timeout_sec

    def get_metrics(self) -> MetricsSnapshot:
        try:
            resp = requests.request(
                self.method,
                self.url,
                headers=self.headers,
                json=self.body,
                timeout=self.timeout_sec
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise MetricsProviderError(f"Failed to fetch from webhook: {e}") from e

        if self.transformer is not None:
            data = self.transformer(data)

        if not isinstance(data, dict):
            raise MetricsProviderError(
                f"Webhook returned {type(data).__name__}, expected a JSON object"
            )

        return normalize_metrics({"source": self.name, **data})


# ─── Composition ──────────────────────────────────────────────────────────

class FallbackMetricsProvider:
    """
    Try the primary source; if it raises, use the fallback and record
    why in snapshot.error. Local telemetry is the usual fallback.
    """

    def __init__(self, primary, fallback):
        self.primary = primary
        self.fallback = fallback
        self.name = f"{primary.name}+{fallback.name}"

    def get_metrics(self) -> MetricsSnapshot:
        try:
            return self.primary.get_metrics()
        except Exception as e:
            logger.warning(
                f"{self.primary.name} failed ({e}) - falling back to {self.fallback.name}"
            )
            snapshot = self.fallback.get_metrics()
            note = f"{self.primary.name} unavailable: {e}"
            if snapshot.error:
                note = f"{note}; {snapshot.error}"
            return snapshot.model_copy(update={"error": note})


def build_metrics_provider(monitoring_type: Optional[str] = config.MONITORING_TYPE,
                           mock_data: bool = config.METRICS_MOCK_DATA,
                           system_fallback: bool = config.METRICS_SYSTEM_FALLBACK,
                           health_store: Optional[HealthStore] = None):
    """
    Pick the metrics source from config.

    No MONITORING_TYPE → demo generator (or local telemetry when mock
    data is off). Integrations get local telemetry behind them unless
    METRICS_SYSTEM_FALLBACK is disabled.
    """
    kind = (monitoring_type or "").strip().lower()

    if not kind:
        if mock_data:
            return DemoMetricsProvider(health_store or HealthStore())
        return SystemMetricsProvider()

    if kind == "system":
        return SystemMetricsProvider()

    if kind == "prometheus":
        primary = PrometheusMetricsProvider(config.PROMETHEUS_URL)
    elif kind == "datadog":
        if not (config.DATADOG_API_KEY and config.DATADOG_APP_KEY):
            raise ValueError("MONITORING_TYPE=datadog needs DATADOG_API_KEY and DATADOG_APP_KEY")
        primary = DatadogMetricsProvider(config.DATADOG_API_KEY, config.DATADOG_APP_KEY)
    elif kind == "webhook":
        if not config.WEBHOOK_URL:
            raise ValueError("MONITORING_TYPE=webhook needs WEBHOOK_URL")
        headers = {}
        if config.WEBHOOK_TOKEN:
            headers["Authorization"] = f"Bearer {config.WEBHOOK_TOKEN}"
        primary = WebhookMetricsProvider(
            config.WEBHOOK_URL, method=config.WEBHOOK_METHOD, headers=headers
        )
    else:
        raise ValueError(f"Unknown MONITORING_TYPE: {monitoring_type}")

    logger.info(f"Metrics source: {primary.name}")
    if system_fallback:
        return FallbackMetricsProvider(primary, SystemMetricsProvider())
    return primary
