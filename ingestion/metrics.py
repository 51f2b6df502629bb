# Folder: autoops/ingestion/metrics.py
#
# Stage 1 of 4: produce the MetricsSnapshot for this run.
# NO LLM call here - either clean up what the caller handed us,
# or ask the configured MetricsProvider.

import logging
import math
from typing import Any, Dict, Optional

from agent.errors import IngestionFailure
from ingestion.event_schema import (
    FLOAT_FIELDS, INT_FIELDS, NUMERIC_FIELDS, MetricsSnapshot, utc_now_iso
)

logger = logging.getLogger(__name__)


def safe_number(value: Any, as_int: bool = False):
    """
    Lenient numeric parse for untrusted input.
    Anything unparseable, negative, NaN or infinite becomes 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return int(number) if as_int else number


def normalize_metrics(raw: Dict[str, Any]) -> MetricsSnapshot:
    """
    Turn an externally supplied metrics dict into a MetricsSnapshot.

    - recognized numeric fields: safe parse, default 0
    - unknown fields: passed through untouched
    - timestamp: kept if given, otherwise now
    """
    if not isinstance(raw, dict):
        raise IngestionFailure(
            f"Metrics must be a JSON object, got {type(raw).__name__}"
        )

    data: Dict[str, Any] = {}

    for name in INT_FIELDS:
        data[name] = safe_number(raw.get(name), as_int=True)
    for name in FLOAT_FIELDS:
        data[name] = safe_number(raw.get(name))

    for name in ("source", "error"):
        if raw.get(name) is not None:
            data[name] = str(raw[name])

    data["timestamp"] = str(raw.get("timestamp") or utc_now_iso())

    # Everything we don't recognize rides along verbatim
    for key, value in raw.items():
        if key not in data and key not in NUMERIC_FIELDS:
            data[str(key)] = value

    return MetricsSnapshot(**data)


class MetricsIngestion:
    """
    Wraps a MetricsProvider (see ingestion/monitoring.py).
    Only fails when the provider itself raises - providers are expected
    to fail soft and return a snapshot with `error` set instead.
    """

    def __init__(self, provider):
        self.provider = provider

    def ingest(self, raw: Optional[Dict[str, Any]] = None) -> MetricsSnapshot:
        if raw is not None:
            snapshot = normalize_metrics(raw)
            logger.info("[Ingestion] Using metrics supplied by caller")
            return snapshot

        provider_name = getattr(self.provider, "name", type(self.provider).__name__)
        try:
            snapshot = self.provider.get_metrics()
        except Exception as e:
            raise IngestionFailure(
                f"Metrics provider '{provider_name}' failed: {e}"
            ) from e

        if snapshot.error:
            logger.warning(f"[Ingestion] {provider_name} snapshot degraded: {snapshot.error}")
        else:
            logger.info(f"[Ingestion] Metrics from {provider_name}")
        return snapshot
