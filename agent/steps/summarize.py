# Folder: autoops/agent/steps/summarize.py
#
# Stage 2 of 4: turn raw metrics into one plain-English sentence.
# FIRST LLM call in the pipeline (when a provider is configured).
#
# Order of preference:
#   1. cached summary for identical metrics
#   2. rule-based summary if there is no provider
#   3. provider call raced against a timeout
#   4. rule-based summary if that call fails (unless fallback is off)

import json
import logging
from typing import Optional

from agent.errors import ProviderError
from agent.fallback import FallbackThresholds, fallback_summary
from agent.reasoning import ReasoningProvider, call_with_timeout
from ingestion.event_schema import MetricsSnapshot
from storage.result_cache import ResultCache
import config

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are a Site Reliability Engineer agent. Summarize the following system "
    "metrics in one concise sentence, highlighting the most critical issues."
)


class SummaryStage:

    def __init__(self, cache: ResultCache,
                 provider: Optional[ReasoningProvider] = None,
                 timeout_sec: float = config.SUMMARY_TIMEOUT_SEC,
                 fallback_enabled: bool = config.SUMMARY_FALLBACK_ENABLED,
                 thresholds: Optional[FallbackThresholds] = None):
        self.cache = cache
        self.provider = provider
        self.timeout_sec = timeout_sec
        self.fallback_enabled = fallback_enabled
        self.thresholds = thresholds or FallbackThresholds()

    def summarize(self, metrics: MetricsSnapshot) -> str:
        cache_key = self.cache.generate_key("summary", metrics.cache_payload())

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("[Summary] ⚡ Using cached summary")
            return cached

        if self.provider is None:
            logger.debug("[Summary] No reasoning provider configured - using fallback")
            return fallback_summary(metrics, self.thresholds)

        # One provider call per distinct input, even under concurrent misses
        with self.cache.inflight(cache_key):
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info("[Summary] ⚡ Using summary computed by a concurrent run")
                return cached

            try:
                summary = self._ask_provider(metrics)
            except ProviderError as e:
                if not self.fallback_enabled:
                    raise
                logger.warning(f"[Summary] Provider failed ({e}) - using fallback summary")
                return fallback_summary(metrics, self.thresholds)

            self.cache.set(cache_key, summary)

        logger.info(f"[Summary] Complete | {summary[:120]}")
        return summary

    def _ask_provider(self, metrics: MetricsSnapshot) -> str:
        user_payload = json.dumps(metrics.payload())

        summary = call_with_timeout(
            lambda: self.provider.complete(SUMMARY_SYSTEM_PROMPT, user_payload),
            self.timeout_sec,
            "summary"
        )

        if not isinstance(summary, str) or not summary.strip():
            raise ProviderError("Provider returned an empty summary")
        return summary
