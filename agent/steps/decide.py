# Folder: autoops/agent/steps/decide.py
#
# Stage 3 of 4: pick exactly ONE remediation action and say why.
# SECOND LLM call in the pipeline.
#
# Same shape as the summary stage, with a stricter success path:
# the provider's answer must parse as JSON AND name an action from the
# valid-action set. Anything else is treated like a provider failure -
# an unvalidated decision is never returned or cached.

import json
import logging
import re
from typing import Iterable, List, Optional

from agent.errors import DecisionValidationError, ProviderError
from agent.fallback import FallbackThresholds, fallback_decision
from agent.reasoning import ReasoningProvider, call_with_timeout
from ingestion.event_schema import ActionKind, Decision, MetricsSnapshot
from storage.result_cache import ResultCache
import config

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def build_decision_prompt(valid_actions: List[str]) -> str:
    return (
        "You are a Senior DevOps Engineer. Based on the system status summary, "
        f"choose exactly ONE action from: {json.dumps(valid_actions)}.\n"
        "Return a JSON object with 'decision' and 'reason'.\n"
        'Example: {"decision": "fix_code", "reason": "Bug detected in login flow."}'
    )


def extract_json_object(raw: str) -> dict:
    """
    Models wrap JSON in prose or ``` fences more often than not.
    Candidates, in order: the whole reply, each fenced block, then the
    span from the first '{' to the last '}'. First JSON object wins.
    """
    text = (raw or "").strip()
    candidates = [text, *_FENCED_BLOCK.findall(text)]

    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    logger.error(f"[Decision] No JSON object in reply: {text[:300]}")
    raise ProviderError(f"Could not parse decision reply: {text[:200]}")


def validate_decision(parsed: dict, valid_actions: List[str]) -> Decision:
    """
    Accept the provider's answer only if it names an allowed action
    and gives a non-empty reason.
    """
    action = parsed.get("decision")
    reason = parsed.get("reason")

    if not isinstance(action, str) or action not in valid_actions:
        raise DecisionValidationError(f"Invalid decision: {action!r}")

    if not isinstance(reason, str) or not reason.strip():
        raise DecisionValidationError(f"Decision '{action}' has no reason")

    return Decision(decision=ActionKind(action), reason=reason.strip())


class DecisionStage:

    def __init__(self, cache: ResultCache,
                 provider: Optional[ReasoningProvider] = None,
                 valid_actions: Iterable[str] = config.VALID_ACTIONS,
                 timeout_sec: float = config.DECISION_TIMEOUT_SEC,
                 fallback_enabled: bool = config.DECISION_FALLBACK_ENABLED,
                 temperature: float = config.DECISION_TEMPERATURE,
                 thresholds: Optional[FallbackThresholds] = None):
        self.valid_actions = [str(a) for a in valid_actions]
        if not self.valid_actions:
            raise ValueError("valid_actions must not be empty")

        known = {kind.value for kind in ActionKind}
        unknown = [a for a in self.valid_actions if a not in known]
        if unknown:
            raise ValueError(f"Unknown actions in valid_actions: {unknown}")

        self.cache = cache
        self.provider = provider
        self.timeout_sec = timeout_sec
        self.fallback_enabled = fallback_enabled
        self.temperature = temperature
        self.thresholds = thresholds or FallbackThresholds()

    def decide(self, summary: str, metrics: MetricsSnapshot) -> Decision:
        cache_key = self.cache.generate_key(
            "decision", {"summary": summary, "metrics": metrics.cache_payload()}
        )

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info("[Decision] ⚡ Using cached decision")
            return cached

        if self.provider is None:
            logger.debug("[Decision] No reasoning provider configured - using fallback")
            return self._fallback(metrics)

        with self.cache.inflight(cache_key):
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info("[Decision] ⚡ Using decision computed by a concurrent run")
                return cached

            try:
                decision = self._ask_provider(summary, metrics)
            except (ProviderError, DecisionValidationError) as e:
                if not self.fallback_enabled:
                    raise
                logger.warning(f"[Decision] Provider failed ({e}) - using fallback decision")
                return self._fallback(metrics)

            self.cache.set(cache_key, decision)

        logger.info(
            f"[Decision] Complete | "
            f"Action: {decision.decision.value} | "
            f"Reason: {decision.reason[:100]}"
        )
        return decision

    def _ask_provider(self, summary: str, metrics: MetricsSnapshot) -> Decision:
        system_prompt = build_decision_prompt(self.valid_actions)
        user_payload = f"Summary: {summary}\nMetrics: {json.dumps(metrics.payload())}"

        raw = call_with_timeout(
            lambda: self.provider.complete(
                system_prompt,
                user_payload,
                json_mode=True,
                temperature=self.temperature
            ),
            self.timeout_sec,
            "decision"
        )

        parsed = extract_json_object(raw)
        return validate_decision(parsed, self.valid_actions)

    def _fallback(self, metrics: MetricsSnapshot) -> Decision:
        decision = fallback_decision(metrics, self.valid_actions, self.thresholds)
        logger.info(f"[Decision] Fallback chose {decision.decision.value}")
        return decision
