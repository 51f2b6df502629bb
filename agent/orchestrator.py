# Folder: autoops/agent/orchestrator.py
#
# The brain that coordinates all 4 stages.
# Runs them strictly in sequence, each building on the last.
#
# Flow:
# ingest → summarize → decide → execute → PipelineResult
#
# Owns the lifecycle of everything it is built with - in particular the
# reasoning provider client, which is created once here and injected
# into both LLM stages.

import logging
import time
from typing import Any, Dict, Optional, Union

from actions.executor import ActionExecutor
from agent.errors import AutoOpsError, IngestionFailure, ProviderNotConfigured
from agent.reasoning import ReasoningProvider, build_reasoning_provider
from agent.steps.decide import DecisionStage
from agent.steps.summarize import SummaryStage
from ingestion.event_schema import PipelineFailure, PipelineResult
from ingestion.metrics import MetricsIngestion
from ingestion.monitoring import build_metrics_provider
from storage.health_store import HealthStore
from storage.result_cache import ResultCache

logger = logging.getLogger(__name__)

_UNSET = object()


class AutoOpsPipeline:
    """
    Coordinates the 4-stage remediation pipeline.

    run()    → PipelineResult, raises on unrecoverable failure
    invoke() → PipelineResult or PipelineFailure, never raises
    """

    def __init__(self, ingestion: MetricsIngestion,
                 summary_stage: SummaryStage,
                 decision_stage: DecisionStage,
                 executor: ActionExecutor,
                 cache: ResultCache):
        self.ingestion = ingestion
        self.summary_stage = summary_stage
        self.decision_stage = decision_stage
        self.executor = executor
        self.cache = cache

    @classmethod
    def from_config(cls, provider: Any = _UNSET,
                    metrics_provider: Any = None,
                    health_store: Optional[HealthStore] = None,
                    cache: Optional[ResultCache] = None) -> "AutoOpsPipeline":
        """
        Wire the whole pipeline from config.py.
        Pass provider=None to force fallback logic regardless of env.
        """
        health_store = health_store or HealthStore()
        cache = cache or ResultCache()

        if provider is _UNSET:
            try:
                provider = build_reasoning_provider()
                logger.info(f"Reasoning provider: {provider.name}")
            except ProviderNotConfigured as e:
                logger.warning(f"No reasoning provider ({e}) - using fallback logic")
                provider = None

        metrics_provider = metrics_provider or build_metrics_provider(health_store=health_store)

        return cls(
            ingestion=MetricsIngestion(metrics_provider),
            summary_stage=SummaryStage(cache, provider),
            decision_stage=DecisionStage(cache, provider),
            executor=ActionExecutor(health_store),
            cache=cache,
        )

    @property
    def provider(self) -> Optional[ReasoningProvider]:
        return self.summary_stage.provider

    def run(self, metrics_override: Optional[Dict[str, Any]] = None) -> PipelineResult:
        start_time = time.perf_counter()

        logger.info(f"\n{'='*60}\n🔁 PIPELINE RUN STARTED\n{'='*60}")

        # ── Stage 1: What does the system look like? ──────────────────────
        step_start = time.perf_counter()
        metrics = self.ingestion.ingest(metrics_override)
        logger.info(f"Stage 1 (ingest) took {time.perf_counter()-step_start:.2f}s")

        # ── Stage 2: What is wrong, in one sentence? ──────────────────────
        step_start = time.perf_counter()
        summary = self.summary_stage.summarize(metrics)
        logger.info(f"Stage 2 (summarize) took {time.perf_counter()-step_start:.2f}s")

        # ── Stage 3: What should we do about it? ──────────────────────────
        step_start = time.perf_counter()
        decision = self.decision_stage.decide(summary, metrics)
        logger.info(f"Stage 3 (decide) took {time.perf_counter()-step_start:.2f}s")

        # ── Stage 4: Do it ────────────────────────────────────────────────
        step_start = time.perf_counter()
        action_result = self.executor.execute(decision)
        logger.info(f"Stage 4 (execute) took {time.perf_counter()-step_start:.2f}s")

        execution_time_ms = int(round((time.perf_counter() - start_time) * 1000))

        logger.info(
            f"\n{'='*60}\n"
            f"✅ PIPELINE COMPLETE in {execution_time_ms}ms\n"
            f"Summary:  {summary[:100]}\n"
            f"Decision: {decision.decision.value}\n"
            f"Outcome:  {action_result.status}\n"
            f"{'='*60}"
        )

        return PipelineResult(
            metrics=metrics,
            summary=summary,
            decision=decision,
            action_result=action_result,
            execution_time_ms=execution_time_ms,
        )

    def invoke(self, metrics_override: Optional[Dict[str, Any]] = None
               ) -> Union[PipelineResult, PipelineFailure]:
        """Run once and fold any failure into a single PipelineFailure"""
        try:
            return self.run(metrics_override)
        except IngestionFailure as e:
            logger.error(f"Pipeline failed at ingestion: {e}")
            return PipelineFailure(error="Ingestion failed", message=str(e))
        except AutoOpsError as e:
            logger.error(f"Pipeline failed: {e}", exc_info=True)
            return PipelineFailure(error="Pipeline failed", message=str(e))
        except Exception as e:
            logger.error(f"Pipeline crashed: {e}", exc_info=True)
            return PipelineFailure(error="Internal server error", message=str(e))

    def clear_cache(self):
        self.cache.clear()
