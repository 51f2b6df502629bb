# Root folder: autoops/main_agent.py
#
# Starts the closed loop:
# 1. Builds the pipeline from config (cache, metrics source, LLM, executor)
# 2. Runs it once immediately
# 3. Re-runs it every LOOP_INTERVAL_SEC until Ctrl+C

import argparse
import logging
import os
import sys
import time
import schedule

import config

os.makedirs(config.LOG_DIR, exist_ok=True)

logging.basicConfig(
    level=logging.DEBUG if config.DEBUG else logging.INFO,
    format="%(asctime)s [%(name)s] %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(os.path.join(config.LOG_DIR, "agent.log"))
    ]
)

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the AutoOps remediation loop")
    p.add_argument("--interval", type=int, default=config.LOOP_INTERVAL_SEC,
                   help="Seconds between pipeline runs")
    p.add_argument("--once", action="store_true", help="Run a single pass and exit")
    return p.parse_args()


def run_once(pipeline):
    from ingestion.event_schema import PipelineFailure

    outcome = pipeline.invoke()
    if isinstance(outcome, PipelineFailure):
        logger.error(f"❌ Run failed: {outcome.error} - {outcome.message}")
        return outcome

    logger.info(
        f"Decision: {outcome.decision.decision.value} | "
        f"Outcome: {outcome.action_result.status} | "
        f"{outcome.execution_time_ms}ms"
    )
    return outcome


def main():
    args = parse_args()

    logger.info("="*60)
    logger.info("🤖 AUTOOPS AGENT STARTING")
    logger.info("="*60)

    from agent.orchestrator import AutoOpsPipeline
    pipeline = AutoOpsPipeline.from_config()
    logger.info("✅ Pipeline initialized")

    run_once(pipeline)
    if args.once:
        return

    schedule.every(args.interval).seconds.do(run_once, pipeline)
    logger.info(f"🟢 Loop running every {args.interval}s (Ctrl+C to stop)")

    try:
        while True:
            schedule.run_pending()
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
