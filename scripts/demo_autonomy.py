# Folder: autoops/scripts/demo_autonomy.py
#
# Skips metrics / summary / decision and hands the executor a manual
# fix_code decision, to show the remediation side on its own.
# Run with: python -m scripts.demo_autonomy

import json
import logging

from actions.executor import ActionExecutor
from ingestion.event_schema import ActionKind, Decision
from storage.health_store import HealthStore

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(message)s")


def main():
    print("🤖 Starting Autonomous Fix Demonstration...")

    decision = Decision(
        decision=ActionKind.FIX_CODE,
        reason="Manual override for demonstration purposes."
    )
    print(f"📝 Decision: {json.dumps(decision.model_dump(mode='json'), indent=2)}")

    result = ActionExecutor(HealthStore()).execute(decision)

    print(f"✅ Execution Result: {result.status}")
    print(result.action_log)
    print("🚀 Autonomy Demonstration Complete.")


if __name__ == "__main__":
    main()
