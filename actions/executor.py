# Folder: autoops/actions/executor.py
#
# Stage 4 of 4: carry out the decision.
#
# fix_code / optimize_performance  → record the fix in the status log and
#                                    mark the system healthy (real file writes,
#                                    unless dry-run)
# rollback / scale_* / restart     → simulated, bounded delays
# monitor                          → nothing to do
#
# The executor NEVER raises. Whatever goes wrong ends up as
# status="error" with the log written so far.

import logging
import time
from typing import Any, Callable, Dict, List, Tuple

from agent.errors import ExecutionFailure
from ingestion.event_schema import ActionResult, Decision
from storage.health_store import HealthStore
import config

logger = logging.getLogger(__name__)


def _unpack(decision: Any) -> Tuple[str, str]:
    """Accept a Decision or a plain {"decision": ..., "reason": ...} mapping"""
    if isinstance(decision, Decision):
        return decision.decision.value, decision.reason
    if isinstance(decision, dict):
        action = decision.get("decision")
        action = getattr(action, "value", action)
        return str(action), str(decision.get("reason") or "")
    return str(decision), ""


class ActionExecutor:

    def __init__(self, health_store: HealthStore,
                 dry_run: bool = config.EXECUTION_DRY_RUN,
                 processing_delay_sec: float = config.PROCESSING_DELAY_SEC,
                 step_delay_sec: float = config.SIMULATED_STEP_DELAY_SEC,
                 restart_delay_sec: float = config.RESTART_DELAY_SEC,
                 sleep: Callable[[float], None] = time.sleep):
        self.health_store = health_store
        self.dry_run = dry_run
        self.processing_delay_sec = processing_delay_sec
        self.step_delay_sec = step_delay_sec
        self.restart_delay_sec = restart_delay_sec
        self._sleep = sleep

        self._handlers: Dict[str, Callable[[str, str, List[str]], None]] = {
            "fix_code": self._apply_code_fix,
            "optimize_performance": self._apply_code_fix,
            "rollback": self._rollback,
            "scale_up": self._scale,
            "scale_resources": self._scale,
            "restart_service": self._restart,
            "monitor": self._monitor,
        }

    def execute(self, decision: Any) -> ActionResult:
        lines: List[str] = []
        action = "unknown"

        try:
            action, reason = _unpack(decision)
            lines.append(f"Executing action: {action}. Reason: {reason}")
            logger.info(f"[Execution] {action} starting")

            if self.processing_delay_sec > 0:
                self._sleep(self.processing_delay_sec)

            handler = self._handlers.get(action)
            if handler is None:
                logger.warning(f"[Execution] Unknown action '{action}' - skipped")
                lines.append(f"Unknown action: {action}. No operation performed.")
            else:
                handler(action, reason, lines)

        except Exception as e:
            logger.error(f"[Execution] {action} failed: {e}", exc_info=True)
            lines.append(f"Execution failed: {e}")
            return ActionResult(status="error", action_log="\n".join(lines))

        logger.info(f"[Execution] {action} complete ✅")
        return ActionResult(status="success", action_log="\n".join(lines))

    # ── Handlers ──────────────────────────────────────────────────────────
    # Each appends to `lines` as it goes, so a failure halfway through
    # still leaves an accurate partial log.

    def _apply_code_fix(self, action: str, reason: str, lines: List[str]):
        target = self.health_store.status_log_path

        if self.dry_run:
            lines.append(f"[DRY RUN] Would modify {target} to record: {action}")
            return

        try:
            self.health_store.append_fix(action, reason)
            lines.append(f"Successfully modified {target} to record the fix.")

            self.health_store.mark_healthy(action)
            lines.append(f"Health status updated: healthy (fix: {action}).")
        except OSError as e:
            raise ExecutionFailure(f"File modification failed: {e}") from e

    def _rollback(self, action: str, reason: str, lines: List[str]):
        lines.append("Initiating rollback sequence... (Simulated)")
        self._sleep(self.step_delay_sec)
        lines.append("Rollback to previous stable version complete.")

    def _scale(self, action: str, reason: str, lines: List[str]):
        lines.append("Scaling infrastructure... (Simulated)")
        self._sleep(self.step_delay_sec)
        lines.append("Added 2 additional instances to handle load.")

    def _restart(self, action: str, reason: str, lines: List[str]):
        lines.append("Restarting service... (Simulated)")
        self._sleep(self.restart_delay_sec)
        lines.append("Service uptime reset. Memory cleared.")

    def _monitor(self, action: str, reason: str, lines: List[str]):
        lines.append("System healthy. Continued monitoring.")
