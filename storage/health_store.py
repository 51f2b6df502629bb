# Folder: autoops/storage/health_store.py
#
# The two durable artifacts the executor touches:
#   1. Append-only status log (plain text, one timestamped line per fix)
#   2. Small JSON health document {status, last_fix_timestamp, fix_type}
#
# The demo metrics provider reads the health document back, which is how
# a fix in one run makes the next run look healthy. Keeping that channel
# behind this class means tests point it at tmp_path and nothing else.

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError
from ingestion.event_schema import HealthStatus, utc_now_iso
import config

logger = logging.getLogger(__name__)

STATUS_LOG_HEADER = "System Status Log:\n"


class HealthStore:

    def __init__(self, status_log_path: str = config.STATUS_LOG_PATH,
                 health_file_path: str = config.HEALTH_FILE_PATH):
        self.status_log_path = status_log_path
        self.health_file_path = health_file_path
        self._lock = threading.Lock()

    # ── Status log ────────────────────────────────────────────────────────

    def append_fix(self, action: str, reason: str) -> str:
        """
        Append one AUTO-FIX line. Creates the file (and its folder)
        with a header line the first time.
        Returns the line written. Filesystem errors propagate (OSError).
        """
        timestamp = utc_now_iso()
        entry = f"\n[{timestamp}] AUTO-FIX APPLIED: {action} triggered. {reason}"

        with self._lock:
            if not os.path.exists(self.status_log_path):
                _ensure_parent(self.status_log_path)
                with open(self.status_log_path, "w", encoding="utf-8") as f:
                    f.write(STATUS_LOG_HEADER)

            with open(self.status_log_path, "a", encoding="utf-8") as f:
                f.write(entry)

        return entry.strip()

    # ── Health document ───────────────────────────────────────────────────

    def mark_healthy(self, fix_type: str) -> HealthStatus:
        status = HealthStatus(
            status="healthy",
            last_fix_timestamp=utc_now_iso(),
            fix_type=fix_type,
        )
        self._write(status)
        logger.info(f"Health document marked healthy (fix: {fix_type})")
        return status

    def reset(self) -> HealthStatus:
        """Back to degraded - used to restart the demo cycle"""
        status = HealthStatus()
        self._write(status)
        return status

    def read(self) -> HealthStatus:
        """
        Current health document.
        Missing or unreadable file reads as the default (degraded) status.
        """
        try:
            with open(self.health_file_path, "r", encoding="utf-8") as f:
                return HealthStatus(**json.load(f))
        except FileNotFoundError:
            return HealthStatus()
        except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning(f"Health file unreadable, treating as degraded: {e}")
            return HealthStatus()

    def seconds_since_fix(self, now: Optional[datetime] = None) -> Optional[float]:
        """Age of the last recorded fix, None if there is none"""
        status = self.read()
        if status.status != "healthy" or not status.last_fix_timestamp:
            return None
        try:
            fixed_at = datetime.fromisoformat(
                status.last_fix_timestamp.replace("Z", "+00:00")
            )
        except ValueError:
            return None
        if fixed_at.tzinfo is None:
            fixed_at = fixed_at.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return (now - fixed_at).total_seconds()

    def _write(self, status: HealthStatus):
        # write-then-rename so a concurrent reader never sees half a file
        with self._lock:
            _ensure_parent(self.health_file_path)
            tmp_path = f"{self.health_file_path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(status.model_dump(), f, indent=2)
            os.replace(tmp_path, self.health_file_path)


def _ensure_parent(path: str):
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
