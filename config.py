# Root folder: autoops/config.py
# Central config file - all settings live here
# Every other file imports from here instead of reading env directly

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# LLM provider: "anthropic", "openai" or "together"
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "anthropic").lower()

# API Keys
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
TOGETHER_API_KEY = os.getenv("TOGETHER_API_KEY")

# Models
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-opus-4-6")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
TOGETHER_MODEL = os.getenv("TOGETHER_MODEL", "meta-llama/Llama-3-70b-chat-hf")
TOGETHER_BASE_URL = "https://api.together.xyz/v1"
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", 0.5))
LLM_MAX_TOKENS = 500

# App settings
APP_PORT = int(os.getenv("APP_PORT", 5000))
DEBUG = _env_bool("DEBUG", False)
LOOP_INTERVAL_SEC = int(os.getenv("LOOP_INTERVAL_SEC", 60))

# Summary stage
SUMMARY_TIMEOUT_SEC = float(os.getenv("SUMMARY_TIMEOUT_SEC", 10))
SUMMARY_FALLBACK_ENABLED = _env_bool("SUMMARY_FALLBACK_ENABLED", True)

# Decision stage
DECISION_TIMEOUT_SEC = float(os.getenv("DECISION_TIMEOUT_SEC", 10))
DECISION_FALLBACK_ENABLED = _env_bool("DECISION_FALLBACK_ENABLED", True)
DECISION_TEMPERATURE = 0.2
VALID_ACTIONS = [
    "fix_code",
    "rollback",
    "optimize_performance",
    "scale_up",
    "scale_resources",
    "restart_service",
    "monitor",
]

# Execution stage
EXECUTION_DRY_RUN = _env_bool("EXECUTION_DRY_RUN", False)
PROCESSING_DELAY_SEC = 0.5     # every action
SIMULATED_STEP_DELAY_SEC = 0.5 # rollback / scale
RESTART_DELAY_SEC = 1.0        # restart takes longer

# Result cache
CACHE_TTL_SEC = int(os.getenv("CACHE_TTL_SEC", 300))   # 5 minutes
CACHE_MAX_SIZE = int(os.getenv("CACHE_MAX_SIZE", 100))

# Fallback thresholds (defaults, not law)
CPU_CRITICAL = 80.0
MEMORY_CRITICAL = 90.0
ERRORS_CRITICAL = 50
LATENCY_CRITICAL_MS = 1000.0
PROCESS_COUNT_CRITICAL = 500
CONVERSION_DROP_CRITICAL = 10.0
ERRORS_MODERATE = 10
CONVERSION_DROP_MODERATE = 10.0
CPU_MODERATE = 50.0
MEMORY_MODERATE = 60.0
LATENCY_MODERATE_MS = 500.0

# Metrics source
METRICS_MOCK_DATA = _env_bool("METRICS_MOCK_DATA", True)
METRICS_SYSTEM_FALLBACK = _env_bool("METRICS_SYSTEM_FALLBACK", True)
DEMO_HEALTHY_WINDOW_SEC = int(os.getenv("DEMO_HEALTHY_WINDOW_SEC", 300))

# Monitoring integration: "prometheus", "datadog", "webhook", "system" or unset
MONITORING_TYPE = os.getenv("MONITORING_TYPE") or None
MONITORING_TIMEOUT_SEC = 5

PROMETHEUS_URL = os.getenv("PROMETHEUS_URL", "http://localhost:9090")
PROMETHEUS_QUERIES = {
    "errors": 'sum(rate(http_requests_total{status=~"5.."}[5m]))',
    "latency": "histogram_quantile(0.95, rate(http_request_duration_seconds_bucket[5m]))",
    "active_users": "sum(active_sessions)",
}

DATADOG_API_KEY = os.getenv("DATADOG_API_KEY")
DATADOG_APP_KEY = os.getenv("DATADOG_APP_KEY")
DATADOG_URL = "https://api.datadoghq.com/api/v1"
DATADOG_QUERIES = {
    "errors": "sum:error.count{*}.as_count()",
    "latency": "avg:trace.http.request.duration{*}",
    "active_users": "sum:active.users{*}",
}

WEBHOOK_URL = os.getenv("WEBHOOK_URL")
WEBHOOK_METHOD = os.getenv("WEBHOOK_METHOD", "GET")
WEBHOOK_TOKEN = os.getenv("WEBHOOK_TOKEN", "")

# Data paths
LOG_DIR = "logs"
STATUS_LOG_PATH = os.getenv("STATUS_LOG_PATH", "data/system-status.txt")
HEALTH_FILE_PATH = os.getenv("HEALTH_FILE_PATH", "data/system-health.json")
