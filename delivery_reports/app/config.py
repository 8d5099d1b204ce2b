import os
from datetime import timedelta
from pathlib import Path

# Defaults for locating the consignment parquet bundle and office directory.
DEFAULT_DATA_FILENAME = "consignments.parquet"
ENV_DATA_PATH = "DATA_PATH"
ENV_OFFICES_PATH = "OFFICES_PATH"

# Remote report service. When unset the page aggregates the local bundle.
ENV_REPORTS_API_URL = "REPORTS_API_URL"
OFFICES_ENDPOINT = "/api/offices"
REPORTS_ENDPOINT = "/api/reports/deliveries"

ENV_HTTP_TIMEOUT = "HTTP_TIMEOUT"
DEFAULT_HTTP_TIMEOUT = 30.0

ENV_ON_TIME_THRESHOLD = "ON_TIME_THRESHOLD_HOURS"
DEFAULT_ON_TIME_THRESHOLD_HOURS = 24.0

ENV_LOG_LEVEL = "LOG_LEVEL"
SERVICE_NAME = "delivery-reports"

DEFAULT_WINDOW_DAYS = 30
TOP_N_ROUTES = 10
FETCH_WORKERS = 2
# Per-session bounds on fetched payloads and job bookkeeping.
REPORT_CACHE_SIZE = 32
JOB_HISTORY_SIZE = 16

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

# Shared Plotly defaults so charts look consistent across tabs.
PLOTLY_CONFIG = {
    "displaylogo": False,
    "modeBarButtonsToRemove": [
        "lasso2d",
        "select2d",
        "autoScale2d",
        "resetScale2d",
    ],
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def reports_api_url() -> str:
    return os.getenv(ENV_REPORTS_API_URL, "").strip().rstrip("/")


def http_timeout() -> float:
    return _env_float(ENV_HTTP_TIMEOUT, DEFAULT_HTTP_TIMEOUT)


def on_time_threshold() -> timedelta:
    """On-time cutoff applied when the page aggregates records locally."""
    return timedelta(hours=_env_float(ENV_ON_TIME_THRESHOLD, DEFAULT_ON_TIME_THRESHOLD_HOURS))


def log_level() -> str:
    return os.getenv(ENV_LOG_LEVEL, "INFO").strip() or "INFO"
