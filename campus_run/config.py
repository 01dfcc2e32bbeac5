"""Central configuration for the campus run core.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Most values can be overridden from environment variables
(optionally via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# Location capability defaults
# ---------------------------------------------------------------------------
# Accuracy hint passed to the platform location service.
LOCATION_ACCURACY = os.getenv("LOCATION_ACCURACY", "best_for_navigation")

# Minimum spacing between pushed location updates.
LOCATION_MIN_INTERVAL_MS = _env_int("LOCATION_MIN_INTERVAL_MS", 1000)
LOCATION_MIN_DISTANCE_M = _env_float("LOCATION_MIN_DISTANCE_M", 1.0)

# Single "get current position" request.
POSITION_TIMEOUT_SECONDS = _env_float("POSITION_TIMEOUT_SECONDS", 10.0)
POSITION_MAX_AGE_SECONDS = _env_float("POSITION_MAX_AGE_SECONDS", 60.0)


# ---------------------------------------------------------------------------
# Metric heuristics
# ---------------------------------------------------------------------------
# A step is counted when speed exceeds this (m/s) ...
STEP_SPEED_THRESHOLD_MPS = _env_float("STEP_SPEED_THRESHOLD_MPS", 0.5)
# ... and at least this long has passed since the previous counted step.
STEP_DEBOUNCE_MS = _env_int("STEP_DEBOUNCE_MS", 400)

# Linear calorie proxy: kcal = km * CALORIES_PER_KM + gain_m * CALORIES_PER_ELEVATION_M
CALORIES_PER_KM = _env_float("CALORIES_PER_KM", 65.0)
CALORIES_PER_ELEVATION_M = _env_float("CALORIES_PER_ELEVATION_M", 0.1)

# Placeholder cadence estimate: floor(avg_kmh * factor + base).
CADENCE_SPEED_FACTOR = _env_float("CADENCE_SPEED_FACTOR", 25.0)
CADENCE_BASE_SPM = _env_float("CADENCE_BASE_SPM", 140.0)
# Routes shorter than this many samples report cadence 0.
CADENCE_MIN_SAMPLES = _env_int("CADENCE_MIN_SAMPLES", 10)

# Recommended music tempo as a fraction of cadence.
RECOMMENDED_BPM_FACTOR = _env_float("RECOMMENDED_BPM_FACTOR", 0.7)


# ---------------------------------------------------------------------------
# Route analysis
# ---------------------------------------------------------------------------
# Start/end closer than this (km) makes a loop.
LOOP_CLOSURE_KM = _env_float("LOOP_CLOSURE_KM", 0.1)
# Start/end gap below this share of the path makes an out-and-back.
OUT_AND_BACK_RATIO = _env_float("OUT_AND_BACK_RATIO", 0.3)

HARD_DISTANCE_KM = _env_float("HARD_DISTANCE_KM", 10.0)
HARD_ELEVATION_GAIN_M = _env_float("HARD_ELEVATION_GAIN_M", 200.0)
MODERATE_DISTANCE_KM = _env_float("MODERATE_DISTANCE_KM", 5.0)
MODERATE_ELEVATION_GAIN_M = _env_float("MODERATE_ELEVATION_GAIN_M", 100.0)

SIMPLIFIED_ROUTE_MAX_POINTS = _env_int("SIMPLIFIED_ROUTE_MAX_POINTS", 100)

# Map region padding and minimum span (degrees).
MAP_REGION_PADDING_DEG = 0.01
MAP_REGION_MIN_DELTA_DEG = 0.01


# ---------------------------------------------------------------------------
# Team games
# ---------------------------------------------------------------------------
# A checkpoint counts as visited within this radius (metres).
CHECKPOINT_RADIUS_M = _env_float("CHECKPOINT_RADIUS_M", 50.0)


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------
# Live stats refresh period while a run is active. Set to 0 to disable the
# background ticker (callers then drive tick() themselves).
LIVE_TICK_SECONDS = _env_float("LIVE_TICK_SECONDS", 1.0)

RUN_ROUTE_LABEL = "GPS Tracked Run"

# Staleness window / background refetch interval per remote collection.
GROUP_RUNS_STALE_SECONDS = _env_float("GROUP_RUNS_STALE_SECONDS", 30.0)
GROUP_RUNS_REFETCH_SECONDS = _env_float("GROUP_RUNS_REFETCH_SECONDS", 60.0)
TASKS_STALE_SECONDS = _env_float("TASKS_STALE_SECONDS", 60.0)
TASKS_REFETCH_SECONDS = _env_float("TASKS_REFETCH_SECONDS", 120.0)
TEAM_GAMES_STALE_SECONDS = _env_float("TEAM_GAMES_STALE_SECONDS", 30.0)
TEAM_GAMES_REFETCH_SECONDS = _env_float("TEAM_GAMES_REFETCH_SECONDS", 60.0)

# How often the background refresher checks for due collections.
BACKGROUND_REFRESH_POLL_SECONDS = _env_float("BACKGROUND_REFRESH_POLL_SECONDS", 5.0)

# Parallel fetches used by refresh_all().
REFRESH_MAX_PARALLELISM = _env_int("REFRESH_MAX_PARALLELISM", 3)


# ---------------------------------------------------------------------------
# Remote data source
# ---------------------------------------------------------------------------
REMOTE_BASE_URL = os.getenv("CAMPUS_RUN_API_URL", "https://api.campusrun.demo")

# Use the in-memory fake backend instead of HTTP.
REMOTE_OFFLINE_MODE = _env_bool("CAMPUS_RUN_OFFLINE", True)

# HTTP session pool sizes.
HTTP_POOL_CONNECTIONS = 10
HTTP_POOL_MAXSIZE = 10

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 15)

# REMOTE_MAX_RETRIES covers network failures, 429 and 5xx.
REMOTE_MAX_RETRIES = _env_int("REMOTE_MAX_RETRIES", 3)
# REMOTE_BACKOFF_MAX_SECONDS caps the exponential backoff per attempt.
REMOTE_BACKOFF_MAX_SECONDS = _env_float("REMOTE_BACKOFF_MAX_SECONDS", 4.0)


# ---------------------------------------------------------------------------
# Local persistence
# ---------------------------------------------------------------------------
STORAGE_PATH = os.getenv("CAMPUS_RUN_STORAGE", "campus_run_store.json")
RUNS_KEY = "runs"
GAIT_TESTS_KEY = "gaitTests"


# ---------------------------------------------------------------------------
# Excel formatting
# ---------------------------------------------------------------------------
EXCEL_AUTOSIZE_COLUMNS = True
EXCEL_AUTOSIZE_MAX_WIDTH = 50  # characters
EXCEL_AUTOSIZE_MIN_WIDTH = 6  # characters
EXCEL_AUTOSIZE_PADDING = 2  # extra characters added to the detected max
