"""
config.py
---------
Central configuration for the adaptive itinerary engine.
All secrets loaded from environment variables — never hard-coded.

A `.env` file next to this module is loaded first (existing shell variables
are not overridden).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env", override=False)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── LLM ──────────────────────────────────────────────────────────────────────
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "google")
LLM_MODEL_NAME: str = os.getenv("LLM_MODEL_NAME", "gemini-1.5-flash")
LLM_API_KEY: str = os.getenv("LLM_API_KEY", "")
LLM_TIMEOUT_SECONDS: int = int(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

# Set USE_STUB_LLM=false (and supply LLM_API_KEY) to delegate scheduling and
# replanning prompts to the language model. The deterministic planner is
# always the fallback.
USE_STUB_LLM: bool = _flag("USE_STUB_LLM", "true")

# ── External services ─────────────────────────────────────────────────────────
WEATHER_API_URL: str = os.getenv("WEATHER_API_URL", "https://api.open-meteo.com/v1/forecast")
PLACES_API_URL: str  = os.getenv("PLACES_API_URL", "https://overpass-api.de/api/interpreter")
USE_STUB_WEATHER: bool = _flag("USE_STUB_WEATHER", "true")
USE_STUB_PLACES: bool  = _flag("USE_STUB_PLACES", "true")
PLACES_SEARCH_RADIUS_M: int = int(os.getenv("PLACES_SEARCH_RADIUS_M", "3000"))
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# ── Scheduler (seconds) ───────────────────────────────────────────────────────
WEATHER_REFRESH_SECONDS: float        = float(os.getenv("WEATHER_REFRESH_SECONDS", "300"))
CONTEXT_EVAL_INTERVAL_SECONDS: float  = float(os.getenv("CONTEXT_EVAL_INTERVAL_SECONDS", "180"))
CONTEXT_EVAL_FIRST_DELAY_SECONDS: float = float(os.getenv("CONTEXT_EVAL_FIRST_DELAY_SECONDS", "60"))

# ── Planning ──────────────────────────────────────────────────────────────────
TOP_K_CANDIDATES: int   = 15
MIN_FILLED_SLOTS: int   = 5
MAX_ACTIVITIES: int     = 8
DEFAULT_RATING: float   = 3.5
DEFAULT_DURATION_MIN: int = 60
DAY_END: str            = os.getenv("DAY_END", "23:59")   # "HH:MM"
# sum(cost) may exceed budget_per_day by at most this fraction
COST_OVERRUN_TOLERANCE: float = float(os.getenv("COST_OVERRUN_TOLERANCE", "0.10"))

# ── Monitor / user-state thresholds ───────────────────────────────────────────
FATIGUE_DISRUPTION_THRESHOLD: float = 70.0
LATE_THRESHOLD_HOURS: int           = 2
TIRED_REPLAN_FATIGUE: float         = 60.0
CROWD_AFFECTED_LEVEL: float         = 0.7
LONG_ACTIVITY_MIN: int              = 90

# ── Reward tracker ────────────────────────────────────────────────────────────
DECISION_LOG_MAX: int         = 50
SATISFACTION_HISTORY_MAX: int = 12
INITIAL_SATISFACTION: float   = 75.0

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
