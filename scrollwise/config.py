"""Centralized configuration for the Scrollwise backend.

Re-exports everything from scrollwise.infrastructure.settings so callers have
one import site, then adds typed constants for database, pipeline, LLM and API
settings. Environment variable overrides use safe defaults so the app starts
without extra env configuration.
"""

from __future__ import annotations

import os

from scrollwise.infrastructure.settings import *  # noqa: F401, F403

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("SCROLLWISE_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("SCROLLWISE_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("SCROLLWISE_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("SCROLLWISE_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("SCROLLWISE_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("SCROLLWISE_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("SCROLLWISE_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("SCROLLWISE_DB_RETRY_JITTER", "0.1"))

# --- Tracking Pipeline ---
DOMAIN_BREAKDOWN_LIMIT: int = 25
SUMMARY_STALE_SECONDS: int = 120
WEEKLY_WINDOW_DAYS: int = 7
TIMELINE_WINDOW_HOURS: int = 24
TIMELINE_LIMIT: int = 500
STREAK_WINDOW_DAYS: int = 30
DAILY_GOAL_MINUTES: int = 120

# --- Dashboard analytics ---
MOST_VISITED_LIMIT: int = 10
DOOM_SCROLL_MIN_MS: int = 5 * 60 * 1000
DOOM_SCROLL_LIMIT: int = 5

# --- LLM ---
LLM_TIMEOUT_SECONDS: float = float(os.getenv("SCROLLWISE_LLM_TIMEOUT", "20"))
LLM_MAX_RETRIES: int = int(os.getenv("SCROLLWISE_LLM_MAX_RETRIES", "4"))
LLM_RETRY_BASE_DELAY: float = float(os.getenv("SCROLLWISE_LLM_RETRY_BASE_DELAY", "1.0"))
LLM_RETRY_JITTER: float = 0.25

# --- Insights ---
INSIGHT_GENERATION_ATTEMPTS: int = 3
INSIGHT_RETENTION_PER_DAY: int = 10
INSIGHT_TITLE_MAX_CHARS: int = 70

# --- Jobs ---
AGGREGATION_SWEEP_LOOKBACK_HOURS: int = 12
INSIGHT_SWEEP_LOOKBACK_MINUTES: int = 15
INSIGHT_SWEEP_MIN_AGE_SECONDS: int = 120

# --- API ---
API_INSIGHT_LIMIT_DEFAULT: int = 10
API_INSIGHT_LIMIT_MAX: int = 50
API_BATCH_SIZE_MAX: int = 500
