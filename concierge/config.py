"""Centralized configuration for the Concierge backend.

Re-exports everything from concierge.infrastructure.settings, then adds typed
constants for database, discovery, approval, backfill and API settings.
Environment variable overrides use safe defaults so the app starts without
extra env configuration.
"""

from __future__ import annotations

import os

from concierge.infrastructure.settings import *  # noqa: F401, F403 - re-export settings

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("CONCIERGE_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("CONCIERGE_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("CONCIERGE_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("CONCIERGE_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("CONCIERGE_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("CONCIERGE_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("CONCIERGE_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("CONCIERGE_DB_RETRY_JITTER", "0.1"))

# --- Sensitivity tiers (minimum relevance score per tier) ---
TIER_CONSERVATIVE: float = float(os.getenv("CONCIERGE_TIER_CONSERVATIVE", "0.85"))
TIER_BALANCED: float = float(os.getenv("CONCIERGE_TIER_BALANCED", "0.75"))
TIER_BROAD: float = float(os.getenv("CONCIERGE_TIER_BROAD", "0.65"))

# --- Discovery ---
MAX_WORKERS: int = int(os.getenv("CONCIERGE_MAX_WORKERS", "4"))
CALL_TIMEOUT_SECONDS: float = float(os.getenv("CONCIERGE_CALL_TIMEOUT_SECONDS", "15"))
DISCOVERY_BODY_TRUNCATION: int = 4000
SNIPPET_MAX_CHARS: int = 200
SAMPLED_FOR_REVIEW_CAP: int = int(os.getenv("CONCIERGE_SAMPLED_FOR_REVIEW_CAP", "20"))
DEFAULT_PERSON: str = "Family/Shared"

# --- Rejected-email audit sampling ---
SAMPLE_NEAR_THRESHOLD_LIMIT: int = 20
SAMPLE_WEAK_LIMIT: int = 5
SAMPLE_VERY_WEAK_LIMIT: int = 5
SAMPLE_RETENTION_DAYS: int = 30

# --- Approval queue ---
ESCALATION_DAYS: int = int(os.getenv("CONCIERGE_ESCALATION_DAYS", "7"))
DISMISSED_RECENCY_DAYS: int = int(os.getenv("CONCIERGE_DISMISSED_RECENCY_DAYS", "7"))

# --- Domain suggestions ---
SUGGESTION_SAMPLE_CAP: int = 5
SUGGESTION_SUBJECT_MAX_CHARS: int = 80
SUGGESTION_KEYWORD_CAP: int = 20

# --- Backfill ---
BACKFILL_DEFAULT_MAX_EVENTS: int = 100
BACKFILL_MAX_EVENTS: int = 1000
BACKFILL_MAX_RANGE_DAYS: int = 365
BACKFILL_HIGH_CONFIDENCE: float = 0.7

# --- LLM ---
LLM_MAX_RETRIES: int = int(os.getenv("CONCIERGE_LLM_MAX_RETRIES", "3"))

# --- API ---
API_LIST_LIMIT_DEFAULT: int = 100
API_LIST_LIMIT_MAX: int = 500
