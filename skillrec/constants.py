"""Centralized constants for the recommendation engine.

Thresholds, windows and limits shared by several modules live here so
they can be tuned in one place.
"""

from __future__ import annotations

# -- Score scale -------------------------------------------------------------
MIN_SCORE = 400  # Lowest score on the assessment scale.
MAX_SCORE = 800  # Highest score on the assessment scale.
DEFAULT_SCORE = 500  # Assumed baseline for an untested skill.

# -- Skill gap thresholds ----------------------------------------------------
LOW_THRESHOLD = 550  # Below this a skill is a gap (HIGH).
CRITICAL_THRESHOLD = 450  # Below this a gap is CRITICAL.
STANDARD_TARGET_SCORE = LOW_THRESHOLD + 50
AI_TARGET_SCORE = 650  # Fixed target for AI recommendations.

# -- Recommendation limits ---------------------------------------------------
MAX_RECOMMENDATIONS = 5
RECOMMENDATION_COOLDOWN_DAYS = 30
CANDIDATE_POOL_SIZE = 10  # Max resources fetched per gap before scoring.
TOP_CANDIDATES = 3  # Shortlist size for the final difficulty tie-break.
RECENCY_HORIZON_DAYS = 365

# -- Feedback insights -------------------------------------------------------
FEEDBACK_WINDOW = 10  # Feedback rows considered per (user, skill).
MIN_FEEDBACK_PER_TYPE = 2
PREFERRED_TYPE_RATE = 0.7
AVOIDED_TYPE_RATE = 0.3
MAX_COMMON_ISSUES = 3
FEEDBACK_TREND_DAYS = 90  # Window covered by weekly feedback trends.
FEEDBACK_TREND_PERIOD_DAYS = 7

# -- Feedback validation -----------------------------------------------------
MAX_COMMENT_LENGTH = 1000
MAX_METADATA_STRING_LENGTH = 500

# -- AI generation -----------------------------------------------------------
MAX_AI_RESOURCES_PER_SKILL = 10
AI_RESOURCE_MAX_AGE_DAYS = 90  # Sweep only touches resources older than this.
AI_RESOURCE_ESTIMATED_MINUTES = 15
AI_GENERATED_TAG = "ai-generated"
PROMPT_HISTORY_LIMIT = 10  # Assessment events embedded in the prompt.

# -- Retry / deadlines -------------------------------------------------------
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 30.0
DEFAULT_LLM_REQUEST_TIMEOUT_SECONDS = 20.0

# -- Cache -------------------------------------------------------------------
DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_CACHE_MAX_SIZE = 1000
CACHE_LONG_TEXT_LIMIT = 1000  # Normalized text beyond this is shortened.
CACHE_KEY_NAMESPACE = "skillrec:llm"

# -- Observability -----------------------------------------------------------
ERROR_BUFFER_SIZE = 100  # Ring buffer size for error histories.
METRICS_STORE_KEY = "skillrec:ai:metrics"
