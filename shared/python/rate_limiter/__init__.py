"""Rate limiting module for listener submissions."""

from .limiter import (
    DEFAULT_MAX_SUBMISSIONS_PER_DAY,
    RATE_LIMIT_OPTION_KEY,
    DailySubmissionLimiter,
    QuotaDecision,
    RateLimitStoreError,
)

__all__ = [
    "DailySubmissionLimiter",
    "DEFAULT_MAX_SUBMISSIONS_PER_DAY",
    "QuotaDecision",
    "RATE_LIMIT_OPTION_KEY",
    "RateLimitStoreError",
]
