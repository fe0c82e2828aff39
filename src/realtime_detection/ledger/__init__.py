"""
Credit ledgers, cost estimation, and per-session usage bookkeeping.
"""

from .credits import (
    InMemoryCreditLedger,
    InsufficientBalance,
    InsufficientCreditsError,
    check_credits_for_session,
    estimate_cost_per_minute,
    minutes_available,
)
from .http import HttpCreditLedger, with_retry
from .usage import SessionUsage, SessionUsageTracker

__all__ = [
    "HttpCreditLedger",
    # Ledgers
    "InMemoryCreditLedger",
    # Exceptions
    "InsufficientBalance",
    "InsufficientCreditsError",
    # Usage
    "SessionUsage",
    "SessionUsageTracker",
    # Estimation
    "check_credits_for_session",
    "estimate_cost_per_minute",
    "minutes_available",
    "with_retry",
]
