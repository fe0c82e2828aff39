"""
Credit ledger implementations and cost estimation.

The detection core only charges credits after a successful detection
and checks the balance as a tick-entry guard. Persistence of the ledger
is external; InMemoryCreditLedger is used for local runs and tests.
"""

import logging
import math
import threading

from ..utils.constants import DEFAULT_CREDIT_COST

logger = logging.getLogger(__name__)


class InsufficientBalance(Exception):
    """Ledger refused a charge because the balance is too low."""

    def __init__(self, user_id: str, balance: int, amount: int):
        super().__init__(
            f"Insufficient balance for {user_id}: {balance} < {amount}"
        )
        self.user_id = user_id
        self.balance = balance
        self.amount = amount


class InsufficientCreditsError(Exception):
    """Balance cannot cover one minute of detection at the current interval."""

    def __init__(self, balance: int, required: int):
        super().__init__(
            f"Insufficient credits. Need at least {required} credits for "
            f"1 minute of detection at current interval (have {balance})."
        )
        self.balance = balance
        self.required = required


def estimate_cost_per_minute(
    interval_ms: float, cost: int = DEFAULT_CREDIT_COST
) -> int:
    """Upper bound on credits used per minute if every tick calls the detector."""
    return math.ceil(60000 / interval_ms) * cost


def minutes_available(
    balance: int, interval_ms: float, cost: int = DEFAULT_CREDIT_COST
) -> int:
    return balance // estimate_cost_per_minute(interval_ms, cost)


def check_credits_for_session(
    balance: int, interval_ms: float, cost: int = DEFAULT_CREDIT_COST
) -> None:
    """
    Raise InsufficientCreditsError if balance cannot cover a minute of detection.

    Args:
        balance: Current credit balance
        interval_ms: Detection interval the session will start with
        cost: Credits per detection
    """
    required = estimate_cost_per_minute(interval_ms, cost)
    if balance < required:
        raise InsufficientCreditsError(balance, required)


class InMemoryCreditLedger:
    """Thread-safe in-process ledger keyed by user id."""

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = dict(balances or {})
        self._applied: set[str] = set()
        self._lock = threading.Lock()

    def deposit(self, user_id: str, amount: int) -> int:
        with self._lock:
            self._balances[user_id] = self._balances.get(user_id, 0) + amount
            return self._balances[user_id]

    def balance(self, user_id: str) -> int:
        with self._lock:
            return self._balances.get(user_id, 0)

    def charge(
        self, user_id: str, amount: int, idempotency_key: str | None = None
    ) -> int:
        with self._lock:
            current = self._balances.get(user_id, 0)
            if idempotency_key is not None and idempotency_key in self._applied:
                logger.debug(f"Charge {idempotency_key} already applied")
                return current
            if current < amount:
                raise InsufficientBalance(user_id, current, amount)
            self._balances[user_id] = current - amount
            if idempotency_key is not None:
                self._applied.add(idempotency_key)
            logger.debug(f"Charged {amount} credit(s) to {user_id}, balance {current - amount}")
            return self._balances[user_id]
