"""
HTTP credit ledger client.

Talks to an external ledger service:
- GET  {url}/{user_id}         -> {"balance": int}
- POST {url}/{user_id}/charge  -> {"balance": int}, 402 if balance too low

Ledger calls are retried with exponential backoff on transient errors.
A charge is only retried after a read timeout or 5xx when it carries an
Idempotency-Key; otherwise only failures to connect are retried.
"""

import logging
import time
from typing import Callable

import requests

from .credits import InsufficientBalance

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY = 1.0  # seconds


def with_retry(
    func: Callable[[], requests.Response],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    idempotent: bool = True,
) -> requests.Response:
    """
    Execute a request function with exponential backoff retry.

    Retries on connection errors, and for idempotent requests also on
    read timeouts and 5xx. Does NOT retry on 4xx client errors.

    Args:
        func: Callable that performs the request and returns Response
        max_retries: Maximum number of retry attempts (default: 2)
        base_delay: Initial delay in seconds, doubles each retry (default: 1.0)
        idempotent: False if the server may have applied a request that
            timed out or failed with 5xx

    Returns:
        The final Response object

    Raises:
        requests.RequestException: If all retries exhausted
    """
    for attempt in range(max_retries + 1):
        delay = base_delay * (2**attempt)
        try:
            response = func()
            if response.status_code < 500 or not idempotent:
                return response
            if attempt < max_retries:
                logger.warning(
                    f"Ledger error {response.status_code}, retry {attempt + 1}/{max_retries} in {delay}s"
                )
                time.sleep(delay)
                continue
            return response

        except (requests.ConnectionError, requests.Timeout) as e:
            # ConnectTimeout is a ConnectionError: the request never arrived
            retryable = idempotent or isinstance(e, requests.ConnectionError)
            if retryable and attempt < max_retries:
                logger.warning(
                    f"Network error, retry {attempt + 1}/{max_retries} in {delay}s: {e}"
                )
                time.sleep(delay)
            else:
                raise

    raise requests.RequestException("Retry exhausted")


class HttpCreditLedger:
    """Credit ledger backed by a remote HTTP service."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        session: requests.Session | None = None,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._http = session or requests.Session()

    def balance(self, user_id: str) -> int:
        response = with_retry(
            lambda: self._http.get(f"{self.url}/{user_id}", timeout=self.timeout),
            self.max_retries,
            self.base_delay,
        )
        response.raise_for_status()
        return int(response.json()["balance"])

    def charge(
        self, user_id: str, amount: int, idempotency_key: str | None = None
    ) -> int:
        headers = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        response = with_retry(
            lambda: self._http.post(
                f"{self.url}/{user_id}/charge",
                json={"amount": amount},
                headers=headers,
                timeout=self.timeout,
            ),
            self.max_retries,
            self.base_delay,
            idempotent=bool(idempotency_key),
        )
        if response.status_code == 402:
            body = _json_or_empty(response)
            raise InsufficientBalance(user_id, int(body.get("balance", 0)), amount)
        response.raise_for_status()
        return int(response.json()["balance"])


def _json_or_empty(response: requests.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
