"""
Request spacing and backoff windows for rate-limited providers.

A gate tracks when the last request to a provider was issued and until
when the provider is considered overloaded. Callers either reserve the
next slot and sleep until it (``reserve``) or take it only when it is
free right now (``try_acquire``).

Gates hold no lock of their own. Their methods are synchronous, so the
owning service calls them while holding its coordination lock and the
check-and-update is atomic with respect to its cache and in-flight ledger.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class ProviderGate:
    """
    Minimum-interval spacing plus an exponential backoff window.

    Parameters
    ----------
    service : str
        Human-readable provider name (for logging).
    min_interval : float
        Seconds between consecutive requests.
    backoff_base : float
        Backoff window after the first failure, in seconds.
    backoff_max : float
        Upper bound of the backoff window, in seconds.
    clock : callable
        Monotonic clock returning seconds.
    """

    def __init__(
        self,
        service: str,
        *,
        min_interval: float,
        backoff_base: float = 30.0,
        backoff_max: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service = service
        self.min_interval = min_interval
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.clock = clock

        self.last_request_at: float | None = None
        self.backoff_until: float = 0.0
        self._failures = 0

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    def is_backed_off(self) -> bool:
        return self.clock() < self.backoff_until

    def backoff_remaining(self) -> float:
        return max(0.0, self.backoff_until - self.clock())

    def reserve(self) -> float | None:
        """
        Claim the next request slot.

        Returns the number of seconds the caller must wait before sending,
        or ``None`` while the provider is backed off (no slot is claimed).
        """
        now = self.clock()
        if now < self.backoff_until:
            return None
        if self.last_request_at is None:
            start = now
        else:
            start = max(now, self.last_request_at + self.min_interval)
        self.last_request_at = start
        return start - now

    def try_acquire(self) -> bool:
        """Claim the slot only if it is free now; never waits."""
        now = self.clock()
        if now < self.backoff_until:
            return False
        if (
            self.last_request_at is not None
            and now - self.last_request_at < self.min_interval
        ):
            return False
        self.last_request_at = now
        return True

    def record_success(self) -> None:
        if self._failures:
            logger.info("%s recovered after %d failures", self.service, self._failures)
        self._failures = 0

    def record_failure(self, retry_after: float | None = None) -> float:
        """Open (or extend) the backoff window and return its length."""
        self._failures += 1
        window = min(
            self.backoff_max,
            self.backoff_base * (2 ** (self._failures - 1)),
        )
        if retry_after is not None:
            window = max(window, retry_after)
        self.backoff_until = max(self.backoff_until, self.clock() + window)
        logger.warning(
            "%s backing off for %.0fs after %d consecutive failures",
            self.service,
            window,
            self._failures,
        )
        return window

    def reset(self) -> None:
        self.last_request_at = None
        self.backoff_until = 0.0
        self._failures = 0
