"""Per-address WebSocket admission control.

Sliding-window counter of accepted connection attempts per source address.
Once an address reaches ``limit`` attempts inside ``window`` seconds, new
attempts are refused until the oldest one ages out. Refused attempts are not
counted, so a blocked address is admitted again as soon as the window passes.
"""
import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class ConnectionAttemptLimiter:
    def __init__(
        self,
        limit: int = 10,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._attempts: dict[str, list[float]] = {}

    def admit(self, address: str) -> bool:
        """Record an attempt from address. Return False if it must be refused."""
        now = self._clock()
        attempts = [t for t in self._attempts.get(address, []) if now - t < self.window]

        if len(attempts) >= self.limit:
            self._attempts[address] = attempts
            logger.warning(
                "Connection attempts exceeded for %s: %d/%d in %.0fs",
                address, len(attempts), self.limit, self.window,
            )
            return False

        attempts.append(now)
        self._attempts[address] = attempts
        return True

    def retry_after(self, address: str) -> float:
        """Seconds until address may connect again (0 when it may connect now)."""
        attempts = self._attempts.get(address, [])
        if len(attempts) < self.limit:
            return 0.0
        oldest = attempts[-self.limit]
        return max(0.0, self.window - (self._clock() - oldest))

    def prune(self) -> int:
        """Drop addresses with no attempt inside the window. Returns how many."""
        now = self._clock()
        stale = [
            address for address, attempts in self._attempts.items()
            if not attempts or now - attempts[-1] >= self.window
        ]
        for address in stale:
            del self._attempts[address]
        return len(stale)

    def tracked_addresses(self) -> list[str]:
        return list(self._attempts)
