import time
from typing import Callable


class ExponentialBackoff:
    """
    Bounded exponential backoff

    Each failure doubles (by `factor`) the delay, capped at `maximum`.
    A success resets it. `ready()` tells a polling loop whether the next
    attempt is due yet, so a failing target is skipped without sleeping.
    """

    def __init__(
        self,
        initial: float = 1.0,
        maximum: float = 60.0,
        factor: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if initial <= 0 or maximum < initial or factor < 1:
            raise ValueError("Invalid backoff parameters")
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self._clock = clock
        self.failures = 0
        self._next_attempt = 0.0

    @property
    def delay(self) -> float:
        """Delay that applies after the current number of failures"""
        if self.failures == 0:
            return 0.0
        return min(self.initial * self.factor ** (self.failures - 1), self.maximum)

    def failure(self) -> float:
        """Record a failure and return the delay until the next attempt"""
        self.failures += 1
        delay = self.delay
        self._next_attempt = self._clock() + delay
        return delay

    def success(self) -> None:
        self.failures = 0
        self._next_attempt = 0.0

    def ready(self) -> bool:
        return self._clock() >= self._next_attempt
