"""
Retrying health check with capped exponential backoff.

The loop probes an endpoint until it is healthy. By default it retries every
failure forever; attempt caps, deadlines, fail-fast and cancellation are all
opt-in through :func:`run_loop` arguments.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, List, Optional

from .errors import ConfigurationError, HealthzError
from .probe import ProbeResult, probe

logger = logging.getLogger(__name__)


class StopReason(Enum):
    HEALTHY = "healthy"
    EXHAUSTED = "exhausted"
    DEADLINE = "deadline"
    CANCELLED = "cancelled"
    FATAL = "fatal"


@dataclass
class BackoffPolicy:
    """Delay schedule between failed attempts.

    Delay after the n-th failure (counting from zero) is
    ``min(min_delay * backoff ** n, max_delay)``. Once the cap is reached the
    delay is no longer recomputed.
    """

    min_delay: float = 1.0
    max_delay: float = 120.0
    backoff: float = 1.0

    def __post_init__(self):
        if self.backoff < 1.0 or math.isnan(self.backoff):
            raise ConfigurationError(f"backoff must be >= 1.0, got {self.backoff}")
        if self.min_delay < 0:
            raise ConfigurationError(f"min delay must not be negative, got {self.min_delay}")
        if self.max_delay < 0:
            raise ConfigurationError(f"max delay must not be negative, got {self.max_delay}")

    def delays(self) -> Iterator[float]:
        """Yield the delay to sleep after each consecutive failure."""
        delay = min(self.min_delay, self.max_delay)
        attempt = 0
        while True:
            yield delay
            attempt += 1
            if delay < self.max_delay:
                try:
                    delay = self.min_delay * math.pow(self.backoff, attempt)
                except OverflowError:
                    delay = self.max_delay
            if delay > self.max_delay:
                delay = self.max_delay


@dataclass
class LoopResult:
    """Outcome of a loop check."""

    ok: bool
    reason: StopReason
    attempts: int = 0
    elapsed: float = 0.0
    last_error: Optional[HealthzError] = None
    delays: List[float] = field(default_factory=list)


def run_loop(
    endpoint: str,
    timeout: float,
    policy: Optional[BackoffPolicy] = None,
    max_attempts: Optional[int] = None,
    deadline: Optional[float] = None,
    fail_fast: bool = False,
    stop_event: Optional[threading.Event] = None,
    on_failure: Optional[Callable[[ProbeResult], None]] = None,
    probe_func: Callable[[str, float], ProbeResult] = probe,
    clock: Callable[[], float] = time.monotonic,
) -> LoopResult:
    """Probe ``endpoint`` until it is healthy or an opt-in stop condition hits.

    Args:
        endpoint: Endpoint URL passed to the probe on every attempt
        timeout: Per-attempt probe timeout in seconds
        policy: Backoff schedule, defaults to a constant 1s delay capped at 120s
        max_attempts: Stop after this many failed probes (None retries forever)
        deadline: Stop once this many seconds have elapsed (None means never)
        fail_fast: Stop on non-retryable errors instead of retrying them
        stop_event: Setting this event cancels the loop during its next sleep
        on_failure: Called with each failed ProbeResult before sleeping
        probe_func: Probe implementation, mainly for tests
        clock: Monotonic clock, mainly for tests

    Returns:
        LoopResult describing why the loop stopped
    """
    if max_attempts is not None and max_attempts < 1:
        raise ConfigurationError(f"max attempts must be >= 1, got {max_attempts}")
    if deadline is not None and deadline < 0:
        raise ConfigurationError(f"deadline must not be negative, got {deadline}")

    policy = policy or BackoffPolicy()
    stop_event = stop_event or threading.Event()
    schedule = policy.delays()
    result = LoopResult(ok=False, reason=StopReason.EXHAUSTED)
    start = clock()

    def finish(reason: StopReason) -> LoopResult:
        result.reason = reason
        result.elapsed = clock() - start
        return result

    while True:
        if stop_event.is_set():
            logger.warning("Loop cancelled before attempt %d", result.attempts + 1)
            return finish(StopReason.CANCELLED)

        outcome = probe_func(endpoint, timeout)
        if outcome.ok:
            result.ok = True
            logger.info(
                "Endpoint healthy after %d failed attempt(s)",
                result.attempts,
                extra={"endpoint": endpoint, "attempt": result.attempts + 1},
            )
            return finish(StopReason.HEALTHY)

        result.attempts += 1
        result.last_error = outcome.error
        if on_failure:
            on_failure(outcome)

        if fail_fast and outcome.error is not None and not outcome.error.retryable:
            logger.warning(
                "Giving up on non-retryable error: %s",
                outcome.message,
                extra={"endpoint": endpoint, "attempt": result.attempts},
            )
            return finish(StopReason.FATAL)

        if max_attempts is not None and result.attempts >= max_attempts:
            logger.warning(
                "Giving up after %d attempt(s)",
                result.attempts,
                extra={"endpoint": endpoint, "attempt": result.attempts},
            )
            return finish(StopReason.EXHAUSTED)

        delay = next(schedule)
        if deadline is not None:
            remaining = deadline - (clock() - start)
            if remaining <= 0:
                logger.warning(
                    "Deadline of %gs reached after %d attempt(s)",
                    deadline,
                    result.attempts,
                    extra={"endpoint": endpoint, "attempt": result.attempts},
                )
                return finish(StopReason.DEADLINE)
            delay = min(delay, remaining)

        result.delays.append(delay)
        logger.info(
            "Attempt %d failed: %s; retrying in %gs",
            result.attempts,
            outcome.message,
            delay,
            extra={"endpoint": endpoint, "attempt": result.attempts, "delay": delay},
        )
        if stop_event.wait(delay):
            logger.warning("Loop cancelled while waiting to retry")
            return finish(StopReason.CANCELLED)
