"""Generic wait/poll engine shared by every preflight wait site.

Each call site supplies only a probe and a :class:`PollSpec`; the backoff,
timeout, cancellation and error classification rules live here so that pod
readiness and volume snapshot readiness waits behave identically.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    stop_any,
    stop_never,
    wait_exponential,
    wait_incrementing,
)

from lib.constants import (
    LOGGER_NAME,
    POLL_INITIAL_DELAY,
    POLL_MAX_ATTEMPTS,
    POLL_MAX_DELAY,
    POLL_MAX_DURATION,
    POLL_MULTIPLIER,
)
from lib.exceptions import TransientError, WaitCancelledError, WaitTimeoutError
from lib.kube_client import is_retryable_error

ProbeFn = Callable[[], Tuple[bool, str]]
SleepFn = Callable[[float], None]


@dataclass(frozen=True)
class PollSpec:
    """Backoff policy for a single poll call.

    Delays start at ``initial_delay`` and grow by ``multiplier`` (or by
    ``linear_step`` when set) up to ``max_delay``. The wait stops after
    ``max_attempts`` probes or once ``max_duration`` seconds have elapsed,
    whichever comes first; ``None`` disables a bound. The last sleep is
    shortened to end at the deadline so a final probe runs right there.
    """

    initial_delay: float = POLL_INITIAL_DELAY
    multiplier: float = POLL_MULTIPLIER
    max_delay: float = POLL_MAX_DELAY
    max_attempts: Optional[int] = POLL_MAX_ATTEMPTS
    max_duration: Optional[float] = POLL_MAX_DURATION
    linear_step: Optional[float] = None

    def wait_strategy(self):
        if self.linear_step is not None:
            backoff = wait_incrementing(start=self.initial_delay, increment=self.linear_step, max=self.max_delay)
        else:
            backoff = wait_exponential(multiplier=self.initial_delay, exp_base=self.multiplier, max=self.max_delay)
        if self.max_duration is None:
            return backoff

        def _until_deadline(retry_state: RetryCallState) -> float:
            remaining = self.max_duration - retry_state.seconds_since_start
            return max(0.0, min(backoff(retry_state), remaining))

        return _until_deadline

    def stop_strategy(self):
        stops = []
        if self.max_attempts is not None:
            stops.append(stop_after_attempt(self.max_attempts))
        if self.max_duration is not None:
            stops.append(stop_after_delay(self.max_duration))
        if not stops:
            return stop_never
        return stop_any(*stops)


class WaitStatus(Enum):
    """Terminal state of a poll."""

    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"


@dataclass
class WaitOutcome:
    """Result of :func:`wait_for`."""

    status: WaitStatus
    attempts: int
    detail: str = ""
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.status is WaitStatus.SUCCEEDED

    def raise_for_status(self) -> None:
        """Raise the recorded error unless the wait succeeded."""
        if self.error is not None and not self.succeeded:
            raise self.error


def is_transient_error(exception: BaseException) -> bool:
    """Probe errors that are retried like "not done yet"."""
    return isinstance(exception, TransientError) or is_retryable_error(exception)


def _sleeper(cancel_event: Optional[threading.Event]) -> SleepFn:
    if cancel_event is None:
        return time.sleep

    def _sleep(seconds: float) -> None:
        # Returns early once the event is set; the next attempt then aborts.
        cancel_event.wait(seconds)

    return _sleep


def wait_for(
    description: str,
    probe: ProbeFn,
    spec: Optional[PollSpec] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
    logger: Optional[logging.Logger] = None,
    sleep: Optional[SleepFn] = None,
) -> WaitOutcome:
    """Poll ``probe`` until it reports done, fails permanently, or the budget runs out.

    Args:
        description: Human-readable name of what is awaited (used in logs)
        probe: Callable returning ``(done, detail)``
        spec: Backoff policy (defaults to :class:`PollSpec`)
        cancel_event: Set to abort the wait; checked before every attempt
        logger: Logger for progress lines
        sleep: Sleep function override (defaults to an interruptible sleep)

    Returns:
        WaitOutcome with SUCCEEDED, TIMED_OUT or ERRORED status
    """
    spec = spec or PollSpec()
    logger = logger or logging.getLogger(LOGGER_NAME)
    attempts = 0
    last_detail = ""

    def attempt() -> bool:
        nonlocal attempts, last_detail
        if cancel_event is not None and cancel_event.is_set():
            raise WaitCancelledError(f"wait for {description} cancelled")
        attempts += 1
        done, detail = probe()
        last_detail = detail
        return done

    def before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            logger.debug(
                "%s not ready (attempt %s): %s; retrying in %.1fs",
                description,
                retry_state.attempt_number,
                outcome.exception(),
                retry_state.upcoming_sleep,
            )
        else:
            logger.debug(
                "%s in progress (attempt %s)%s; retrying in %.1fs",
                description,
                retry_state.attempt_number,
                f": {last_detail}" if last_detail else "",
                retry_state.upcoming_sleep,
            )

    retrying = Retrying(
        retry=retry_if_result(lambda done: not done) | retry_if_exception(is_transient_error),
        wait=spec.wait_strategy(),
        stop=spec.stop_strategy(),
        sleep=sleep or _sleeper(cancel_event),
        before_sleep=before_sleep,
        reraise=False,
    )

    logger.info("Waiting for %s...", description)
    try:
        retrying(attempt)
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        message = f"{description} not complete after {attempts} attempt(s)"
        if last_error is not None:
            message += f" (last error: {last_error})"
        elif last_detail:
            message += f" (last state: {last_detail})"
        logger.warning(message)
        return WaitOutcome(WaitStatus.TIMED_OUT, attempts, last_detail, WaitTimeoutError(message))
    except WaitCancelledError as exc:
        logger.warning("%s", exc)
        return WaitOutcome(WaitStatus.ERRORED, attempts, last_detail, exc)
    except Exception as exc:
        logger.error("Waiting for %s failed: %s", description, exc)
        return WaitOutcome(WaitStatus.ERRORED, attempts, last_detail, exc)

    if last_detail:
        logger.info("%s complete: %s", description, last_detail)
    else:
        logger.info("%s complete", description)
    return WaitOutcome(WaitStatus.SUCCEEDED, attempts, last_detail)
