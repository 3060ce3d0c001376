"""Fixed-interval polling bounded by a per-wait timeout and an overall deadline."""

import logging
import time

from .errors import DeadlineExceededError, WaitTimeoutError

logger = logging.getLogger(__name__)


class Deadline:
    """End-to-end time budget shared by every blocking step of one upload."""

    def __init__(self, seconds=None, clock=time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self.expires_at = None if seconds is None else clock() + seconds

    def remaining(self):
        """Seconds left, or None for an unbounded deadline."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    def expired(self):
        return self.expires_at is not None and self._clock() >= self.expires_at

    def check(self, what="upload"):
        if self.expired():
            raise DeadlineExceededError(
                f"Deadline of {self.seconds}s exceeded while waiting for {what}"
            )


def poll_until(condition, interval, timeout, what, deadline=None,
               clock=time.monotonic, sleep=time.sleep):
    """Call ``condition`` now and then every ``interval`` seconds until it returns True.

    Exceptions raised by ``condition`` stop polling and propagate. Raises
    WaitTimeoutError after ``timeout`` seconds and DeadlineExceededError
    once ``deadline`` has expired, whichever comes first.
    """
    started = clock()
    while True:
        if deadline is not None:
            deadline.check(what)

        if condition():
            return

        elapsed = clock() - started
        if elapsed >= timeout:
            raise WaitTimeoutError(f"Timed out after {timeout}s waiting for {what}")

        wait = min(interval, timeout - elapsed)
        if deadline is not None and deadline.remaining() is not None:
            wait = min(wait, deadline.remaining())
        logger.debug(f"Waiting {wait:.1f}s for {what}")
        sleep(wait)


def request_timeout(deadline, what="API request"):
    """Value for a client call's ``_request_timeout`` under ``deadline``.

    None leaves the client default in place.
    """
    if deadline is None:
        return None
    deadline.check(what)
    return deadline.remaining()
