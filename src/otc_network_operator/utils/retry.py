"""Bounded, cancellable retry-with-delay used to poll slow provider operations."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from ..constants import PROVIDER_WAIT_DELAY, PROVIDER_WAIT_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


class MaxRetriesExceeded(Exception):
    """Raised when the attempt budget is used up before the operation finished.

    Deliberately unrelated to the errors raised by the retried operation, so a
    caller can tell "gave up waiting" apart from "the operation failed".
    """

    def __init__(self, attempts: int, last_error: BaseException | None = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"maximum retries reached after {attempts} attempts"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)


class RetryCancelled(Exception):
    """Raised when the cancellation event is set while waiting."""


def retry(
    fn: Callable[[], bool],
    *,
    max_attempts: int = PROVIDER_WAIT_MAX_ATTEMPTS,
    delay: float = PROVIDER_WAIT_DELAY,
    cancel: threading.Event | None = None,
    retry_on: tuple[type[BaseException], ...] = (),
) -> None:
    """Call ``fn`` until it reports completion.

    Args:
        fn: Callable returning True when done and False to try again. Any
            exception it raises aborts the loop, unless it is an instance of
            one of ``retry_on``, in which case it is remembered and retried.
        max_attempts: Maximum number of calls to ``fn``.
        delay: Seconds to wait between two attempts.
        cancel: Optional event; once set, the loop stops before the next
            attempt and during the wait between attempts.
        retry_on: Exception types treated as "not done yet".

    Raises:
        MaxRetriesExceeded: If ``fn`` did not finish within ``max_attempts``.
        RetryCancelled: If ``cancel`` was set.
    """
    last_error: BaseException | None = None
    attempt = 0

    while True:
        if cancel is not None and cancel.is_set():
            raise RetryCancelled(f"retry cancelled after {attempt} attempts")

        attempt += 1
        if attempt > max_attempts:
            raise MaxRetriesExceeded(max_attempts, last_error)

        try:
            if fn():
                return
        except retry_on as e:
            last_error = e
            logger.debug("Attempt %d/%d failed: %s", attempt, max_attempts, e)

        if cancel is not None:
            if cancel.wait(delay):
                raise RetryCancelled(f"retry cancelled after {attempt} attempts")
        else:
            time.sleep(delay)
