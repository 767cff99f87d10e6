"""
Retry helper for calls to the language model server.

The model server is usually a local process that may still be loading a
model when the first request arrives, so every call is retried a few
times with a linearly growing pause between attempts.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


T = TypeVar("T")


def linear_delay(base_delay: float) -> Callable[[int], float]:
    """Return a delay function yielding ``base_delay * attempt``."""
    return lambda attempt: base_delay * attempt


def retry_with_backoff(
    fn: Callable[[], T],
    attempts: int = 3,
    delay: Callable[[int], float] = linear_delay(1.0),
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Optional[Callable[[float], None]] = None,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """Call ``fn`` until it succeeds or ``attempts`` calls have failed.

    Parameters
    ----------
    fn : Callable[[], T]
        Zero-argument callable to invoke.
    attempts : int, optional
        Maximum number of calls. Must be at least 1.
    delay : Callable[[int], float], optional
        Maps the 1-based number of the failed attempt to the pause in
        seconds before the next one.
    retry_on : tuple of exception types, optional
        Exceptions that trigger a retry. Anything else propagates at once.
    sleep : Callable[[float], None], optional
        Sleep function, ``time.sleep`` when not given.
    on_retry : Callable[[int, BaseException], None], optional
        Called with the failed attempt number and its exception before
        each retry. Not called after the final attempt.

    Returns
    -------
    T
        The first successful result of ``fn``.

    Raises
    ------
    Exception
        The exception of the final attempt once all attempts failed.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(1, attempts):
        try:
            return fn()
        except retry_on as exc:
            pause = delay(attempt)
            logger.warning(
                "Attempt %d/%d failed (%s), retrying in %.1fs", attempt, attempts, exc, pause
            )
            if on_retry is not None:
                on_retry(attempt, exc)
            (sleep or time.sleep)(pause)
    try:
        return fn()
    except retry_on as exc:
        logger.error("Giving up after %d attempt(s): %s", attempts, exc)
        raise
