"""Bounded waiting for collaborators that become usable asynchronously."""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable

_log = logging.getLogger(__name__)


class Readiness(enum.Enum):
    """Terminal state of a readiness wait."""

    READY = "ready"
    TIMED_OUT = "timed_out"


async def wait_until_ready(
    check: Callable[[], bool],
    timeout: float,
    interval: float,
) -> Readiness:
    """Poll ``check`` until it passes or ``timeout`` seconds elapse.

    ``check`` is evaluated once immediately, then every ``interval`` seconds.

    Args:
        check: Predicate reporting readiness.
        timeout: Upper bound on the wait, in seconds.
        interval: Delay between polls, in seconds.

    Returns:
        ``Readiness.READY`` as soon as ``check`` passes, otherwise
        ``Readiness.TIMED_OUT``.

    Examples:
        >>> asyncio.run(wait_until_ready(lambda: True, timeout=0.1, interval=0.01))
        <Readiness.READY: 'ready'>
        >>> asyncio.run(wait_until_ready(lambda: False, timeout=0.05, interval=0.01))
        <Readiness.TIMED_OUT: 'timed_out'>
    """
    if timeout < 0 or interval <= 0:
        raise ValueError("timeout must be >= 0 and interval > 0")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    attempts = 0
    while True:
        attempts += 1
        if check():
            _log.debug("ready after %d attempt(s)", attempts)
            return Readiness.READY
        remaining = deadline - loop.time()
        if remaining <= 0:
            _log.warning("not ready after %.2fs (%d attempts)", timeout, attempts)
            return Readiness.TIMED_OUT
        await asyncio.sleep(min(interval, remaining))
