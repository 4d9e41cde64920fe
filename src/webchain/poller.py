"""Retry-until-true primitives used by every wait.

Both variants tick on a fixed cadence and stop at the first tick where the
predicate holds or the elapsed time exceeds the timeout. Elapsed time is
sampled before the predicate runs, so a tick that observes success is
reported as success even when it lands past the deadline.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable


@dataclass(frozen=True)
class Condition:
    """Outcome of one predicate evaluation.

    ``error`` is set when the check itself is invalid (e.g. a malformed
    selector); ``value`` carries whatever the check last observed.
    """

    condition: bool
    error: str | None = None
    value: Any = None


async def until(check: Callable[[], Any], timeout: float, interval: float) -> bool:
    """Evaluate ``check`` inline every ``interval`` ms until truthy or ``timeout`` ms pass."""
    start = time.monotonic()
    while True:
        await asyncio.sleep(interval / 1000)
        elapsed = (time.monotonic() - start) * 1000
        result = bool(check())
        if result or elapsed > timeout:
            return result


async def until_async(
    check: Callable[[], Awaitable[Condition]], timeout: float, interval: float
) -> Condition:
    """Await ``check`` every ``interval`` ms until it holds, errors, or ``timeout`` ms pass.

    Round trips are strictly sequential: the next tick is not scheduled
    until the previous check has returned. A round trip in flight is never
    interrupted; the deadline is only consulted between attempts.
    """
    start = time.monotonic()
    while True:
        await asyncio.sleep(interval / 1000)
        elapsed = (time.monotonic() - start) * 1000
        res = await check()
        if res.condition or res.error or elapsed > timeout:
            return res
