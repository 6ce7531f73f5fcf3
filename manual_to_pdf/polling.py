"""Bounded polling for conditions that settle asynchronously."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, NamedTuple, Optional, Union

Predicate = Callable[[], Union[bool, Awaitable[bool]]]


class PollOutcome(NamedTuple):
    satisfied: bool
    attempts: int


async def poll_until(predicate: Predicate, interval: float = 0.1,
                     max_attempts: Optional[int] = None) -> PollOutcome:
    """Evaluate `predicate` every `interval` seconds until it returns truthy.

    The predicate may be a plain or a coroutine function. With
    `max_attempts` set, gives up after that many evaluations; without it the
    loop only ends when the predicate holds or the caller cancels the task.
    """
    attempts = 0
    while max_attempts is None or attempts < max_attempts:
        attempts += 1
        result: Any = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return PollOutcome(True, attempts)
        if max_attempts is not None and attempts >= max_attempts:
            break
        await asyncio.sleep(interval)
    return PollOutcome(False, attempts)
