# src/agrilot/core/lifecycle.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def deliver_if_active(
    awaitable: Awaitable[T],
    is_active: Callable[[], bool],
    on_result: Callable[[T], None] | None = None,
) -> T | None:
    """
    Await a long-running operation, then hand its result over only if the
    screen that started it is still around.

    The operation itself is not cancelled; a late result is dropped and
    None is returned. Exceptions propagate either way.
    """
    result = await awaitable
    if not is_active():
        logger.debug("Dropping result of finished operation; requester is gone.")
        return None
    if on_result is not None:
        on_result(result)
    return result
