"""Concurrent hook dispatch shared by ServiceContext and the action interceptor."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Sequence
from typing import Any

logger = logging.getLogger(__name__)

Hook = Callable[..., Any]


async def settle(value: Any) -> Any:
    """Await *value* if it is awaitable, otherwise return it."""
    if inspect.isawaitable(value):
        return await value
    return value


async def run_hooks(hooks: Sequence[Hook], *args: Any, **kwargs: Any) -> list[Any]:
    """Call every hook, then await all awaitable results together.

    Results come back in hook order. Every hook is attempted; once all have
    settled the first failure (in hook order) is re-raised and the rest are
    logged.
    """
    if not hooks:
        return []

    pending: list[Any] = []
    for hook in hooks:
        try:
            pending.append(settle(hook(*args, **kwargs)))
        except Exception as exc:
            pending.append(_settle_error(exc))

    outcomes = await asyncio.gather(*pending, return_exceptions=True)

    failures = [o for o in outcomes if isinstance(o, BaseException)]
    if failures:
        for extra in failures[1:]:
            logger.warning("Additional hook failure: %r", extra)
        raise failures[0]
    return list(outcomes)


async def _settle_error(exc: Exception) -> Any:
    raise exc
