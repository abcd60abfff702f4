"""
Best-effort execution of non-critical writes.

History rows, notifications and sibling cancellation must never abort the
primary operation. Each runs inside a SAVEPOINT so a failure rolls back only
its own statements; the error is logged at WARNING and swallowed.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.core.exceptions import DispatchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_best_effort(
    session: AsyncSession,
    label: str,
    fn: Callable[[], Awaitable[T]],
    *,
    extra: Optional[Mapping[str, Any]] = None,
) -> Optional[T]:
    """Run *fn* in a savepoint; return its result, or None if it failed."""
    try:
        async with session.begin_nested():
            return await fn()
    except (SQLAlchemyError, DispatchError) as exc:
        logger.warning("%s failed, continuing: %s", label, exc, extra=dict(extra or {}))
        return None
