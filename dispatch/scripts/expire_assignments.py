#!/usr/bin/env python3
"""Expire overdue restaurant and delivery assignments.

Meant for cron or a sidecar loop. Each sweep runs in its own transaction, so a
failing restaurant sweep does not hold back the delivery sweep.

Run:
    python -m dispatch.scripts.expire_assignments            # one pass
    python -m dispatch.scripts.expire_assignments --every 30 # loop every 30 s
"""
from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch.config import DispatchConfig, load_dispatch_config
from dispatch.core.exceptions import DispatchError
from dispatch.core.logger import configure
from dispatch.infra.database.engine import build_engine, build_session_factory, close_engine
from dispatch.services.delivery_handoff_service import DeliveryHandoffService
from dispatch.services.restaurant_handoff_service import RestaurantHandoffService

logger = logging.getLogger(__name__)


async def sweep_once(
    session_factory: async_sessionmaker[AsyncSession],
    config: Optional[DispatchConfig] = None,
) -> dict[str, int]:
    """Run both sweeps; returns how many rows each expired (-1 when it failed)."""
    config = config or load_dispatch_config()
    counts = {"restaurant": -1, "delivery": -1}
    for name, run in (
        ("restaurant", lambda s: RestaurantHandoffService(s, config).process_expired_restaurant_assignments()),
        ("delivery", lambda s: DeliveryHandoffService(s, config).process_expired_assignments()),
    ):
        try:
            async with session_factory() as session:
                async with session.begin():
                    counts[name] = await run(session)
        except (SQLAlchemyError, DispatchError) as exc:
            logger.error("%s sweep failed: %s", name, exc)
    logger.info("Sweep done: %d restaurant, %d delivery", counts["restaurant"], counts["delivery"])
    return counts


async def main(every: Optional[float] = None) -> None:
    configure()
    session_factory = build_session_factory(build_engine(use_null_pool=every is None))
    try:
        await sweep_once(session_factory)
        while every:
            await asyncio.sleep(every)
            await sweep_once(session_factory)
    finally:
        await close_engine()


def run() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--every", type=float, default=None, help="Repeat every N seconds instead of running once.")
    args = parser.parse_args()
    asyncio.run(main(args.every))


if __name__ == "__main__":
    run()
