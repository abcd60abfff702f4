"""
NavigationService: live progress of drivers along stored routes.

One instance per process, built in the API lifespan and shared through
app.state. Each active session keeps an in-memory snapshot of its route
segments, a lock that serialises its location updates, and a polling task
that pulls the driver's position every ``poll_interval_seconds``.

Routing-provider failures never end a session: the update is logged and the
previous ETA / route stay in place.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch.clients.routing.base import BaseRoutingClient
from dispatch.config import DispatchConfig, load_dispatch_config
from dispatch.core.exceptions import DispatchError, NotFoundError
from dispatch.domain.clock import utcnow
from dispatch.domain.geo import distance_to_segment_m, haversine_m
from dispatch.domain.types import CurrentStep, LatLng, NavigationUpdate, Progress
from dispatch.infra.database.models.navigation import NavigationSession, Route
from dispatch.infra.database.repositories.driver import DriverRepository
from dispatch.infra.database.repositories.navigation import NavigationSessionRepository
from dispatch.services.routing_service import RoutingService

logger = logging.getLogger(__name__)

LocationSource = Callable[[UUID], Awaitable[Optional[LatLng]]]


class _Segment(NamedTuple):
    start: LatLng
    end: LatLng
    distance_m: float
    duration_s: float
    instruction: Optional[str]
    maneuver: Optional[str]


def _snapshot(route: Route) -> List[_Segment]:
    return [
        _Segment(
            start=LatLng(s.start_latitude, s.start_longitude),
            end=LatLng(s.end_latitude, s.end_longitude),
            distance_m=s.distance_m or 0.0,
            duration_s=s.duration_s or 0.0,
            instruction=s.instruction,
            maneuver=s.maneuver,
        )
        for s in sorted(route.segments, key=lambda s: s.segment_index)
    ]


@dataclass
class _ActiveSession:
    session_id: UUID
    route_id: UUID
    delivery_user_id: UUID
    assignment_id: Optional[UUID]
    destination: LatLng
    segments: List[_Segment]
    total_distance_m: float
    eta: datetime
    step_index: int = 0
    reroute_count: int = 0
    off_route: bool = False
    distance_remaining_m: float = 0.0
    time_remaining_s: float = 0.0
    location_source: Optional[LocationSource] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    task: Optional[asyncio.Task] = None

    def load_route(self, route: Route) -> None:
        self.route_id = route.id
        self.destination = LatLng(route.destination_latitude, route.destination_longitude)
        self.segments = _snapshot(route)
        self.total_distance_m = route.total_distance_m or sum(s.distance_m for s in self.segments)
        self.step_index = 0


class NavigationService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        routing_client: BaseRoutingClient,
        config: Optional[DispatchConfig] = None,
        location_source: Optional[LocationSource] = None,
    ) -> None:
        self._session_factory = session_factory
        self._client = routing_client
        self._config = config or load_dispatch_config()
        self._location_source = location_source or self._driver_location
        self._sessions: Dict[UUID, _ActiveSession] = {}

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as db:
            async with db.begin():
                yield db

    async def _driver_location(self, delivery_user_id: UUID) -> Optional[LatLng]:
        """Last location the driver reported through the availability endpoint."""
        async with self._session_factory() as db:
            availability = await DriverRepository(db).get_by_id(delivery_user_id)
        if availability is None or availability.current_latitude is None or availability.current_longitude is None:
            return None
        return LatLng(availability.current_latitude, availability.current_longitude)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def active_session_ids(self) -> List[UUID]:
        return list(self._sessions)

    async def start_navigation(
        self,
        route_id: UUID,
        delivery_user_id: UUID,
        assignment_id: Optional[UUID] = None,
        *,
        location_source: Optional[LocationSource] = None,
    ) -> NavigationSession:
        now = utcnow()
        async with self._transaction() as db:
            route = await RoutingService(db, self._client).get_route(route_id)
            if route.total_duration_s:
                eta = now + timedelta(seconds=route.total_duration_s)
            else:
                eta = now + timedelta(minutes=self._config.eta_fallback_minutes)
            row = await NavigationSessionRepository(db).create({
                "route_id": route_id,
                "delivery_user_id": delivery_user_id,
                "assignment_id": assignment_id,
                "current_step_index": 0,
                "distance_remaining_m": route.total_distance_m,
                "time_remaining_s": route.total_duration_s,
                "eta": eta,
                "off_route": False,
                "reroute_count": 0,
                "is_active": True,
                "started_at": now,
            })

        state = _ActiveSession(
            session_id=row.id,
            route_id=route_id,
            delivery_user_id=delivery_user_id,
            assignment_id=assignment_id,
            destination=LatLng(route.destination_latitude, route.destination_longitude),
            segments=_snapshot(route),
            total_distance_m=route.total_distance_m,
            eta=eta,
            distance_remaining_m=route.total_distance_m,
            time_remaining_s=route.total_duration_s,
            location_source=location_source,
        )
        self._sessions[row.id] = state
        state.task = asyncio.create_task(self._poll(state), name=f"navigation-poll-{row.id}")
        logger.info(
            "Navigation started for driver %s on route %s", delivery_user_id, route_id,
            extra={"session_id": str(row.id), "route_id": str(route_id)},
        )
        return row

    async def stop_navigation(self, session_id: UUID) -> NavigationSession:
        """Cancel polling (awaiting the task) and mark the session inactive."""
        state = self._sessions.pop(session_id, None)
        if state is not None and state.task is not None:
            state.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await state.task

        async with self._transaction() as db:
            row = await NavigationSessionRepository(db).update(
                session_id, {"is_active": False, "completed_at": utcnow()},
            )
        if row is None:
            raise NotFoundError("Navigation session not found", details={"session_id": str(session_id)})
        logger.info("Navigation stopped", extra={"session_id": str(session_id)})
        return row

    @asynccontextmanager
    async def navigate(
        self,
        route_id: UUID,
        delivery_user_id: UUID,
        assignment_id: Optional[UUID] = None,
        *,
        location_source: Optional[LocationSource] = None,
    ) -> AsyncIterator[NavigationSession]:
        """Scoped session: stop_navigation runs however the block exits."""
        row = await self.start_navigation(
            route_id, delivery_user_id, assignment_id, location_source=location_source,
        )
        try:
            yield row
        finally:
            await self.stop_navigation(row.id)

    async def aclose(self) -> None:
        """Stop every session this process is tracking. Called on shutdown."""
        for session_id in list(self._sessions):
            try:
                await self.stop_navigation(session_id)
            except (SQLAlchemyError, NotFoundError) as exc:
                logger.warning("Could not close navigation session %s: %s", session_id, exc)

    async def get_session(self, session_id: UUID) -> NavigationSession:
        async with self._session_factory() as db:
            row = await NavigationSessionRepository(db).get_by_id(session_id)
        if row is None:
            raise NotFoundError("Navigation session not found", details={"session_id": str(session_id)})
        return row

    # ------------------------------------------------------------------
    # Location updates
    # ------------------------------------------------------------------

    async def _poll(self, state: _ActiveSession) -> None:
        source = state.location_source or self._location_source
        while True:
            await asyncio.sleep(self._config.poll_interval_seconds)
            try:
                location = await source(state.delivery_user_id)
                if location is not None:
                    await self.update_location(state.session_id, location.lat, location.lng)
            except Exception:
                logger.exception("Navigation poll failed", extra={"session_id": str(state.session_id)})

    async def _resume(self, session_id: UUID) -> _ActiveSession:
        """Rebuild state for an active session started by another worker or before a restart."""
        async with self._session_factory() as db:
            row = await NavigationSessionRepository(db).get_by_id(session_id)
            if row is None or not row.is_active:
                raise NotFoundError("Navigation session not active", details={"session_id": str(session_id)})
            route = await RoutingService(db, self._client).get_route(row.route_id)
        state = _ActiveSession(
            session_id=row.id,
            route_id=row.route_id,
            delivery_user_id=row.delivery_user_id,
            assignment_id=row.assignment_id,
            destination=LatLng(route.destination_latitude, route.destination_longitude),
            segments=_snapshot(route),
            total_distance_m=route.total_distance_m,
            eta=row.eta or utcnow() + timedelta(minutes=self._config.eta_fallback_minutes),
            step_index=row.current_step_index,
            reroute_count=row.reroute_count,
            off_route=row.off_route,
            distance_remaining_m=row.distance_remaining_m or route.total_distance_m,
            time_remaining_s=row.time_remaining_s or route.total_duration_s,
        )
        return self._sessions.setdefault(session_id, state)

    async def update_location(self, session_id: UUID, latitude: float, longitude: float) -> NavigationUpdate:
        state = self._sessions.get(session_id) or await self._resume(session_id)
        async with state.lock:
            return await self._apply_location(state, LatLng(latitude, longitude))

    def _measure(self, state: _ActiveSession, here: LatLng) -> float:
        """Recompute remaining distance/time; returns the distance to the end of the current step."""
        if state.step_index >= len(state.segments):
            to_end = haversine_m(here.lat, here.lng, state.destination.lat, state.destination.lng)
            state.distance_remaining_m = to_end
            state.time_remaining_s = 0.0
            return to_end
        seg = state.segments[state.step_index]
        to_end = haversine_m(here.lat, here.lng, seg.end.lat, seg.end.lng)
        later = state.segments[state.step_index + 1:]
        fraction = min(1.0, to_end / seg.distance_m) if seg.distance_m > 0 else 0.0
        state.distance_remaining_m = to_end + sum(s.distance_m for s in later)
        state.time_remaining_s = seg.duration_s * fraction + sum(s.duration_s for s in later)
        return to_end

    async def _apply_location(self, state: _ActiveSession, here: LatLng) -> NavigationUpdate:
        # Advance at most one step per update
        if state.step_index < len(state.segments):
            seg = state.segments[state.step_index]
            if haversine_m(here.lat, here.lng, seg.end.lat, seg.end.lng) < self._config.step_complete_meters:
                state.step_index += 1

        if state.step_index < len(state.segments):
            seg = state.segments[state.step_index]
            off_by = distance_to_segment_m(
                here.lat, here.lng, seg.start.lat, seg.start.lng, seg.end.lat, seg.end.lng,
            )
            state.off_route = off_by > self._config.off_route_meters
        else:
            state.off_route = False

        to_step = self._measure(state, here)

        try:
            calculated = await self._client.directions(here, state.destination)
            state.eta = utcnow() + timedelta(seconds=calculated.total_duration_s)
        except DispatchError as exc:
            logger.warning(
                "ETA refresh failed, keeping previous ETA: %s", exc,
                extra={"session_id": str(state.session_id)},
            )

        rerouted = False
        if state.off_route and state.reroute_count < self._config.max_reroutes:
            rerouted = await self._reroute(state, here)
            if rerouted:
                to_step = self._measure(state, here)

        await self._persist(state, here)

        current = state.segments[state.step_index] if state.step_index < len(state.segments) else None
        total = state.total_distance_m
        if total > 0:
            percent = max(0.0, min(100.0, (total - state.distance_remaining_m) / total * 100.0))
        else:
            percent = 100.0 if current is None else 0.0
        return NavigationUpdate(
            session_id=state.session_id,
            route_id=state.route_id,
            current_step=CurrentStep(
                index=state.step_index,
                instruction=current.instruction if current else "Arrived",
                distance_to_step_m=round(to_step, 1),
                maneuver=current.maneuver if current else None,
            ),
            progress=Progress(
                percent=round(percent, 1),
                distance_remaining_m=round(state.distance_remaining_m, 1),
                time_remaining_s=round(state.time_remaining_s, 1),
                total_distance_m=round(total, 1),
            ),
            eta=state.eta,
            off_route=state.off_route,
            reroute_count=state.reroute_count,
            rerouted=rerouted,
        )

    async def _reroute(self, state: _ActiveSession, here: LatLng) -> bool:
        try:
            async with self._transaction() as db:
                route = await RoutingService(db, self._client).recalculate_route(
                    state.route_id, here, state.assignment_id,
                )
        except DispatchError as exc:
            logger.warning(
                "Reroute failed, staying on current route: %s", exc,
                extra={"session_id": str(state.session_id)},
            )
            return False
        state.load_route(route)
        state.reroute_count += 1
        state.off_route = False
        if route.total_duration_s:
            state.eta = utcnow() + timedelta(seconds=route.total_duration_s)
        logger.info(
            "Session rerouted (%d/%d)", state.reroute_count, self._config.max_reroutes,
            extra={"session_id": str(state.session_id), "route_id": str(route.id)},
        )
        return True

    async def _persist(self, state: _ActiveSession, here: LatLng) -> None:
        async with self._transaction() as db:
            await NavigationSessionRepository(db).update(state.session_id, {
                "route_id": state.route_id,
                "current_step_index": state.step_index,
                "current_latitude": here.lat,
                "current_longitude": here.lng,
                "distance_remaining_m": state.distance_remaining_m,
                "time_remaining_s": state.time_remaining_s,
                "eta": state.eta,
                "off_route": state.off_route,
                "reroute_count": state.reroute_count,
            })
