"""Routes and live navigation sessions."""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import get_navigation_service, get_routing_client, get_session
from dispatch.api.schemas.navigation import (
    EtaResponse,
    NavigationSessionResponse,
    NavigationUpdateResponse,
    Point,
    RouteRequest,
    RouteResponse,
    StartNavigationRequest,
)
from dispatch.clients.routing.base import BaseRoutingClient
from dispatch.domain.types import LatLng
from dispatch.services.navigation_service import NavigationService
from dispatch.services.routing_service import RoutingService

router = APIRouter(tags=["navigation"])


def _latlng(point: Point) -> LatLng:
    return LatLng(point.latitude, point.longitude)


@router.post("/routes", response_model=RouteResponse, status_code=201)
async def calculate_route(
    body: RouteRequest,
    session: AsyncSession = Depends(get_session),
    client: BaseRoutingClient = Depends(get_routing_client),
):
    svc = RoutingService(session, client)
    return await svc.calculate_route(
        _latlng(body.origin),
        _latlng(body.destination),
        [_latlng(p) for p in body.waypoints],
        assignment_id=body.assignment_id,
    )


@router.get("/routes/{route_id}", response_model=RouteResponse)
async def get_route(
    route_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    client: BaseRoutingClient = Depends(get_routing_client),
):
    return await RoutingService(session, client).get_route(route_id)


@router.get("/routes/{route_id}/eta", response_model=EtaResponse)
async def estimate_eta(
    route_id: uuid.UUID,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    session: AsyncSession = Depends(get_session),
    client: BaseRoutingClient = Depends(get_routing_client),
):
    """Traffic-aware arrival time from the given position to the route's destination."""
    eta = await RoutingService(session, client).estimate_eta(route_id, LatLng(lat, lng))
    return EtaResponse(route_id=route_id, eta=eta)


@router.post("/navigation/sessions", response_model=NavigationSessionResponse, status_code=201)
async def start_navigation(
    body: StartNavigationRequest,
    navigation: NavigationService = Depends(get_navigation_service),
):
    """Start a session; the server polls the driver's reported location until it is stopped."""
    return await navigation.start_navigation(body.route_id, body.delivery_user_id, body.assignment_id)


@router.post("/navigation/sessions/{session_id}/location", response_model=NavigationUpdateResponse)
async def update_location(
    session_id: uuid.UUID,
    body: Point,
    navigation: NavigationService = Depends(get_navigation_service),
):
    return await navigation.update_location(session_id, body.latitude, body.longitude)


@router.get("/navigation/sessions/{session_id}", response_model=NavigationSessionResponse)
async def get_navigation_session(
    session_id: uuid.UUID,
    navigation: NavigationService = Depends(get_navigation_service),
):
    return await navigation.get_session(session_id)


@router.delete("/navigation/sessions/{session_id}", response_model=NavigationSessionResponse)
async def stop_navigation(
    session_id: uuid.UUID,
    navigation: NavigationService = Depends(get_navigation_service),
):
    return await navigation.stop_navigation(session_id)
