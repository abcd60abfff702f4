"""FastAPI dependency providers."""
from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.clients.routing.base import BaseRoutingClient
from dispatch.config import DispatchConfig, WebhookConfig
from dispatch.services.navigation_service import NavigationService


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a transactional AsyncSession from the app-level session factory."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_dispatch_config(request: Request) -> DispatchConfig:
    return request.app.state.dispatch_config


def get_webhook_config(request: Request) -> WebhookConfig:
    return request.app.state.webhook_config


def get_routing_client(request: Request) -> BaseRoutingClient:
    return request.app.state.routing_client


def get_navigation_service(request: Request) -> NavigationService:
    """The process-wide NavigationService; it owns the polling tasks."""
    return request.app.state.navigation
