"""Repositories for the dispatch database."""
from dispatch.infra.database.repositories.assignment import (
    DeliveryAssignmentRepository,
    RestaurantAssignmentRepository,
)
from dispatch.infra.database.repositories.base import BaseRepository
from dispatch.infra.database.repositories.driver import DriverRepository
from dispatch.infra.database.repositories.history import (
    DeliveryHistoryRepository,
    RestaurantHistoryRepository,
)
from dispatch.infra.database.repositories.navigation import (
    NavigationSessionRepository,
    RouteRepository,
)
from dispatch.infra.database.repositories.notification import NotificationRepository
from dispatch.infra.database.repositories.order import OrderRepository
from dispatch.infra.database.repositories.restaurant import RestaurantRepository

__all__ = [
    "BaseRepository",
    "OrderRepository",
    "RestaurantRepository",
    "RestaurantAssignmentRepository",
    "DeliveryAssignmentRepository",
    "RestaurantHistoryRepository",
    "DeliveryHistoryRepository",
    "DriverRepository",
    "RouteRepository",
    "NavigationSessionRepository",
    "NotificationRepository",
]
