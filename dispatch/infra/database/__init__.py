"""
dispatch.infra.database – PostgreSQL async engine, session, models and repositories.

Public API
──────────
  build_engine, build_session_factory, init_db, close_engine,
  ensure_database_exists
  Base and the order / assignment / driver / navigation models
  BaseRepository and one repository per aggregate
"""
from dispatch.infra.database.engine import (
    build_engine,
    build_session_factory,
    close_engine,
    ensure_database_exists,
    init_db,
)
from dispatch.infra.database.models import (
    Base,
    DeliveryAssignment,
    DriverAvailability,
    NavigationSession,
    Order,
    RestaurantAssignment,
    Route,
)
from dispatch.infra.database.repositories import (
    BaseRepository,
    DeliveryAssignmentRepository,
    DriverRepository,
    NavigationSessionRepository,
    OrderRepository,
    RestaurantAssignmentRepository,
    RouteRepository,
)

__all__ = [
    "build_engine",
    "build_session_factory",
    "init_db",
    "close_engine",
    "ensure_database_exists",
    "Base",
    "Order",
    "RestaurantAssignment",
    "DeliveryAssignment",
    "DriverAvailability",
    "Route",
    "NavigationSession",
    "BaseRepository",
    "OrderRepository",
    "RestaurantAssignmentRepository",
    "DeliveryAssignmentRepository",
    "DriverRepository",
    "RouteRepository",
    "NavigationSessionRepository",
]
