"""
dispatch.infra.database.models – SQLAlchemy 2.0 ORM models.

Exports Base, mixins, and all model classes.
"""
from dispatch.infra.database.models.assignment import DeliveryAssignment, RestaurantAssignment
from dispatch.infra.database.models.base import Base, TimestampMixin, _uuid_pk
from dispatch.infra.database.models.driver import DeliveryUser, DriverAvailability
from dispatch.infra.database.models.history import (
    DeliveryAssignmentHistory,
    RestaurantAssignmentHistory,
)
from dispatch.infra.database.models.navigation import NavigationSession, Route, RouteSegment
from dispatch.infra.database.models.notification import OrderNotification
from dispatch.infra.database.models.order import Order, OrderItem
from dispatch.infra.database.models.restaurant import Restaurant

__all__ = [
    "Base",
    "TimestampMixin",
    "_uuid_pk",
    "Restaurant",
    "Order",
    "OrderItem",
    "RestaurantAssignment",
    "DeliveryAssignment",
    "RestaurantAssignmentHistory",
    "DeliveryAssignmentHistory",
    "DeliveryUser",
    "DriverAvailability",
    "Route",
    "RouteSegment",
    "NavigationSession",
    "OrderNotification",
]
