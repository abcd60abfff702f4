"""Service layer: order lifecycle, restaurant and delivery handoff, routing, navigation, webhooks."""
from dispatch.services.delivery_handoff_service import DeliveryHandoffService
from dispatch.services.navigation_service import NavigationService
from dispatch.services.notification_service import NotificationService
from dispatch.services.order_service import OrderService
from dispatch.services.restaurant_handoff_service import RestaurantHandoffService
from dispatch.services.routing_service import RoutingService
from dispatch.services.status_webhook_service import StatusWebhookService

__all__ = [
    "OrderService",
    "NotificationService",
    "RestaurantHandoffService",
    "DeliveryHandoffService",
    "RoutingService",
    "NavigationService",
    "StatusWebhookService",
]
