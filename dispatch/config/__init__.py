"""
Dispatch config: frozen dataclasses loaded from env.

load_postgres_config(), load_dispatch_config(), load_routing_config(),
load_webhook_config().
"""
from dispatch.config.dispatch import DispatchConfig, load_dispatch_config
from dispatch.config.postgres import PostgresConfig, load_postgres_config
from dispatch.config.routing import RoutingConfig, load_routing_config
from dispatch.config.webhook import WebhookConfig, load_webhook_config

__all__ = [
    "PostgresConfig",
    "load_postgres_config",
    "DispatchConfig",
    "load_dispatch_config",
    "RoutingConfig",
    "load_routing_config",
    "WebhookConfig",
    "load_webhook_config",
]
