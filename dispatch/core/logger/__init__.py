"""
Dispatch logger: console + rotating JSON file.

Usage:
    from dispatch.core.logger import configure, LoggerConfig

    # Once at process start (API lifespan); from LOG_* env when called bare
    configure()
    configure(LoggerConfig(level="DEBUG", log_dir="/var/log/dispatch"))

    # In modules
    logger = logging.getLogger(__name__)
    logger.info("Order accepted", extra={"order_id": str(order.id)})
"""
from dispatch.core.logger.config import LoggerConfig
from dispatch.core.logger.formatters import CONTEXT_FIELDS, JsonFormatter, PlainConsoleFormatter
from dispatch.core.logger.setup import (
    build_console_handler,
    build_rotating_file_handler,
    configure,
    get_logger,
)

__all__ = [
    "LoggerConfig",
    "CONTEXT_FIELDS",
    "JsonFormatter",
    "PlainConsoleFormatter",
    "configure",
    "get_logger",
    "build_rotating_file_handler",
    "build_console_handler",
]
