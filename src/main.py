"""Wiring for the pickup ordering service.

Everything is configured from environment variables; the module-level ``app``
is what uvicorn and the Lambda entry point serve.
"""

import logging
import os

from fastapi import FastAPI

from pickup_ordering_service.auth.session_service import AuthService
from pickup_ordering_service.handlers.api_handler import create_app
from pickup_ordering_service.handlers.event_handler import TableChangeHandler
from pickup_ordering_service.observability import configure_logging, setup_observability
from pickup_ordering_service.repositories.table_repositories import (
    DishRepository,
    OrderItemRepository,
    OrderRepository,
    UserRepository,
)
from pickup_ordering_service.services.backend_client import BackendClient
from pickup_ordering_service.services.cart_service import (
    CartService,
    CartStorage,
    InMemoryCartStorage,
    JsonFileCartStorage,
)
from pickup_ordering_service.services.change_notifier import ChangeNotifier
from pickup_ordering_service.services.checkout_service import CheckoutService
from pickup_ordering_service.services.menu_service import MenuService
from pickup_ordering_service.services.order_service import OrderService
from pickup_ordering_service.services.pickup_slots import PickupSchedule

logger = logging.getLogger(__name__)


def create_cart_storage() -> CartStorage:
    """Create cart storage from environment variables.

    Carts are kept in memory unless CART_STORAGE_DIR names a directory for
    JSON cart files.

    Returns:
        Configured cart storage
    """
    directory = os.getenv("CART_STORAGE_DIR")
    if directory:
        logger.info(f"Storing carts as JSON files in {directory}")
        return JsonFileCartStorage(directory)

    logger.info("Storing carts in memory")
    return InMemoryCartStorage()


def create_pickup_schedule() -> PickupSchedule:
    """Create the pickup schedule from the store hours in the environment.

    Raises:
        ValueError: If the configured hours or slot length are invalid
    """
    return PickupSchedule(
        open_time=os.getenv("STORE_OPEN_TIME", "11:00"),
        close_time=os.getenv("STORE_CLOSE_TIME", "22:00"),
        slot_minutes=int(os.getenv("PICKUP_SLOT_MINUTES", "15")),
        timezone=os.getenv("STORE_TIMEZONE", "UTC"),
    )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    All services share one change notifier, so writes made through the API
    and webhook-delivered changes reach the same subscribers.

    Returns:
        Configured FastAPI application instance

    Raises:
        ValueError: If required configuration is missing
    """
    # Configure structured logging
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing pickup ordering service...")

    backend_url = os.getenv("BACKEND_URL")
    backend_api_key = os.getenv("BACKEND_API_KEY")

    if not backend_url or not backend_api_key:
        raise ValueError("BACKEND_URL and BACKEND_API_KEY must be set in environment")

    client = BackendClient(base_url=backend_url, api_key=backend_api_key)
    logger.info(f"Backend client configured - URL: {backend_url}")

    # Create repositories
    user_repository = UserRepository(client)
    dish_repository = DishRepository(client)
    order_repository = OrderRepository(client)
    order_item_repository = OrderItemRepository(client)

    # Create services
    notifier = ChangeNotifier()
    auth_service = AuthService(
        client=client,
        user_repository=user_repository,
        oauth_redirect_url=os.getenv("OAUTH_REDIRECT_URL"),
    )
    menu_service = MenuService(
        dish_repository=dish_repository,
        notifier=notifier,
        popular_limit=int(os.getenv("POPULAR_DISH_LIMIT", "4")),
        cache_seconds=float(os.getenv("MENU_CACHE_SECONDS", "15")),
    )
    cart_service = CartService(storage=create_cart_storage(), menu_service=menu_service)
    schedule = create_pickup_schedule()
    checkout_service = CheckoutService(
        cart_service=cart_service,
        schedule=schedule,
        order_repository=order_repository,
        order_item_repository=order_item_repository,
        notifier=notifier,
    )
    order_service = OrderService(order_repository=order_repository, notifier=notifier)
    change_handler = TableChangeHandler(notifier=notifier)

    logger.info(
        f"Services initialized - store hours {os.getenv('STORE_OPEN_TIME', '11:00')}"
        f"-{os.getenv('STORE_CLOSE_TIME', '22:00')}, {schedule.slot_minutes} minute slots"
    )

    # Get secrets accepted by the change webhook
    secrets_str = os.getenv("WEBHOOK_SECRET", "")
    webhook_secrets = [secret.strip() for secret in secrets_str.split(",") if secret.strip()]

    if not webhook_secrets:
        logger.warning("No WEBHOOK_SECRET configured - using development secret")
        webhook_secrets = ["dummy-secret-for-development"]

    app = create_app(
        auth_service=auth_service,
        menu_service=menu_service,
        cart_service=cart_service,
        checkout_service=checkout_service,
        order_service=order_service,
        change_handler=change_handler,
        webhook_secrets=webhook_secrets,
    )

    if os.getenv("ENABLE_OTEL", "false").lower() == "true":
        setup_observability(app)

    logger.info("Pickup ordering service initialized successfully")

    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
