"""FastAPI application for the customer site and the staff dashboard."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Union

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from pickup_ordering_service.auth.api_dependencies import (
    get_bearer_token,
    get_current_user,
    get_optional_user,
    get_staff_user,
    verify_webhook_secret,
)
from pickup_ordering_service.auth.secret_validator import SharedSecretValidator
from pickup_ordering_service.auth.session_service import AuthService
from pickup_ordering_service.handlers.event_handler import TableChangeHandler
from pickup_ordering_service.models.cart_models import CartSummary
from pickup_ordering_service.models.menu_models import Dish, DishCreate, DishUpdate
from pickup_ordering_service.models.order_models import (
    Order,
    OrderStatus,
    PickupSlot,
    StaffMetrics,
    StatusAction,
)
from pickup_ordering_service.models.user_models import AuthSession, User
from pickup_ordering_service.services.backend_client import BackendError
from pickup_ordering_service.services.cart_service import (
    CartError,
    CartService,
    CartStorageError,
    new_cart_id,
)
from pickup_ordering_service.services.checkout_service import (
    CheckoutDetails,
    CheckoutError,
    CheckoutService,
    OrderReview,
)
from pickup_ordering_service.services.menu_service import MenuService
from pickup_ordering_service.services.order_service import (
    OrderBuckets,
    OrderService,
    available_actions,
)

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class Notification(BaseModel):
    """Transient notification shown to the user after an action."""

    title: str
    description: str | None = None


class SignUpRequest(BaseModel):
    email: str
    password: str
    name: str
    phone: str = ""


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpResponse(BaseModel):
    user: User
    notification: Notification


class SignInResponse(BaseModel):
    session: AuthSession
    notification: Notification


class OAuthResponse(BaseModel):
    url: str


class CategoryResponse(BaseModel):
    id: str
    name: str


class AddToCartRequest(BaseModel):
    dish_id: str


class UpdateQuantityRequest(BaseModel):
    quantity: int


class OrderView(BaseModel):
    """An order with its display status and the staff actions it offers."""

    order: Order
    status_label: str
    customer_name: str
    actions: list[StatusAction] = Field(default_factory=list)


class CustomerOrdersResponse(BaseModel):
    upcoming: list[OrderView]
    past: list[OrderView]


class StaffOrdersResponse(BaseModel):
    active: list[OrderView]
    history: list[OrderView]


class PlaceOrderResponse(BaseModel):
    order: Order
    notification: Notification


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class StatusUpdateResponse(BaseModel):
    order: Order
    notification: Notification


class DishResponse(BaseModel):
    dish: Dish
    notification: Notification


class StaffFlagRequest(BaseModel):
    is_staff: bool


class StaffDashboardResponse(BaseModel):
    user: User
    orders: StaffOrdersResponse
    dishes: list[Dish]
    metrics: StaffMetrics


def action_failed(title: str, error: Exception) -> HTTPException:
    """Turn an action error into a notification-style HTTP error.

    Client errors reported by the backend keep their status code; anything
    else is reported as a bad gateway.

    Args:
        title: Notification title for the failed action
        error: The caught error, whose message is passed through

    Returns:
        HTTPException to raise
    """
    status_code = 502
    if isinstance(error, BackendError) and error.status_code and 400 <= error.status_code < 500:
        status_code = error.status_code
    elif isinstance(error, (CartError, CheckoutError)):
        status_code = 400
    return HTTPException(status_code=status_code, detail={"title": title, "description": str(error)})


def order_view(order: Order, staff: bool = False) -> OrderView:
    return OrderView(
        order=order,
        status_label=order.status.label,
        customer_name=order.customer_name,
        actions=available_actions(order.status) if staff else [],
    )


def staff_orders_response(buckets: OrderBuckets) -> StaffOrdersResponse:
    return StaffOrdersResponse(
        active=[order_view(order, staff=True) for order in buckets.active],
        history=[order_view(order, staff=True) for order in buckets.finished],
    )


def create_app(
    auth_service: AuthService,
    menu_service: MenuService,
    cart_service: CartService,
    checkout_service: CheckoutService,
    order_service: OrderService,
    change_handler: TableChangeHandler,
    webhook_secrets: list[str],
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        auth_service: Service for sessions and users
        menu_service: Service for the menu and dish management
        cart_service: Service for client carts
        checkout_service: Service for pickup details and order placement
        order_service: Service for order tracking and fulfilment
        change_handler: Handler for database change webhook events
        webhook_secrets: Accepted secrets for the change webhook

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        # Drop change subscriptions on shutdown
        menu_service.close()
        logger.info("Change subscriptions closed")

    app = FastAPI(
        title="Restaurant Pickup Ordering API",
        description="Menu, cart, checkout, order tracking and staff dashboard for pickup orders",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Store services in app state for access in route handlers
    app.state.auth_service = auth_service
    app.state.menu_service = menu_service
    app.state.cart_service = cart_service
    app.state.checkout_service = checkout_service
    app.state.order_service = order_service
    app.state.change_handler = change_handler
    app.state.webhook_validator = SharedSecretValidator(secrets=webhook_secrets)

    def cart_id_header(x_cart_id: str | None = Header(None)) -> str:
        """Dependency resolving the client's cart id, minting one when absent."""
        cart_id = x_cart_id or new_cart_id()
        try:
            return CartService.validate_cart_id(cart_id)
        except CartError as e:
            raise action_failed("Cart unavailable", e) from e

    def validate_webhook_secret(x_webhook_secret: str | None = Header(None)) -> str:
        """Dependency to validate the webhook secret."""
        return verify_webhook_secret(
            x_webhook_secret=x_webhook_secret, validator=app.state.webhook_validator
        )

    def cart_response(response: Response, cart_id: str, summary: CartSummary) -> CartSummary:
        response.headers["X-Cart-Id"] = cart_id
        return summary

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    @app.get("/", tags=["Health"])
    async def index() -> dict[str, str]:
        """Entry point listing the main sections of the site."""
        return {"menu": "/menu", "cart": "/cart", "orders": "/orders", "staff": "/staff"}

    # Authentication

    @app.post("/auth/sign-up", response_model=SignUpResponse, status_code=201, tags=["Auth"])
    async def sign_up(payload: SignUpRequest) -> SignUpResponse:
        try:
            user = await app.state.auth_service.sign_up(
                payload.email, payload.password, payload.name, payload.phone
            )
        except BackendError as e:
            logger.error(f"Error signing up: {e}")
            raise action_failed("Registration failed", e) from e

        return SignUpResponse(
            user=user,
            notification=Notification(
                title="Registration successful", description="Your account has been created."
            ),
        )

    @app.post("/auth/sign-in", response_model=SignInResponse, tags=["Auth"])
    async def sign_in(payload: SignInRequest) -> SignInResponse:
        try:
            session = await app.state.auth_service.sign_in(payload.email, payload.password)
        except BackendError as e:
            logger.error(f"Error signing in: {e}")
            raise action_failed("Login failed", e) from e

        return SignInResponse(
            session=session,
            notification=Notification(
                title="Welcome back!", description="You have successfully logged in."
            ),
        )

    @app.get("/auth/oauth/{provider}", response_model=OAuthResponse, tags=["Auth"])
    async def oauth_sign_in(provider: str) -> OAuthResponse:
        """Authorize URL the browser should open to sign in with a provider."""
        return OAuthResponse(url=app.state.auth_service.oauth_url(provider))

    @app.post("/auth/sign-out", response_model=Notification, tags=["Auth"])
    async def sign_out(authorization: str | None = Header(None)) -> Notification:
        token = get_bearer_token(authorization)
        if token is None:
            raise HTTPException(status_code=401, detail="Sign in required")

        try:
            await app.state.auth_service.sign_out(token)
        except BackendError as e:
            logger.error(f"Error signing out: {e}")
            raise HTTPException(
                status_code=502,
                detail={"title": "Error", "description": "Failed to log out. Please try again."},
            ) from e

        return Notification(title="Logged out", description="You have been successfully logged out.")

    @app.get("/auth/me", response_model=User, tags=["Auth"])
    async def current_user(user: User = Depends(get_current_user)) -> User:
        return user

    # Menu

    @app.get("/menu", response_model=list[Dish], tags=["Menu"])
    async def list_menu(category: str = "all", search: str = "") -> list[Dish]:
        try:
            dishes: list[Dish] = await app.state.menu_service.list_menu(category=category, search=search)
        except BackendError as e:
            raise action_failed("Could not load the menu", e) from e
        return dishes

    @app.get("/menu/categories", response_model=list[CategoryResponse], tags=["Menu"])
    async def list_categories() -> list[dict[str, str]]:
        return MenuService.categories()

    @app.get("/menu/popular", response_model=list[Dish], tags=["Menu"])
    async def popular_dishes() -> list[Dish]:
        try:
            dishes: list[Dish] = await app.state.menu_service.popular_dishes()
        except BackendError as e:
            raise action_failed("Could not load popular dishes", e) from e
        return dishes

    # Cart

    @app.get("/cart", response_model=CartSummary, tags=["Cart"])
    async def get_cart(response: Response, cart_id: str = Depends(cart_id_header)) -> CartSummary:
        try:
            cart = app.state.cart_service.get_cart(cart_id)
        except CartStorageError as e:
            raise action_failed("Could not load cart", e) from e
        return cart_response(response, cart_id, CartSummary.from_cart(cart_id, cart))

    @app.post("/cart/items", response_model=CartSummary, tags=["Cart"])
    async def add_to_cart(
        payload: AddToCartRequest,
        response: Response,
        cart_id: str = Depends(cart_id_header),
    ) -> CartSummary:
        try:
            cart = await app.state.cart_service.add_item(cart_id, payload.dish_id)
        except (CartError, CartStorageError, BackendError) as e:
            raise action_failed("Could not add to cart", e) from e
        return cart_response(response, cart_id, CartSummary.from_cart(cart_id, cart))

    @app.patch("/cart/items/{dish_id}", response_model=CartSummary, tags=["Cart"])
    async def update_cart_quantity(
        dish_id: str,
        payload: UpdateQuantityRequest,
        response: Response,
        cart_id: str = Depends(cart_id_header),
    ) -> CartSummary:
        try:
            cart = app.state.cart_service.update_quantity(cart_id, dish_id, payload.quantity)
        except CartStorageError as e:
            raise action_failed("Could not update cart", e) from e
        return cart_response(response, cart_id, CartSummary.from_cart(cart_id, cart))

    @app.delete("/cart/items/{dish_id}", response_model=CartSummary, tags=["Cart"])
    async def remove_from_cart(
        dish_id: str,
        response: Response,
        cart_id: str = Depends(cart_id_header),
    ) -> CartSummary:
        try:
            cart = app.state.cart_service.remove_item(cart_id, dish_id)
        except CartStorageError as e:
            raise action_failed("Could not update cart", e) from e
        return cart_response(response, cart_id, CartSummary.from_cart(cart_id, cart))

    @app.delete("/cart", response_model=CartSummary, tags=["Cart"])
    async def clear_cart(response: Response, cart_id: str = Depends(cart_id_header)) -> CartSummary:
        try:
            cart = app.state.cart_service.clear(cart_id)
        except CartStorageError as e:
            raise action_failed("Could not clear cart", e) from e
        return cart_response(response, cart_id, CartSummary.from_cart(cart_id, cart))

    # Checkout

    @app.get("/checkout/pickup-slots", response_model=list[PickupSlot], tags=["Checkout"])
    async def pickup_slots() -> list[PickupSlot]:
        slots: list[PickupSlot] = app.state.checkout_service.pickup_slots()
        return slots

    @app.post("/checkout/review", response_model=OrderReview, tags=["Checkout"])
    async def review_order(
        details: CheckoutDetails, cart_id: str = Depends(cart_id_header)
    ) -> OrderReview:
        try:
            review: OrderReview = app.state.checkout_service.review(cart_id, details)
        except CheckoutError as e:
            raise action_failed(str(e), e) from e
        except CartStorageError as e:
            raise action_failed("Could not load cart", e) from e
        return review

    @app.post("/checkout/orders", response_model=PlaceOrderResponse, status_code=201, tags=["Checkout"])
    async def place_order(
        details: CheckoutDetails,
        response: Response,
        cart_id: str = Depends(cart_id_header),
        user: User | None = Depends(get_optional_user),
    ) -> PlaceOrderResponse:
        try:
            placed = await app.state.checkout_service.place_order(cart_id, details, user)
        except CheckoutError as e:
            raise action_failed(str(e), e) from e
        except (BackendError, CartStorageError) as e:
            logger.error(f"Error placing order: {e}")
            raise action_failed("Error placing order", e) from e

        response.headers["X-Cart-Id"] = cart_id
        return PlaceOrderResponse(
            order=placed.order,
            notification=Notification(title="Order placed successfully!", description=placed.message),
        )

    # Customer orders

    @app.get("/orders", response_model=CustomerOrdersResponse, tags=["Orders"])
    async def list_orders(user: User = Depends(get_current_user)) -> CustomerOrdersResponse:
        try:
            buckets = await app.state.order_service.list_customer_orders(user)
        except BackendError as e:
            raise action_failed("Could not load orders", e) from e

        return CustomerOrdersResponse(
            upcoming=[order_view(order) for order in buckets.active],
            past=[order_view(order) for order in buckets.finished],
        )

    @app.get("/orders/{order_id}/qr", tags=["Orders"])
    async def order_qr_code(order_id: str, user: User = Depends(get_current_user)) -> Response:
        """Pickup QR code of an order as an SVG image."""
        try:
            svg = await app.state.order_service.order_qr_svg(order_id, user)
        except BackendError as e:
            raise action_failed("Could not load the QR code", e) from e

        if svg is None:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
        return Response(content=svg, media_type="image/svg+xml")

    # Staff dashboard

    @app.get("/staff", response_model=StaffDashboardResponse, tags=["Staff"])
    async def staff_dashboard(
        user: User | None = Depends(get_optional_user),
    ) -> Union[StaffDashboardResponse, RedirectResponse]:
        """Staff dashboard. Anyone who is not signed-in staff is sent home."""
        if user is None or not user.is_staff:
            logger.warning(f"Access denied to staff dashboard for {user.id if user else 'guest'}")
            return RedirectResponse(url="/", status_code=303)

        try:
            buckets = await app.state.order_service.staff_board()
            dishes = await app.state.menu_service.list_all_dishes()
            metrics = await app.state.order_service.staff_metrics()
        except BackendError as e:
            raise action_failed("Could not load the dashboard", e) from e

        return StaffDashboardResponse(
            user=user, orders=staff_orders_response(buckets), dishes=dishes, metrics=metrics
        )

    @app.get("/staff/orders", response_model=StaffOrdersResponse, tags=["Staff"])
    async def staff_orders(_staff: User = Depends(get_staff_user)) -> StaffOrdersResponse:
        try:
            buckets = await app.state.order_service.staff_board()
        except BackendError as e:
            raise action_failed("Could not load orders. Please try again.", e) from e
        return staff_orders_response(buckets)

    @app.post("/staff/orders/{order_id}/status", response_model=StatusUpdateResponse, tags=["Staff"])
    async def update_order_status(
        order_id: str,
        payload: StatusUpdateRequest,
        _staff: User = Depends(get_staff_user),
    ) -> StatusUpdateResponse:
        try:
            order = await app.state.order_service.update_status(order_id, payload.status)
        except BackendError as e:
            logger.error(f"Error updating order status: {e}")
            raise action_failed("Could not update order status. Please try again.", e) from e

        if order is None:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        return StatusUpdateResponse(
            order=order,
            notification=Notification(
                title="Status Updated",
                description=f"Order status has been updated to {payload.status.value}.",
            ),
        )

    @app.get("/staff/metrics", response_model=StaffMetrics, tags=["Staff"])
    async def staff_metrics(_staff: User = Depends(get_staff_user)) -> StaffMetrics:
        try:
            metrics: StaffMetrics = await app.state.order_service.staff_metrics()
        except BackendError as e:
            raise action_failed("Could not load metrics", e) from e
        return metrics

    @app.get("/staff/dishes", response_model=list[Dish], tags=["Staff"])
    async def staff_dishes(_staff: User = Depends(get_staff_user)) -> list[Dish]:
        try:
            dishes: list[Dish] = await app.state.menu_service.list_all_dishes()
        except BackendError as e:
            raise action_failed("Could not load dishes. Please try again.", e) from e
        return dishes

    @app.post("/staff/dishes", response_model=DishResponse, status_code=201, tags=["Staff"])
    async def create_dish(
        payload: DishCreate, _staff: User = Depends(get_staff_user)
    ) -> DishResponse:
        try:
            dish = await app.state.menu_service.create_dish(payload)
        except BackendError as e:
            logger.error(f"Error saving dish: {e}")
            raise action_failed("Could not save dish. Please try again.", e) from e

        if dish is None:
            raise HTTPException(status_code=502, detail="Dish was not saved")

        return DishResponse(
            dish=dish,
            notification=Notification(
                title="Dish Added", description=f'The dish "{dish.name}" has been added to the menu.'
            ),
        )

    @app.put("/staff/dishes/{dish_id}", response_model=DishResponse, tags=["Staff"])
    async def update_dish(
        dish_id: str, payload: DishUpdate, _staff: User = Depends(get_staff_user)
    ) -> DishResponse:
        try:
            dish = await app.state.menu_service.update_dish(dish_id, payload)
        except BackendError as e:
            logger.error(f"Error saving dish: {e}")
            raise action_failed("Could not save dish. Please try again.", e) from e

        if dish is None:
            raise HTTPException(status_code=404, detail=f"Dish {dish_id} not found")

        return DishResponse(
            dish=dish,
            notification=Notification(
                title="Dish Updated", description=f'The dish "{dish.name}" has been updated.'
            ),
        )

    @app.post("/staff/dishes/{dish_id}/toggle-active", response_model=DishResponse, tags=["Staff"])
    async def toggle_dish(dish_id: str, _staff: User = Depends(get_staff_user)) -> DishResponse:
        try:
            dish = await app.state.menu_service.toggle_active(dish_id)
        except BackendError as e:
            logger.error(f"Error toggling dish active status: {e}")
            raise action_failed("Could not update dish status. Please try again.", e) from e

        if dish is None:
            raise HTTPException(status_code=404, detail=f"Dish {dish_id} not found")

        if dish.active:
            notification = Notification(
                title="Dish Activated", description=f'The dish "{dish.name}" has been added to the menu.'
            )
        else:
            notification = Notification(
                title="Dish Deactivated",
                description=f'The dish "{dish.name}" has been removed from the menu.',
            )
        return DishResponse(dish=dish, notification=notification)

    @app.put("/staff/users/{user_id}/staff", response_model=User, tags=["Staff"])
    async def set_staff_flag(
        user_id: str, payload: StaffFlagRequest, _staff: User = Depends(get_staff_user)
    ) -> User:
        """Grant or revoke staff access for a user."""
        try:
            user = await app.state.auth_service.set_staff(user_id, payload.is_staff)
        except BackendError as e:
            raise action_failed("Could not update staff access", e) from e

        if user is None:
            raise HTTPException(status_code=404, detail=f"User {user_id} not found")
        return user

    # Change notifications

    @app.post("/webhooks/table-changes", tags=["Realtime"])
    async def table_change_webhook(
        payload: dict[str, Any],
        _secret: str = Depends(validate_webhook_secret),
    ) -> JSONResponse:
        """Receive a database change event and refresh affected views."""
        try:
            status_code, message = await app.state.change_handler.handle_webhook(payload)
        except BackendError as e:
            logger.error(f"Refresh after change event failed: {e}")
            raise action_failed("Refresh failed", e) from e
        return JSONResponse(status_code=status_code, content={"message": message})

    return app
