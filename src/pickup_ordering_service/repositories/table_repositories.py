"""Repository classes for the backend tables.

Each repository maps one table (``users``, ``dishes``, ``orders``,
``order_items``) to models. A missing row is an expected outcome and comes
back as None; backend failures propagate as ``BackendError`` so the calling
action can report the backend's message.
"""

from typing import Any

from pickup_ordering_service.models.menu_models import Dish
from pickup_ordering_service.models.order_models import NewOrder, Order, OrderItem, OrderStatus
from pickup_ordering_service.models.user_models import User
from pickup_ordering_service.services.backend_client import BackendClient

ORDER_WITH_DETAILS = "*, order_items(*, dish:dishes(*)), user:users(name, email)"
ORDER_WITH_ITEMS = "*, order_items(*, dish:dishes(*))"


class UserRepository:
    """Repository for ``users`` profile rows."""

    table_name = "users"

    def __init__(self, client: BackendClient) -> None:
        """Initialize repository.

        Args:
            client: Backend client used for table access
        """
        self.client = client

    async def get_user(self, user_id: str) -> User | None:
        """Retrieve a user profile.

        Args:
            user_id: Identity identifier

        Returns:
            User if a profile row exists, None otherwise
        """
        row = await self.client.select_one(self.table_name, filters={"id": user_id})
        return User.from_row(row) if row else None

    async def create_user(self, user: User) -> User:
        """Insert a profile row.

        Args:
            user: Profile to store

        Returns:
            User as stored
        """
        rows = await self.client.insert(self.table_name, [user.to_row()])
        return User.from_row(rows[0]) if rows else user

    async def set_staff(self, user_id: str, is_staff: bool) -> User | None:
        """Grant or revoke staff privilege.

        Returns:
            Updated user, or None if no profile row matched
        """
        rows = await self.client.update(
            self.table_name, {"is_staff": is_staff}, filters={"id": user_id}
        )
        return User.from_row(rows[0]) if rows else None


class DishRepository:
    """Repository for ``dishes`` rows."""

    table_name = "dishes"

    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def list_dishes(self, active_only: bool = False) -> list[Dish]:
        """List dishes ordered by name.

        Args:
            active_only: Only return dishes currently on the menu

        Returns:
            list: Dish objects (empty list if none found)
        """
        filters = {"active": "true"} if active_only else None
        rows = await self.client.select(self.table_name, filters=filters, order_by="name")
        return [Dish(**row) for row in rows]

    async def get_dish(self, dish_id: str) -> Dish | None:
        row = await self.client.select_one(self.table_name, filters={"id": dish_id})
        return Dish(**row) if row else None

    async def create_dish(self, row: dict[str, Any]) -> Dish | None:
        rows = await self.client.insert(self.table_name, [row])
        return Dish(**rows[0]) if rows else None

    async def update_dish(self, dish_id: str, values: dict[str, Any]) -> Dish | None:
        """Update dish columns.

        Args:
            dish_id: Dish identifier
            values: Columns to write

        Returns:
            Updated dish, or None if no row matched
        """
        rows = await self.client.update(self.table_name, values, filters={"id": dish_id})
        return Dish(**rows[0]) if rows else None

    async def set_active(self, dish_id: str, active: bool) -> Dish | None:
        return await self.update_dish(dish_id, {"active": active})


class OrderRepository:
    """Repository for ``orders`` rows."""

    table_name = "orders"

    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def create_order(self, order: NewOrder) -> Order:
        """Insert an order row.

        Args:
            order: Order to write

        Returns:
            Order as stored, with its backend-assigned id
        """
        rows = await self.client.insert(self.table_name, [order.to_row()])
        return Order.from_row(rows[0])

    async def get_order(self, order_id: str) -> Order | None:
        row = await self.client.select_one(
            self.table_name, columns=ORDER_WITH_ITEMS, filters={"id": order_id}
        )
        return Order.from_row(row) if row else None

    async def list_orders(self) -> list[Order]:
        """List every order newest first, with items, dishes and owner details.

        Returns:
            list: Order objects (empty list if none found)
        """
        rows = await self.client.select(
            self.table_name, columns=ORDER_WITH_DETAILS, order_by="created_at", descending=True
        )
        return [Order.from_row(row) for row in rows]

    async def list_orders_for_user(self, user_id: str) -> list[Order]:
        """List a user's own orders newest first.

        Guest orders have a null ``user_id`` and never match.

        Args:
            user_id: Owning user identifier

        Returns:
            list: Order objects (empty list if none found)
        """
        rows = await self.client.select(
            self.table_name,
            columns=ORDER_WITH_ITEMS,
            filters={"user_id": user_id},
            order_by="created_at",
            descending=True,
        )
        return [Order.from_row(row) for row in rows]

    async def update_status(self, order_id: str, status: OrderStatus) -> Order | None:
        """Write a new status.

        Returns:
            Updated order, or None if no row matched
        """
        rows = await self.client.update(
            self.table_name, {"status": status.value}, filters={"id": order_id}
        )
        return Order.from_row(rows[0]) if rows else None

    async def delete_order(self, order_id: str) -> None:
        await self.client.delete(self.table_name, filters={"id": order_id})


class OrderItemRepository:
    """Repository for ``order_items`` rows."""

    table_name = "order_items"

    def __init__(self, client: BackendClient) -> None:
        self.client = client

    async def create_items(self, items: list[OrderItem]) -> None:
        """Insert order lines in a single request.

        Args:
            items: Order lines to write
        """
        if not items:
            return
        await self.client.insert(self.table_name, [item.to_row() for item in items])
