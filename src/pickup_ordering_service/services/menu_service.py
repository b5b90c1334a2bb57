"""Menu service for the customer menu and staff menu management."""

import logging
import time

from pickup_ordering_service.models.change_models import ChangeType, TableChange
from pickup_ordering_service.models.menu_models import Dish, DishCategory, DishCreate, DishUpdate
from pickup_ordering_service.observability.decorators import traced
from pickup_ordering_service.observability.metrics import record_dish_change
from pickup_ordering_service.repositories.table_repositories import DishRepository
from pickup_ordering_service.services.change_notifier import ChangeNotifier

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"


class MenuService:
    """Service for browsing and editing dishes.

    Menu listings are served from a snapshot of the ``dishes`` table that is
    refetched in full once it is ``cache_seconds`` old, or as soon as a
    ``dishes`` change is published. Single-dish lookups for the cart always
    read the current row.
    """

    def __init__(
        self,
        dish_repository: DishRepository,
        notifier: ChangeNotifier,
        popular_limit: int = 4,
        cache_seconds: float = 15.0,
    ) -> None:
        """Initialize the MenuService.

        Args:
            dish_repository: Repository for dish rows
            notifier: Change hub used to watch and announce dish changes
            popular_limit: Number of dishes shown as popular
            cache_seconds: Maximum age of the menu snapshot; 0 refetches on every read
        """
        self.dish_repository = dish_repository
        self.notifier = notifier
        self.popular_limit = popular_limit
        self.cache_seconds = cache_seconds
        self._dishes: list[Dish] | None = None
        self._fetched_at = 0.0
        self._subscription = notifier.subscribe(DishRepository.table_name, self._on_dishes_changed)

    async def _on_dishes_changed(self, change: TableChange) -> None:
        logger.info(f"Dish {change.event_type.value} received, refreshing menu")
        await self.refresh()

    async def refresh(self) -> list[Dish]:
        self._dishes = await self.dish_repository.list_dishes()
        self._fetched_at = time.monotonic()
        return self._dishes

    async def _all_dishes(self) -> list[Dish]:
        if self._dishes is None or time.monotonic() - self._fetched_at >= self.cache_seconds:
            return await self.refresh()
        return self._dishes

    def close(self) -> None:
        self._subscription.unsubscribe()

    @staticmethod
    def categories() -> list[dict[str, str]]:
        """Menu tabs, starting with the catch-all tab."""
        return [{"id": ALL_CATEGORIES, "name": "All"}] + [
            {"id": category.value, "name": category.display_name} for category in DishCategory
        ]

    async def list_menu(self, category: str = ALL_CATEGORIES, search: str = "") -> list[Dish]:
        """List active dishes filtered by category tab and search text.

        Args:
            category: Category id, or "all"
            search: Case-insensitive text matched against name and description

        Returns:
            Matching active dishes ordered by name
        """
        dishes = [dish for dish in await self._all_dishes() if dish.active]
        if category != ALL_CATEGORIES:
            dishes = [dish for dish in dishes if dish.category == category]
        return [dish for dish in dishes if dish.matches(search)]

    async def popular_dishes(self) -> list[Dish]:
        dishes = [dish for dish in await self._all_dishes() if dish.active]
        return dishes[: self.popular_limit]

    async def get_menu_dish(self, dish_id: str) -> Dish | None:
        """Find an active dish by id.

        Returns:
            The dish, or None if it is unknown or not on the menu
        """
        dish = await self.dish_repository.get_dish(dish_id)
        if dish is None or not dish.active:
            return None
        return dish

    # Staff menu management

    async def list_all_dishes(self) -> list[Dish]:
        """All dishes including inactive ones, fetched fresh for staff."""
        return await self.refresh()

    async def _announce(self, dish: Dish, change_type: ChangeType) -> None:
        record_dish_change(change_type.value.lower())
        await self.notifier.publish(
            TableChange(
                table=DishRepository.table_name,
                event_type=change_type,
                record=dish.model_dump(mode="json"),
            )
        )

    @traced("menu.create_dish")
    async def create_dish(self, payload: DishCreate) -> Dish | None:
        """Add a dish to the menu. New dishes are active.

        Returns:
            The created dish, or None if the backend returned no row
        """
        dish = await self.dish_repository.create_dish(payload.to_row())
        if dish is not None:
            logger.info(f"Dish {dish.id} ({dish.name}) added to the menu")
            await self._announce(dish, ChangeType.INSERT)
        return dish

    @traced("menu.update_dish")
    async def update_dish(self, dish_id: str, payload: DishUpdate) -> Dish | None:
        """Edit a dish.

        Returns:
            The updated dish, or None if it does not exist
        """
        values = payload.to_row()
        if not values:
            return await self.dish_repository.get_dish(dish_id)

        dish = await self.dish_repository.update_dish(dish_id, values)
        if dish is not None:
            logger.info(f"Dish {dish_id} updated")
            await self._announce(dish, ChangeType.UPDATE)
        return dish

    @traced("menu.toggle_dish")
    async def toggle_active(self, dish_id: str) -> Dish | None:
        """Flip whether a dish is on the menu.

        Returns:
            The updated dish, or None if it does not exist
        """
        current = await self.dish_repository.get_dish(dish_id)
        if current is None:
            return None

        dish = await self.dish_repository.set_active(dish_id, not current.active)
        if dish is not None:
            logger.info(f"Dish {dish_id} active={dish.active}")
            await self._announce(dish, ChangeType.UPDATE)
        return dish
