"""Handler for database change webhook events."""

import logging
from typing import Any

from pydantic import ValidationError

from pickup_ordering_service.models.change_models import TableChange
from pickup_ordering_service.services.change_notifier import ChangeNotifier

logger = logging.getLogger(__name__)

WATCHED_TABLES = frozenset({"users", "dishes", "orders", "order_items"})


def parse_change_event(payload: dict[str, Any]) -> TableChange | None:
    """Parse a database webhook payload into a TableChange.

    Args:
        payload: Raw webhook JSON body

    Returns:
        TableChange if parsing succeeds, None otherwise
    """
    try:
        return TableChange.model_validate(payload)
    except (ValidationError, TypeError) as e:
        logger.error(f"Failed to parse change event: {e}")
        return None


class TableChangeHandler:
    """Routes table change events from the backend to local subscribers.

    Subscribers refetch their whole view on any change, so the event contents
    are only used for routing and logging.
    """

    def __init__(self, notifier: ChangeNotifier) -> None:
        """Initialize the handler.

        Args:
            notifier: Change hub that fans events out to subscribers
        """
        self.notifier = notifier

    async def handle_change(self, change: TableChange) -> bool:
        """Deliver a change to the subscribers of its table.

        Args:
            change: The parsed change

        Returns:
            True if the table is watched and the change was delivered, False otherwise
        """
        if change.table not in WATCHED_TABLES:
            logger.warning(f"Ignoring change on unwatched table {change.table}")
            return False

        logger.info(f"Processing {change.event_type.value} on {change.table}")
        await self.notifier.publish(change)
        return True

    async def handle_webhook(self, payload: dict[str, Any]) -> tuple[int, str]:
        """Process a raw webhook body.

        Args:
            payload: Raw webhook JSON body

        Returns:
            Tuple of (HTTP status code, message)
        """
        change = parse_change_event(payload)
        if change is None:
            return (400, "Invalid change event format")

        if await self.handle_change(change):
            return (200, f"Processed {change.event_type.value} on {change.table}")
        return (202, f"Ignored change on {change.table}")
