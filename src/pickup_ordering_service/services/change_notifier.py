"""In-process publish/subscribe hub for table change notifications."""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from pickup_ordering_service.models.change_models import TableChange

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[TableChange], Awaitable[None]]


class Subscription:
    """Handle returned by ``ChangeNotifier.subscribe``."""

    def __init__(self, notifier: "ChangeNotifier", table: str, callback: ChangeCallback) -> None:
        self.notifier = notifier
        self.table = table
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.notifier._remove(self)
            self.active = False


class ChangeNotifier:
    """Fans table changes out to subscribers of that table.

    Subscribers react by refetching their full view; a failing subscriber is
    logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(self, table: str, callback: ChangeCallback) -> Subscription:
        """Register a callback for changes on a table.

        Args:
            table: Table name (e.g., "dishes")
            callback: Async callable invoked with each change

        Returns:
            Subscription that can be cancelled with ``unsubscribe()``
        """
        subscription = Subscription(self, table, callback)
        self._subscriptions[table].append(subscription)
        logger.debug(f"Subscribed to changes on {table}")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions.get(subscription.table, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    def subscriber_count(self, table: str) -> int:
        return len(self._subscriptions.get(table, []))

    async def publish(self, change: TableChange) -> int:
        """Deliver a change to every subscriber of its table.

        Args:
            change: The row change

        Returns:
            Number of subscribers that handled the change without error
        """
        delivered = 0
        for subscription in list(self._subscriptions.get(change.table, [])):
            try:
                await subscription.callback(change)
                delivered += 1
            except Exception as e:
                logger.error(f"Change subscriber for {change.table} failed: {e}")
        logger.info(
            f"Delivered {change.event_type.value} change on {change.table} to {delivered} subscriber(s)"
        )
        return delivered

    def close(self) -> None:
        """Cancel every subscription."""
        for subscribers in list(self._subscriptions.values()):
            for subscription in list(subscribers):
                subscription.unsubscribe()
