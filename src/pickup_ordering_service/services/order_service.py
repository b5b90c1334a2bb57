"""Order service for customer order tracking and staff fulfilment."""

import io
import logging
from dataclasses import dataclass, field

import qrcode
import qrcode.image.svg

from pickup_ordering_service.models.change_models import ChangeType, TableChange
from pickup_ordering_service.models.order_models import (
    Order,
    OrderStatus,
    StaffMetrics,
    StatusAction,
)
from pickup_ordering_service.models.user_models import User
from pickup_ordering_service.observability.decorators import traced
from pickup_ordering_service.observability.metrics import record_status_change
from pickup_ordering_service.repositories.table_repositories import OrderRepository
from pickup_ordering_service.services.change_notifier import ChangeNotifier
from pickup_ordering_service.services.metrics_service import compute_metrics

logger = logging.getLogger(__name__)

# Buttons shown per status on the staff board. Only a UI affordance:
# update_status accepts any status.
STATUS_ACTIONS: dict[OrderStatus, list[StatusAction]] = {
    OrderStatus.PENDING: [
        StatusAction(label="Start Preparing", status=OrderStatus.PREPARING),
        StatusAction(label="Cancel", status=OrderStatus.CANCELLED),
    ],
    OrderStatus.PREPARING: [
        StatusAction(label="Mark as Ready", status=OrderStatus.READY),
        StatusAction(label="Cancel", status=OrderStatus.CANCELLED),
    ],
    OrderStatus.READY: [
        StatusAction(label="Mark as Delivered", status=OrderStatus.COMPLETED),
    ],
    OrderStatus.COMPLETED: [],
    OrderStatus.CANCELLED: [],
}


def available_actions(status: OrderStatus) -> list[StatusAction]:
    return STATUS_ACTIONS[status]


@dataclass
class OrderBuckets:
    """Orders split into those still in progress and those finished."""

    active: list[Order] = field(default_factory=list)
    finished: list[Order] = field(default_factory=list)


def split_orders(orders: list[Order]) -> OrderBuckets:
    buckets = OrderBuckets()
    for order in orders:
        if order.status.is_active:
            buckets.active.append(order)
        else:
            buckets.finished.append(order)
    return buckets


def render_qr_svg(token: str) -> bytes:
    """Render a QR code token as an SVG document.

    Args:
        token: Text to encode

    Returns:
        SVG bytes
    """
    image = qrcode.make(token, image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    image.save(buffer)
    return buffer.getvalue()


class OrderService:
    """Service for reading orders and changing their status.

    Every read goes to the backend; nothing is cached between requests.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        notifier: ChangeNotifier,
    ) -> None:
        """Initialize the OrderService.

        Args:
            order_repository: Repository for order rows
            notifier: Change hub used to announce status changes
        """
        self.order_repository = order_repository
        self.notifier = notifier

    # Customer views

    async def list_customer_orders(self, user: User) -> OrderBuckets:
        """The signed-in user's own orders as upcoming and past.

        Guest orders carry no user and are never included.

        Args:
            user: Signed-in customer

        Returns:
            OrderBuckets with upcoming orders in ``active``, past in ``finished``
        """
        return split_orders(await self.order_repository.list_orders_for_user(user.id))

    async def get_order_for(self, order_id: str, user: User) -> Order | None:
        """Fetch an order the user may see: their own, or any order for staff.

        Returns:
            The order, or None if it does not exist or belongs to someone else
        """
        order = await self.order_repository.get_order(order_id)
        if order is None:
            return None
        if user.is_staff or order.user_id == user.id:
            return order
        logger.warning(f"User {user.id} requested order {order_id} owned by another user")
        return None

    async def order_qr_svg(self, order_id: str, user: User) -> bytes | None:
        """Render the pickup QR code of an order the user may see.

        Returns:
            SVG bytes, or None if the order is not visible to the user
        """
        order = await self.get_order_for(order_id, user)
        if order is None:
            return None
        return render_qr_svg(order.qr_code)

    # Staff views

    async def staff_board(self) -> OrderBuckets:
        """All orders newest first, split into active and history."""
        return split_orders(await self.order_repository.list_orders())

    async def staff_metrics(self) -> StaffMetrics:
        return compute_metrics(await self.order_repository.list_orders())

    @traced("orders.update_status")
    async def update_status(self, order_id: str, status: OrderStatus) -> Order | None:
        """Set an order's status.

        Any status is accepted; the staff buttons only offer the usual next
        steps.

        Returns:
            The updated order, or None if it does not exist
        """
        order = await self.order_repository.update_status(order_id, status)
        if order is None:
            return None

        logger.info(f"Order {order_id} status updated to {status.value}")
        record_status_change(status.value)
        await self.notifier.publish(
            TableChange(
                table=OrderRepository.table_name,
                event_type=ChangeType.UPDATE,
                record={"id": order_id, "status": status.value},
            )
        )
        return order
