"""Pickup time slot generation from the store's opening hours."""

import logging
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from pickup_ordering_service.models.order_models import PickupSlot

logger = logging.getLogger(__name__)


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` clock time.

    Raises:
        ValueError: If the value is not a valid 24-hour time
    """
    return datetime.strptime(value.strip(), "%H:%M").time()


def format_slot_label(moment: datetime) -> str:
    """12-hour label without a leading zero, e.g. ``6:30 PM``."""
    return moment.strftime("%I:%M %p").lstrip("0")


class PickupSchedule:
    """Computes the pickup slots still available for ordering.

    Slots start at the current time rounded up to the next slot boundary
    (never before opening), repeat every ``slot_minutes`` and stop before
    closing. Once the store is closed for the day the slots of the next
    day's opening hours are offered instead.
    """

    def __init__(
        self,
        open_time: str = "11:00",
        close_time: str = "22:00",
        slot_minutes: int = 15,
        timezone: str = "UTC",
    ) -> None:
        """Initialize the schedule.

        Args:
            open_time: Opening time as HH:MM
            close_time: Closing time as HH:MM, later than open_time
            slot_minutes: Slot granularity in minutes, a divisor of 60
            timezone: IANA timezone the store hours are expressed in

        Raises:
            ValueError: If the hours or granularity are invalid
        """
        self.open_time = parse_clock(open_time)
        self.close_time = parse_clock(close_time)
        if self.close_time <= self.open_time:
            raise ValueError("Closing time must be after opening time")
        if slot_minutes <= 0 or 60 % slot_minutes != 0:
            raise ValueError("Slot length must be a positive divisor of 60 minutes")

        self.slot_minutes = slot_minutes
        self.tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def round_up(self, moment: datetime) -> datetime:
        """Round a moment up to the next slot boundary.

        Any seconds past a boundary count, so 12:15:30 rounds to 12:30.
        """
        floor = moment.replace(
            minute=moment.minute - moment.minute % self.slot_minutes, second=0, microsecond=0
        )
        if floor == moment:
            return floor
        return floor + timedelta(minutes=self.slot_minutes)

    def available_slots(self, now: datetime | None = None) -> list[PickupSlot]:
        """List the pickup slots that can still be chosen.

        Args:
            now: Current time (defaults to the store-local clock); naive values
                are taken as store-local

        Returns:
            Strictly increasing slots, each before closing time
        """
        current = now or self.now()
        if current.tzinfo is None:
            current = current.replace(tzinfo=self.tz)
        else:
            current = current.astimezone(self.tz)

        day = current.date()
        opening = datetime.combine(day, self.open_time, tzinfo=self.tz)
        closing = datetime.combine(day, self.close_time, tzinfo=self.tz)

        start = self.round_up(max(current, opening))
        if start >= closing:
            opening += timedelta(days=1)
            closing += timedelta(days=1)
            start = self.round_up(opening)

        slots: list[PickupSlot] = []
        slot = start
        while slot < closing:
            slots.append(
                PickupSlot(value=slot.strftime("%H:%M"), label=format_slot_label(slot), starts_at=slot)
            )
            slot += timedelta(minutes=self.slot_minutes)
        return slots

    def resolve(self, value: str, now: datetime | None = None) -> PickupSlot | None:
        """Find the available slot for a submitted ``HH:MM`` value.

        Returns:
            The matching slot, or None if the value is not currently offered
        """
        for slot in self.available_slots(now):
            if slot.value == value:
                return slot
        logger.debug(f"Pickup time {value} is not an available slot")
        return None
