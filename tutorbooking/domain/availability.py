"""
Slot generation and slot status classification.

Pure domain logic: every method is a deterministic function of the injected
policy and its arguments, with no I/O and no shared mutable state.
"""

from datetime import date, datetime
from typing import Iterable, List, Union

import pendulum
from pendulum import DateTime

from .models import (
    Appointment,
    BusinessHoursPolicy,
    SlotStatus,
    SlotView,
    TimeRange,
    TimeSlot,
)

DayLike = Union[date, datetime]

MINUTES_PER_DAY = 24 * 60


def localize(value: datetime, timezone: str) -> DateTime:
    """
    Return ``value`` in ``timezone``. Naive values are read as wall-clock
    time in ``timezone``, not as UTC.
    """
    return pendulum.instance(value, tz=timezone).in_timezone(timezone)


def local_date(value: DayLike, timezone: str) -> date:
    """Return the calendar day of ``value`` as seen in ``timezone``."""
    if isinstance(value, datetime):
        return localize(value, timezone).date()
    return value


def at_minutes(day: date, minutes: int, timezone: str) -> DateTime:
    """
    Build the wall-clock instant ``minutes`` after midnight of ``day``.

    Each call constructs a fresh value from the calendar fields, so no two
    slots ever share state. 24:00 resolves to midnight of the next day.
    """
    if minutes == MINUTES_PER_DAY:
        return pendulum.datetime(day.year, day.month, day.day, tz=timezone).add(days=1)
    hour, minute = divmod(minutes, 60)
    return pendulum.datetime(day.year, day.month, day.day, hour, minute, tz=timezone)


class AvailabilityEngine:
    """
    Computes the bookable slots of a day and classifies instants against
    the business hours and existing appointments.
    """

    def __init__(self, policy: BusinessHoursPolicy):
        self.policy = policy

    def generate_slots(self, day: DayLike) -> List[TimeSlot]:
        """
        Return the ordered slots of ``day``; empty when the day is closed.

        Slots follow the wall clock. A slot starting inside a daylight saving
        gap does not exist on that day and is left out.
        """
        tz = self.policy.timezone
        target = local_date(day, tz)
        opening = self.policy.hours_for(target.weekday())

        if opening is None:
            return []

        step = self.policy.slot_minutes
        slots: List[TimeSlot] = []

        for offset in range(opening.open_minutes, opening.close_minutes, step):
            start = at_minutes(target, offset, tz)
            end = at_minutes(target, offset + step, tz)
            if start >= end:
                continue
            slots.append(TimeSlot(time_range=TimeRange(start=start, end=end)))

        return slots

    def classify(
        self,
        instant: DateTime,
        day: DayLike,
        appointments: Iterable[Appointment],
    ) -> SlotStatus:
        """
        Classify an instant: booked beats available, anything outside the
        day's slots is unavailable.
        """
        instant = localize(instant, self.policy.timezone)

        if any(a.blocks_time and a.time_range.contains(instant) for a in appointments):
            return SlotStatus.BOOKED

        if any(slot.time_range.contains(instant) for slot in self.generate_slots(day)):
            return SlotStatus.AVAILABLE

        return SlotStatus.UNAVAILABLE

    def slots_for_date(
        self,
        day: DayLike,
        appointments: Iterable[Appointment],
    ) -> List[Appointment]:
        """
        Return the appointments starting on ``day`` (local calendar date),
        ordered by start time.
        """
        tz = self.policy.timezone
        target = local_date(day, tz)

        same_day = [
            appointment for appointment in appointments
            if local_date(appointment.start, tz) == target
        ]

        return sorted(same_day, key=lambda a: a.start)

    def day_schedule(
        self,
        day: DayLike,
        appointments: Iterable[Appointment],
    ) -> List[SlotView]:
        """
        Return every slot of ``day`` with its status. A slot touched by any
        blocking appointment is booked.
        """
        blocking = [a.time_range for a in appointments if a.blocks_time]

        return [
            SlotView(
                slot=slot,
                status=(
                    SlotStatus.BOOKED
                    if any(slot.time_range.overlaps(busy) for busy in blocking)
                    else SlotStatus.AVAILABLE
                ),
            )
            for slot in self.generate_slots(day)
        ]
