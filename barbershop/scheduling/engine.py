"""Slot computation and double-booking detection.

Everything here is a pure function of its arguments. Callers load a snapshot
of a provider's appointments and unavailability and act on the answer; the
engine never reads or writes storage, so it cannot reserve a slot. Whether a
booking actually lands without a race is up to the storage layer.

Appointments are read through ``appointment_date``, ``duration``, ``status``,
``provider_id`` and ``id``; unavailability periods through ``start_date``,
``end_date`` and ``all_day``. ORM rows and plain objects both work.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Mapping

from barbershop.core import config

BLOCKING_STATUSES = frozenset({'confirmed', 'in_progress'})
APPOINTMENT_STATUSES = ('confirmed', 'in_progress', 'cancelled', 'completed', 'no_show')
WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

_WORKING_HOURS_PATTERN = re.compile(
    r'^\s*(\d{1,2}):(\d{2})\s*(am|pm)\s*-\s*(\d{1,2}):(\d{2})\s*(am|pm)\s*$',
    re.IGNORECASE,
)


class InvalidArgumentError(ValueError):
    """Raised when the engine is handed input it cannot schedule against."""


@dataclass(frozen=True)
class Slot:
    start_time: datetime
    duration_minutes: int
    available: bool = True

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration_minutes)


@dataclass(frozen=True)
class SlotGridPolicy:
    """Where candidate start times fall on a day."""

    open_time: time = time(9, 0)
    close_time: time = time(20, 0)
    increment_minutes: int = 30
    breaks: tuple[tuple[time, time], ...] = ((time(13, 0), time(14, 0)),)

    @classmethod
    def from_config(cls) -> 'SlotGridPolicy':
        return cls(
            open_time=config.SCHEDULE_OPEN_TIME,
            close_time=config.SCHEDULE_CLOSE_TIME,
            increment_minutes=config.SLOT_INCREMENT_MINUTES,
            breaks=((config.LUNCH_BREAK_START, config.LUNCH_BREAK_END),),
        )

    def is_break(self, slot_time: time) -> bool:
        return any(break_start <= slot_time < break_end for break_start, break_end in self.breaks)


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    # Half-open intervals: touching endpoints are not an overlap.
    return start_a < end_b and end_a > start_b


def appointment_end(appointment: Any) -> datetime:
    return appointment.appointment_date + timedelta(minutes=appointment.duration)


def is_blocking(appointment: Any) -> bool:
    return appointment.status in BLOCKING_STATUSES


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _validate_day(day: Any) -> date:
    if not isinstance(day, date):
        raise InvalidArgumentError(f'Expected a calendar date, got {day!r}.')
    return _as_date(day)


def _validate_duration(duration_minutes: Any) -> int:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise InvalidArgumentError(f'Duration must be a whole number of minutes, got {duration_minutes!r}.')
    if duration_minutes < 1:
        raise InvalidArgumentError('Duration must be at least 1 minute.')
    return duration_minutes


def _to_minute_of_day(hour: str, minute: str, meridiem: str) -> int | None:
    hour_value = int(hour)
    minute_value = int(minute)
    if not 1 <= hour_value <= 12 or not 0 <= minute_value <= 59:
        return None

    hour_value %= 12
    if meridiem.lower() == 'pm':
        hour_value += 12
    return hour_value * 60 + minute_value


def parse_working_hours(value: Any) -> tuple[int, int] | None:
    """Parse ``"9:00am-8:00pm"`` into ``(540, 1200)`` minutes of the day.

    Returns None for a closed day and for anything that does not parse, so
    callers treat bad data as closed rather than open.
    """
    if not isinstance(value, str):
        return None

    match = _WORKING_HOURS_PATTERN.match(value)
    if not match:
        return None

    open_minute = _to_minute_of_day(*match.group(1, 2, 3))
    close_minute = _to_minute_of_day(*match.group(4, 5, 6))
    if open_minute is None or close_minute is None or open_minute >= close_minute:
        return None

    return open_minute, close_minute


def _weekday_name(weekday: int | str) -> str | None:
    if isinstance(weekday, str):
        normalized = weekday.strip().lower()
        return normalized if normalized in WEEKDAY_NAMES else None
    if isinstance(weekday, int) and 0 <= weekday < len(WEEKDAY_NAMES):
        return WEEKDAY_NAMES[weekday]
    return None


def is_within_working_hours(
    candidate_start: datetime,
    working_hours: Mapping[str, str | None] | None,
    weekday: int | str | None = None,
) -> bool:
    if not working_hours:
        return False

    weekday_name = _weekday_name(candidate_start.weekday() if weekday is None else weekday)
    if weekday_name is None:
        return False

    bounds = parse_working_hours(working_hours.get(weekday_name))
    if bounds is None:
        return False

    open_minute, close_minute = bounds
    minute_of_day = candidate_start.hour * 60 + candidate_start.minute
    return open_minute <= minute_of_day < close_minute


def generate_candidate_starts(day: date, policy: SlotGridPolicy) -> list[datetime]:
    candidates: list[datetime] = []
    current = datetime.combine(day, policy.open_time)
    close = datetime.combine(day, policy.close_time)
    step = timedelta(minutes=policy.increment_minutes)

    while current < close:
        if not policy.is_break(current.time()):
            candidates.append(current)
        current += step

    return candidates


def is_blocked_by_unavailability(slot_start: datetime, slot_end: datetime, period: Any) -> bool:
    if period.all_day:
        return _as_date(period.start_date) <= slot_start.date() <= _as_date(period.end_date)
    return overlaps(slot_start, slot_end, period.start_date, period.end_date)


def _next_appointment_after(moment: datetime, appointments: list[Any]) -> Any | None:
    for appointment in appointments:
        if appointment.appointment_date > moment:
            return appointment
    return None


def compute_available_slots(
    day: date,
    provider: Any,
    service_duration_minutes: int,
    existing_appointments: Iterable[Any],
    unavailability_periods: Iterable[Any],
    policy: SlotGridPolicy | None = None,
) -> list[Slot]:
    """Return the bookable slots for ``provider`` on ``day``, in grid order.

    ``existing_appointments`` and ``unavailability_periods`` must already be
    narrowed to this provider; ``provider`` only contributes its weekly
    ``availability`` template. Only slots that are free are returned.
    """
    target_day = _validate_day(day)
    duration_minutes = _validate_duration(service_duration_minutes)
    policy = policy or SlotGridPolicy.from_config()

    working_hours = getattr(provider, 'availability', None) if provider is not None else None
    weekday = target_day.weekday()
    duration = timedelta(minutes=duration_minutes)

    appointments = sorted(
        (appointment for appointment in existing_appointments if is_blocking(appointment)),
        key=lambda appointment: appointment.appointment_date,
    )
    periods = list(unavailability_periods)

    slots: list[Slot] = []
    for slot_start in generate_candidate_starts(target_day, policy):
        if not is_within_working_hours(slot_start, working_hours, weekday):
            continue

        slot_end = slot_start + duration

        if any(
            overlaps(slot_start, slot_end, appointment.appointment_date, appointment_end(appointment))
            for appointment in appointments
        ):
            continue

        if any(is_blocked_by_unavailability(slot_start, slot_end, period) for period in periods):
            continue

        # Gap to the next booking that starts after this service would end.
        next_appointment = _next_appointment_after(slot_end, appointments)
        if next_appointment is not None and next_appointment.appointment_date - slot_start < duration:
            continue

        slots.append(Slot(start_time=slot_start, duration_minutes=duration_minutes, available=True))

    return slots


def has_conflict(
    provider_id: Any,
    proposed_start: datetime,
    duration_minutes: int,
    existing_appointments: Iterable[Any],
    exclude_appointment_id: Any = None,
) -> bool:
    if not isinstance(proposed_start, datetime):
        raise InvalidArgumentError(f'Expected a start time, got {proposed_start!r}.')
    proposed_end = proposed_start + timedelta(minutes=_validate_duration(duration_minutes))

    for appointment in existing_appointments:
        if appointment.provider_id != provider_id or not is_blocking(appointment):
            continue
        if exclude_appointment_id is not None and appointment.id == exclude_appointment_id:
            continue
        if overlaps(proposed_start, proposed_end, appointment.appointment_date, appointment_end(appointment)):
            return True

    return False
