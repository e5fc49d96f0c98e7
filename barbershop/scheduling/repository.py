"""Queries that load the snapshots the scheduling engine decides against."""

from datetime import date, datetime, time, timedelta

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from barbershop.models.appointment import Appointment
from barbershop.models.unavailability import ProviderUnavailability
from barbershop.scheduling.engine import BLOCKING_STATUSES

# Appointments are stored by start time only, so a window query has to look
# back far enough to catch one that started earlier and is still running.
APPOINTMENT_LOOKBACK = timedelta(days=1)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    day_start = datetime.combine(day, time.min)
    return day_start, day_start + timedelta(days=1)


def get_blocking_appointments(
    db: Session,
    provider_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[Appointment]:
    return db.query(Appointment).filter(
        Appointment.provider_id == provider_id,
        Appointment.status.in_(BLOCKING_STATUSES),
        Appointment.appointment_date < range_end,
        Appointment.appointment_date >= range_start - APPOINTMENT_LOOKBACK,
    ).order_by(Appointment.appointment_date.asc()).all()


def _midnight_after(range_end: datetime) -> datetime:
    # ``range_end`` is exclusive, so a range ending at midnight stops the day before.
    last_day = (range_end - timedelta(microseconds=1)).date()
    return datetime.combine(last_day, time.min) + timedelta(days=1)


def get_unavailability_periods(
    db: Session,
    provider_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[ProviderUnavailability]:
    # All-day periods cover whole days whatever clock time they were stored with,
    # so both ends are compared at midnight for them.
    range_start_day = datetime.combine(range_start.date(), time.min)
    return db.query(ProviderUnavailability).filter(
        ProviderUnavailability.provider_id == provider_id,
        or_(
            ProviderUnavailability.start_date < range_end,
            and_(
                ProviderUnavailability.all_day.is_(True),
                ProviderUnavailability.start_date < _midnight_after(range_end),
            ),
        ),
        ProviderUnavailability.end_date >= range_start_day,
    ).order_by(ProviderUnavailability.start_date.asc()).all()


def get_day_snapshot(
    db: Session,
    provider_id: int,
    day: date,
) -> tuple[list[Appointment], list[ProviderUnavailability]]:
    day_start, day_end = day_bounds(day)
    return (
        get_blocking_appointments(db, provider_id, day_start, day_end),
        get_unavailability_periods(db, provider_id, day_start, day_end),
    )
