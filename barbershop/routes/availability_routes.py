import logging
from datetime import datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barbershop.auth.dependencies import get_current_provider
from barbershop.models.appointment import Appointment
from barbershop.models.provider import Provider
from barbershop.models.unavailability import ProviderUnavailability
from barbershop.routes.common import database_unavailable, ensure_database_ready, get_db
from barbershop.scheduling import repository
from barbershop.scheduling.engine import appointment_end, overlaps

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 200


class CreateUnavailabilityRequest(BaseModel):
    start_date: datetime
    end_date: datetime
    all_day: bool = True
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if len(normalized) > MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')

        return normalized or None


class UnavailabilityResponse(BaseModel):
    id: int
    provider_id: int
    start_date: datetime
    end_date: datetime
    all_day: bool
    reason: str | None = None

    class Config:
        from_attributes = True


def blocked_range(start_date: datetime, end_date: datetime, all_day: bool) -> tuple[datetime, datetime]:
    if all_day:
        range_start = datetime.combine(start_date.date(), time.min)
        return range_start, datetime.combine(end_date.date(), time.min) + timedelta(days=1)
    return start_date, end_date


def validate_unavailability_range(data: CreateUnavailabilityRequest) -> tuple[datetime, datetime]:
    # A single all-day period may start and end on the same calendar day.
    if data.all_day:
        is_valid = data.end_date.date() >= data.start_date.date()
    else:
        is_valid = data.end_date > data.start_date

    if not is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='End date must be after start date.',
        )

    return blocked_range(data.start_date, data.end_date, data.all_day)


def find_conflicting_appointments(
    provider_id: int,
    range_start: datetime,
    range_end: datetime,
    db: Session,
) -> list[Appointment]:
    candidates = repository.get_blocking_appointments(db, provider_id, range_start, range_end)
    return [
        appointment
        for appointment in candidates
        if overlaps(range_start, range_end, appointment.appointment_date, appointment_end(appointment))
    ]


@router.get('', response_model=list[UnavailabilityResponse])
def list_unavailability(
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(ProviderUnavailability).filter(ProviderUnavailability.provider_id == provider.id)
        if start_date is not None:
            query = query.filter(ProviderUnavailability.start_date >= start_date)
        if end_date is not None:
            query = query.filter(ProviderUnavailability.start_date <= end_date)

        return query.order_by(ProviderUnavailability.start_date.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=UnavailabilityResponse, status_code=status.HTTP_201_CREATED)
def create_unavailability(
    data: CreateUnavailabilityRequest,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    range_start, range_end = validate_unavailability_range(data)

    ensure_database_ready()

    try:
        conflicting_appointments = find_conflicting_appointments(provider.id, range_start, range_end, db)
        if conflicting_appointments:
            logger.warning(
                'Refused time off for provider %s: %s appointment(s) scheduled',
                provider.id,
                len(conflicting_appointments),
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    'message': (
                        f'Cannot block this time - you have {len(conflicting_appointments)} '
                        'appointment(s) scheduled.'
                    ),
                    'conflicts': [
                        {
                            'id': appointment.id,
                            'date': appointment.appointment_date.isoformat(),
                            'service': appointment.service_name,
                            'customer': appointment.customer_id,
                        }
                        for appointment in conflicting_appointments
                    ],
                },
            )

        unavailability = ProviderUnavailability(
            provider_id=provider.id,
            start_date=data.start_date,
            end_date=data.end_date,
            all_day=data.all_day,
            reason=data.reason,
        )

        db.add(unavailability)
        db.commit()
        db.refresh(unavailability)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create time off for provider %s', provider.id)
        raise database_unavailable() from exc

    logger.info('Provider %s blocked %s to %s', provider.id, range_start, range_end)
    return unavailability


@router.delete('/{unavailability_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_unavailability(
    unavailability_id: int,
    provider: Provider = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        unavailability = db.query(ProviderUnavailability).filter(
            ProviderUnavailability.id == unavailability_id,
            ProviderUnavailability.provider_id == provider.id,
        ).first()

        if not unavailability:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Unavailability not found.',
            )

        db.delete(unavailability)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
