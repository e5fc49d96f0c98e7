import logging
import secrets
import string
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, TypeAdapter, ValidationError, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from barbershop.core import config
from barbershop.models.appointment import Appointment
from barbershop.models.provider import Provider
from barbershop.models.service import Service
from barbershop.routes.common import database_unavailable, ensure_database_ready, get_db
from barbershop.scheduling import repository
from barbershop.scheduling.engine import (
    APPOINTMENT_STATUSES,
    BLOCKING_STATUSES,
    InvalidArgumentError,
    appointment_end,
    compute_available_slots,
    has_conflict,
    is_blocked_by_unavailability,
    is_blocking,
    is_within_working_hours,
)

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_APPOINTMENT_NOTES_LENGTH = 600
MAX_APPOINTMENT_LIST_LIMIT = 500
MAX_CUSTOMER_APPOINTMENTS = 50
BOOKING_CODE_LENGTH = 8
BOOKING_CODE_ALPHABET = string.ascii_uppercase + string.digits
CONFLICT_DETAIL = 'Time slot conflicts with existing appointment.'
UNAVAILABLE_DETAIL = 'Provider is unavailable at this time.'
OUTSIDE_WORKING_HOURS_DETAIL = 'Provider is not working at this time.'
LOCKED_APPOINTMENT_DETAIL = 'This appointment cannot be modified as it has already been completed or cancelled.'

email_adapter = TypeAdapter(EmailStr)


def _normalize_status(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise ValueError(f'Invalid status. Must be one of: {", ".join(APPOINTMENT_STATUSES)}')
    return normalized


def _normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


def _normalize_duration(value: int | None) -> int | None:
    if value is not None and value < 1:
        raise ValueError('Duration must be at least 1 minute.')
    return value


def _normalize_start_time(value: datetime | None) -> datetime | None:
    # Schedules are kept in naive shop-local time; offsets are converted, not dropped.
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _normalize_email(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip().lower() or None


def generate_booking_code() -> str:
    return ''.join(secrets.choice(BOOKING_CODE_ALPHABET) for _ in range(BOOKING_CODE_LENGTH))


class CreateAppointmentRequest(BaseModel):
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    service_id: int
    provider_id: int
    appointment_date: datetime
    duration: int | None = None
    price: float | None = None
    status: str = 'confirmed'
    booking_code: str | None = None
    notes: str | None = None

    @field_validator('customer_id')
    @classmethod
    def validate_customer_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Customer ID is required.')
        return normalized

    @field_validator('customer_email')
    @classmethod
    def validate_customer_email(cls, value: str | None) -> str | None:
        return _normalize_email(value)

    @field_validator('appointment_date')
    @classmethod
    def validate_appointment_date(cls, value: datetime) -> datetime:
        return _normalize_start_time(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _normalize_status(value)

    @field_validator('duration')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        return _normalize_duration(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class UpdateAppointmentRequest(BaseModel):
    appointment_date: datetime | None = None
    duration: int | None = None
    provider_id: int | None = None
    price: float | None = None
    status: str | None = None
    notes: str | None = None

    @field_validator('appointment_date')
    @classmethod
    def validate_appointment_date(cls, value: datetime | None) -> datetime | None:
        return _normalize_start_time(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_status(value)

    @field_validator('duration')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        return _normalize_duration(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class UpdateAppointmentStatusRequest(BaseModel):
    appointment_id: int
    status: str
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _normalize_status(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class BatchUpdateAppointmentStatusRequest(BaseModel):
    appointment_ids: list[int]
    status: str
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _normalize_status(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class LookupAppointmentRequest(BaseModel):
    booking_code: str | None = None
    email: str | None = None

    @field_validator('booking_code')
    @classmethod
    def validate_booking_code(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().upper() or None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str | None) -> str | None:
        return _normalize_email(value)


class AppointmentResponse(BaseModel):
    id: int
    customer_id: str
    customer_name: str | None = None
    customer_email: str | None = None
    service_id: int | None = None
    service_name: str | None = None
    provider_id: int
    provider_name: str | None = None
    appointment_date: datetime
    end_time: datetime
    duration: int
    price: float | None = None
    status: str
    booking_code: str | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


class CustomerAppointmentResponse(BaseModel):
    id: int
    service_name: str | None = None
    provider_name: str | None = None
    appointment_date: datetime
    end_time: datetime
    duration: int
    price: float | None = None
    status: str
    booking_code: str | None = None
    notes: str | None = None
    can_modify: bool


class CustomerAppointmentsResponse(BaseModel):
    appointments: list[CustomerAppointmentResponse]
    has_upcoming: bool
    has_past: bool


class StatusUpdateResponse(BaseModel):
    message: str
    appointment_id: int
    status: str


class BatchStatusUpdateResponse(BaseModel):
    updated: int
    errors: list[str]


class SlotResponse(BaseModel):
    time: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    available: bool


class ExistingAppointmentResponse(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    duration: int
    service_name: str | None = None


class AvailableSlotsResponse(BaseModel):
    date: date
    provider_id: int
    service_id: int
    service_duration: int
    available_slots: list[SlotResponse]
    existing_appointments: list[ExistingAppointmentResponse]


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        customer_id=appointment.customer_id,
        customer_name=appointment.customer_name,
        customer_email=appointment.customer_email,
        service_id=appointment.service_id,
        service_name=appointment.service_name,
        provider_id=appointment.provider_id,
        provider_name=appointment.provider_name,
        appointment_date=appointment.appointment_date,
        end_time=appointment_end(appointment),
        duration=appointment.duration,
        price=appointment.price,
        status=appointment.status,
        booking_code=appointment.booking_code,
        notes=appointment.notes,
    )


def is_upcoming(appointment: Appointment, now: datetime) -> bool:
    return appointment.appointment_date >= now and is_blocking(appointment)


def to_customer_appointment_response(appointment: Appointment, now: datetime) -> CustomerAppointmentResponse:
    return CustomerAppointmentResponse(
        id=appointment.id,
        service_name=appointment.service_name,
        provider_name=appointment.provider_name,
        appointment_date=appointment.appointment_date,
        end_time=appointment_end(appointment),
        duration=appointment.duration,
        price=appointment.price,
        status=appointment.status,
        booking_code=appointment.booking_code,
        notes=appointment.notes,
        can_modify=appointment.appointment_date > now and appointment.status == 'confirmed',
    )


def get_provider_or_404(provider_id: int, db: Session) -> Provider:
    provider = db.query(Provider).filter(Provider.id == provider_id).first()
    if not provider:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Provider not found.',
        )
    return provider


def get_service_or_404(service_id: int, db: Session) -> Service:
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Service not found.',
        )
    return service


def get_appointment_or_404(appointment_id: int, db: Session) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )
    return appointment


def check_appointment_conflict(
    provider_id: int,
    start_time: datetime,
    duration_minutes: int,
    db: Session,
    exclude_appointment_id: int | None = None,
) -> bool:
    end_time = start_time + timedelta(minutes=duration_minutes)
    candidates = repository.get_blocking_appointments(db, provider_id, start_time, end_time)
    return has_conflict(provider_id, start_time, duration_minutes, candidates, exclude_appointment_id)


def ensure_slot_is_bookable(
    provider: Provider,
    start_time: datetime,
    duration_minutes: int,
    db: Session,
    exclude_appointment_id: int | None = None,
) -> None:
    provider_id = provider.id
    end_time = start_time + timedelta(minutes=duration_minutes)

    if not is_within_working_hours(start_time, provider.availability):
        logger.warning('Refused booking for provider %s at %s: outside working hours', provider_id, start_time)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=OUTSIDE_WORKING_HOURS_DETAIL,
        )

    periods = repository.get_unavailability_periods(db, provider_id, start_time, end_time)
    if any(is_blocked_by_unavailability(start_time, end_time, period) for period in periods):
        logger.warning('Refused booking for provider %s at %s: provider unavailable', provider_id, start_time)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=UNAVAILABLE_DETAIL,
        )

    if check_appointment_conflict(provider_id, start_time, duration_minutes, db, exclude_appointment_id):
        logger.warning('Refused booking for provider %s at %s: slot conflict', provider_id, start_time)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=CONFLICT_DETAIL,
        )


def apply_status_change(appointment: Appointment, new_status: str, notes: str | None, db: Session) -> None:
    # Reinstating a cancelled or finished appointment takes its time back.
    if new_status in BLOCKING_STATUSES and appointment.status not in BLOCKING_STATUSES:
        if check_appointment_conflict(
            appointment.provider_id,
            appointment.appointment_date,
            appointment.duration,
            db,
            exclude_appointment_id=appointment.id,
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=CONFLICT_DETAIL,
            )

    appointment.status = new_status
    if notes:
        appointment.notes = notes


@router.get('/available-slots', response_model=AvailableSlotsResponse)
def get_available_slots(
    provider_id: int | None = Query(default=None),
    service_id: int | None = Query(default=None),
    slot_date: date | None = Query(default=None, alias='date'),
    duration: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    if provider_id is None or service_id is None or slot_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Provider ID, service ID, and date are required.',
        )

    ensure_database_ready()

    try:
        provider = get_provider_or_404(provider_id, db)
        service = get_service_or_404(service_id, db)
        service_duration = duration if duration is not None else (
            service.duration_minutes or config.DEFAULT_SERVICE_DURATION_MINUTES
        )

        existing_appointments, unavailability_periods = repository.get_day_snapshot(db, provider.id, slot_date)

        try:
            slots = compute_available_slots(
                slot_date,
                provider,
                service_duration,
                existing_appointments,
                unavailability_periods,
            )
        except InvalidArgumentError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            ) from exc

        return AvailableSlotsResponse(
            date=slot_date,
            provider_id=provider.id,
            service_id=service.id,
            service_duration=service_duration,
            available_slots=[
                SlotResponse(
                    time=slot.start_time.strftime('%H:%M'),
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    duration_minutes=slot.duration_minutes,
                    available=slot.available,
                )
                for slot in slots
            ],
            existing_appointments=[
                ExistingAppointmentResponse(
                    id=appointment.id,
                    start_time=appointment.appointment_date,
                    end_time=appointment_end(appointment),
                    duration=appointment.duration,
                    service_name=appointment.service_name,
                )
                for appointment in existing_appointments
            ],
        )
    except SQLAlchemyError as exc:
        logger.exception('Failed to compute available slots for provider %s on %s', provider_id, slot_date)
        raise database_unavailable() from exc


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    customer_id: str | None = Query(default=None),
    appointment_status: str | None = Query(default=None, alias='status'),
    provider_id: int | None = Query(default=None),
    service_id: int | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=MAX_APPOINTMENT_LIST_LIMIT),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment)
        if customer_id:
            query = query.filter(Appointment.customer_id == customer_id)
        if appointment_status:
            query = query.filter(Appointment.status == appointment_status.strip().lower())
        if provider_id is not None:
            query = query.filter(Appointment.provider_id == provider_id)
        if service_id is not None:
            query = query.filter(Appointment.service_id == service_id)
        if start_date is not None:
            query = query.filter(Appointment.appointment_date >= start_date)
        if end_date is not None:
            query = query.filter(Appointment.appointment_date <= end_date)

        appointments = query.order_by(Appointment.appointment_date.desc()).limit(limit).all()
        return [to_appointment_response(appointment) for appointment in appointments]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    start_time = data.appointment_date.replace(second=0, microsecond=0)
    if start_time <= datetime.now():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointment date must be in the future.',
        )

    try:
        provider = get_provider_or_404(data.provider_id, db)
        service = get_service_or_404(data.service_id, db)
        duration_minutes = data.duration or service.duration_minutes or config.DEFAULT_SERVICE_DURATION_MINUTES

        if data.status in BLOCKING_STATUSES:
            ensure_slot_is_bookable(provider, start_time, duration_minutes, db)

        appointment = Appointment(
            customer_id=data.customer_id,
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            service_id=service.id,
            service_name=service.name,
            provider_id=provider.id,
            provider_name=provider.name,
            appointment_date=start_time,
            duration=duration_minutes,
            price=data.price if data.price is not None else service.price,
            status=data.status,
            booking_code=data.booking_code or generate_booking_code(),
            notes=data.notes,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except IntegrityError as exc:
        # Another booking for the same start landed between the check and the insert.
        db.rollback()
        logger.warning('Refused booking for provider %s at %s: lost race', data.provider_id, start_time)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=CONFLICT_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create appointment for provider %s', data.provider_id)
        raise database_unavailable() from exc

    logger.info(
        'Booked appointment %s for provider %s at %s (%s min)',
        appointment.id,
        appointment.provider_id,
        appointment.appointment_date,
        appointment.duration,
    )
    return to_appointment_response(appointment)


@router.put('/status', response_model=StatusUpdateResponse)
def update_appointment_status(data: UpdateAppointmentStatusRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(data.appointment_id, db)
        apply_status_change(appointment, data.status, data.notes, db)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=CONFLICT_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Appointment %s marked %s', data.appointment_id, data.status)
    return StatusUpdateResponse(
        message='Appointment status updated successfully.',
        appointment_id=data.appointment_id,
        status=data.status,
    )


@router.post('/status', response_model=BatchStatusUpdateResponse)
def batch_update_appointment_status(data: BatchUpdateAppointmentStatusRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    updated = 0
    errors: list[str] = []

    try:
        for appointment_id in data.appointment_ids:
            try:
                appointment = get_appointment_or_404(appointment_id, db)
                apply_status_change(appointment, data.status, data.notes, db)
                db.commit()
                updated += 1
            except HTTPException as exc:
                errors.append(f'Failed to update appointment {appointment_id}: {exc.detail}')
            except IntegrityError:
                db.rollback()
                errors.append(f'Failed to update appointment {appointment_id}: {CONFLICT_DETAIL}')
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Batch status update to %s: %s updated, %s failed', data.status, updated, len(errors))
    return BatchStatusUpdateResponse(updated=updated, errors=errors)


@router.post('/lookup', response_model=AppointmentResponse)
def lookup_appointment(data: LookupAppointmentRequest, db: Session = Depends(get_db)):
    if not data.booking_code or not data.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Booking code and email are required.',
        )

    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(
            Appointment.booking_code == data.booking_code,
            Appointment.customer_email == data.email,
        ).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found. Please check your booking code and email.',
        )

    if appointment.status in ('completed', 'cancelled', 'no_show'):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=LOCKED_APPOINTMENT_DETAIL,
        )

    if appointment.appointment_date < datetime.now():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Past appointments cannot be modified.',
        )

    return to_appointment_response(appointment)


@router.get('/by-email', response_model=CustomerAppointmentsResponse)
def list_appointments_by_email(
    email: str | None = Query(default=None),
    upcoming: bool = Query(default=False),
    past: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    if not email or not email.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Email parameter is required.',
        )

    try:
        normalized_email = email_adapter.validate_python(email.strip()).lower()
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid email format.',
        ) from exc

    ensure_database_ready()

    now = datetime.now()
    try:
        appointments = db.query(Appointment).filter(
            Appointment.customer_email == normalized_email,
        ).order_by(Appointment.appointment_date.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    # Without an explicit choice only upcoming bookings are shown.
    if past and not upcoming:
        selected = [appointment for appointment in appointments if appointment.appointment_date < now]
    elif upcoming and past:
        selected = appointments
    else:
        selected = [appointment for appointment in appointments if is_upcoming(appointment, now)]

    return CustomerAppointmentsResponse(
        appointments=[
            to_customer_appointment_response(appointment, now)
            for appointment in selected[:MAX_CUSTOMER_APPOINTMENTS]
        ],
        has_upcoming=any(is_upcoming(appointment, now) for appointment in appointments),
        has_past=any(not is_upcoming(appointment, now) for appointment in appointments),
    )


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return to_appointment_response(get_appointment_or_404(appointment_id, db))
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(appointment_id: int, data: UpdateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)

        start_time = appointment.appointment_date
        if data.appointment_date is not None:
            start_time = data.appointment_date.replace(second=0, microsecond=0)
        duration_minutes = data.duration or appointment.duration
        provider_id = data.provider_id if data.provider_id is not None else appointment.provider_id
        new_status = data.status or appointment.status

        is_rescheduled = (
            start_time != appointment.appointment_date
            or duration_minutes != appointment.duration
            or provider_id != appointment.provider_id
        )
        provider = None
        if provider_id != appointment.provider_id:
            provider = get_provider_or_404(provider_id, db)
        if new_status in BLOCKING_STATUSES and (is_rescheduled or appointment.status not in BLOCKING_STATUSES):
            provider = provider or get_provider_or_404(provider_id, db)
            ensure_slot_is_bookable(
                provider,
                start_time,
                duration_minutes,
                db,
                exclude_appointment_id=appointment.id,
            )

        appointment.appointment_date = start_time
        appointment.duration = duration_minutes
        if provider is not None and provider.id != appointment.provider_id:
            appointment.provider_id = provider.id
            appointment.provider_name = provider.name
        appointment.status = new_status
        if data.price is not None:
            appointment.price = data.price
        if data.notes is not None:
            appointment.notes = data.notes

        db.commit()
        db.refresh(appointment)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=CONFLICT_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    if is_rescheduled:
        logger.info('Rescheduled appointment %s to %s with provider %s', appointment.id, start_time, provider_id)
    return to_appointment_response(appointment)


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)
        db.delete(appointment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Deleted appointment %s', appointment_id)
