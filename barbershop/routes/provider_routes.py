import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from barbershop.models.provider import Provider
from barbershop.models.service import Service
from barbershop.routes.common import database_unavailable, ensure_database_ready, get_db, require_admin
from barbershop.scheduling.engine import WEEKDAY_NAMES, parse_working_hours

router = APIRouter(tags=['providers'])

logger = logging.getLogger(__name__)


def validate_working_hours(value: dict[str, str | None]) -> dict[str, str | None]:
    normalized: dict[str, str | None] = {day: None for day in WEEKDAY_NAMES}

    for day, hours in value.items():
        day_name = day.strip().lower()
        if day_name not in WEEKDAY_NAMES:
            raise ValueError(f'Unknown weekday: {day}.')

        if hours is None or not hours.strip():
            continue

        if parse_working_hours(hours) is None:
            raise ValueError(f'Invalid working hours for {day_name}: expected a range like 9:00am-8:00pm.')
        normalized[day_name] = hours.strip().lower()

    return normalized


class CreateProviderRequest(BaseModel):
    name: str
    email: str
    bio: str | None = None
    availability: dict[str, str | None] = {}

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Provider name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid email is required.')
        return normalized

    @field_validator('availability')
    @classmethod
    def validate_availability(cls, value: dict[str, str | None]) -> dict[str, str | None]:
        return validate_working_hours(value)


class UpdateWorkingHoursRequest(BaseModel):
    availability: dict[str, str | None]

    @field_validator('availability')
    @classmethod
    def validate_availability(cls, value: dict[str, str | None]) -> dict[str, str | None]:
        return validate_working_hours(value)


class ProviderResponse(BaseModel):
    id: int
    name: str
    email: str | None = None
    bio: str | None = None
    is_active: bool
    availability: dict[str, str | None]

    class Config:
        from_attributes = True


class CreateServiceRequest(BaseModel):
    name: str
    category: str | None = None
    duration_minutes: int
    price: float = 0
    description: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Service name is required.')
        return normalized

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        if value < 1:
            raise ValueError('Duration must be at least 1 minute.')
        return value


class ServiceResponse(BaseModel):
    id: int
    name: str
    category: str | None = None
    duration_minutes: int
    price: float | None = None
    description: str | None = None

    class Config:
        from_attributes = True


def to_provider_response(provider: Provider) -> ProviderResponse:
    return ProviderResponse(
        id=provider.id,
        name=provider.name,
        email=provider.email,
        bio=provider.bio,
        is_active=bool(provider.is_active),
        availability=provider.availability or {},
    )


@router.get('/providers', response_model=list[ProviderResponse])
def list_providers(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        providers = db.query(Provider).filter(Provider.is_active.is_(True)).order_by(Provider.name.asc()).all()
        return [to_provider_response(provider) for provider in providers]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/providers/{provider_id}', response_model=ProviderResponse)
def get_provider(provider_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        provider = db.query(Provider).filter(Provider.id == provider_id).first()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if not provider:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Provider not found.',
        )
    return to_provider_response(provider)


@router.post('/providers', response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
def create_provider(
    data: CreateProviderRequest,
    admin_email: str = Query(...),
    db: Session = Depends(get_db),
):
    require_admin(admin_email, 'add providers')

    ensure_database_ready()

    try:
        provider = Provider(
            name=data.name,
            email=data.email,
            bio=data.bio,
            is_active=True,
            availability=data.availability,
        )
        db.add(provider)
        db.commit()
        db.refresh(provider)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='A provider with this email already exists.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Added provider %s (%s)', provider.id, provider.name)
    return to_provider_response(provider)


@router.put('/providers/{provider_id}/working-hours', response_model=ProviderResponse)
def update_working_hours(
    provider_id: int,
    data: UpdateWorkingHoursRequest,
    admin_email: str = Query(...),
    db: Session = Depends(get_db),
):
    require_admin(admin_email, 'change working hours')

    ensure_database_ready()

    try:
        provider = db.query(Provider).filter(Provider.id == provider_id).first()
        if not provider:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Provider not found.',
            )

        provider.availability = data.availability
        db.commit()
        db.refresh(provider)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Updated working hours for provider %s', provider_id)
    return to_provider_response(provider)


@router.get('/services', response_model=list[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(Service).order_by(Service.category.asc(), Service.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/services', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    admin_email: str = Query(...),
    db: Session = Depends(get_db),
):
    require_admin(admin_email, 'add services')

    ensure_database_ready()

    try:
        service = Service(
            name=data.name,
            category=data.category,
            duration_minutes=data.duration_minutes,
            price=data.price,
            description=data.description,
        )
        db.add(service)
        db.commit()
        db.refresh(service)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return service
