import os
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from barbershop.database import Base  # noqa: E402
from barbershop.models.appointment import Appointment  # noqa: E402
from barbershop.models.provider import Provider  # noqa: E402
from barbershop.models.service import Service  # noqa: E402
from barbershop.models.unavailability import ProviderUnavailability  # noqa: E402

TABLES = [
    Provider.__table__,
    Service.__table__,
    Appointment.__table__,
    ProviderUnavailability.__table__,
]

OPEN_EVERY_DAY = {
    'monday': '9:00am-8:00pm',
    'tuesday': '9:00am-8:00pm',
    'wednesday': '9:00am-8:00pm',
    'thursday': '9:00am-8:00pm',
    'friday': '9:00am-8:00pm',
    'saturday': '9:00am-7:00pm',
    'sunday': '9:00am-6:00pm',
}


@pytest.fixture
def db(monkeypatch: pytest.MonkeyPatch):
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    for module_name in ('appointment_routes', 'availability_routes', 'provider_routes'):
        monkeypatch.setattr(f'barbershop.routes.{module_name}.ensure_database_ready', lambda: None)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))


@pytest.fixture
def provider(db) -> Provider:
    record = Provider(name='Jan', email='jan@example.com', is_active=True, availability=dict(OPEN_EVERY_DAY))
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def other_provider(db) -> Provider:
    record = Provider(name='Dante X', email='dante@example.com', is_active=True, availability=dict(OPEN_EVERY_DAY))
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def service(db) -> Service:
    record = Service(name='Haircut', category='Haircuts', duration_minutes=30, price=35.0)
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def add_appointment(db, service):
    def _add(
        provider: Provider,
        start_time: datetime,
        duration: int = 30,
        status: str = 'confirmed',
        customer_id: str = 'customer-1',
        customer_email: str | None = None,
        booking_code: str | None = None,
    ) -> Appointment:
        appointment = Appointment(
            customer_id=customer_id,
            customer_email=customer_email,
            service_id=service.id,
            service_name=service.name,
            provider_id=provider.id,
            provider_name=provider.name,
            appointment_date=start_time,
            duration=duration,
            price=service.price,
            status=status,
            booking_code=booking_code,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _add


@pytest.fixture
def add_unavailability(db):
    def _add(
        provider: Provider,
        start_date: datetime,
        end_date: datetime,
        all_day: bool = True,
        reason: str | None = None,
    ) -> ProviderUnavailability:
        period = ProviderUnavailability(
            provider_id=provider.id,
            start_date=start_date,
            end_date=end_date,
            all_day=all_day,
            reason=reason,
        )
        db.add(period)
        db.commit()
        db.refresh(period)
        return period

    return _add
