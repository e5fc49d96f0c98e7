import logging
import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from barbershop.core import config

logger = logging.getLogger(__name__)

load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barbershop.db")

engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False
_unavailability_schema_checked = False


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('booking_code', 'ALTER TABLE appointments ADD COLUMN booking_code VARCHAR'),
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_provider_start '
                    'ON appointments(provider_id, appointment_date)'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_status_start ON appointments(status, appointment_date)')
            )

        # Two active bookings for one provider cannot share a start time.
        # Overlaps with different starts are still only caught by the handler's check.
        try:
            with engine.begin() as connection:
                connection.execute(
                    text(
                        'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_provider_active_start '
                        'ON appointments(provider_id, appointment_date) '
                        "WHERE status IN ('confirmed', 'in_progress')"
                    )
                )
        except IntegrityError:
            logger.warning(
                'Existing appointments share a start time; double-booking index not created.'
            )

        _appointment_schema_checked = True


def ensure_unavailability_schema() -> None:
    global _unavailability_schema_checked

    if _unavailability_schema_checked:
        return

    with _schema_lock:
        if _unavailability_schema_checked:
            return

        inspector = inspect(engine)

        if 'provider_unavailability' not in inspector.get_table_names():
            _unavailability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('provider_unavailability')}
        migration_steps = [
            ('all_day', 'ALTER TABLE provider_unavailability ADD COLUMN all_day BOOLEAN DEFAULT TRUE'),
            ('reason', 'ALTER TABLE provider_unavailability ADD COLUMN reason VARCHAR'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_unavailability_provider_range '
                    'ON provider_unavailability(provider_id, start_date, end_date)'
                )
            )

        _unavailability_schema_checked = True
