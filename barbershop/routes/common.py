from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from barbershop.core import config
from barbershop.database import SessionLocal, ensure_appointment_schema, ensure_unavailability_schema

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
        ensure_unavailability_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def require_admin(admin_email: str, action: str) -> str:
    normalized_email = admin_email.strip().lower()
    if not normalized_email.endswith(config.ADMIN_EMAIL_DOMAIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'Only admins can {action}.',
        )
    return normalized_email
