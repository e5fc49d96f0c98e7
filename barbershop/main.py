import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from barbershop.core import config
from barbershop.database import Base, engine, ensure_appointment_schema, ensure_unavailability_schema
from barbershop.models import appointment, provider, service, unavailability  # noqa: F401
from barbershop.routes import appointment_routes, availability_routes, provider_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

config.validate_runtime_config()

app = FastAPI(title='Barbershop Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
        ensure_unavailability_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Barbershop Booking API Running'}


app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(availability_routes.router, prefix='/providers/availability')
app.include_router(provider_routes.router)
