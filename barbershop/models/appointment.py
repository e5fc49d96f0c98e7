"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.sql import func
from barbershop.database import Base


class Appointment(Base):
    """Represents a customer's booking with a provider."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    customer_id = Column(String, nullable=False)
    customer_name = Column(String)
    customer_email = Column(String)
    service_id = Column(Integer, ForeignKey("services.id"))
    service_name = Column(String)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    provider_name = Column(String)
    appointment_date = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False, default=30)
    price = Column(Float, default=0)
    status = Column(String, nullable=False, default="confirmed")
    booking_code = Column(String)
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
