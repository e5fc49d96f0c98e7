"""Provider unavailability model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func
from barbershop.database import Base


class ProviderUnavailability(Base):
    """Represents time off a provider has blocked out."""
    __tablename__ = "provider_unavailability"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    all_day = Column(Boolean, default=True)
    reason = Column(String)
    created_at = Column(DateTime, server_default=func.now())
