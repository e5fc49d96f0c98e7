"""Service model definitions."""

from sqlalchemy import Column, Float, Integer, String
from barbershop.database import Base


class Service(Base):
    """Represents a bookable service such as a haircut or beard trim."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    category = Column(String)
    duration_minutes = Column(Integer, nullable=False, default=30)
    price = Column(Float, default=0)
    description = Column(String)
