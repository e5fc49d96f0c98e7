"""Provider model definitions."""

from sqlalchemy import Boolean, Column, Integer, JSON, String
from barbershop.database import Base


class Provider(Base):
    """Represents a barber who can be booked."""
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    bio = Column(String)
    is_active = Column(Boolean, default=True)
    # weekday name -> "9:00am-8:00pm", or None when closed that day
    availability = Column(JSON, default=dict)
