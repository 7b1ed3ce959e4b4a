"""
Registered vehicles table.
Used by vehicle_service for identification and autocomplete only; the
deployment workflow reads nothing but the registration number.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from fleetdesk.database import Base


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_number = Column(String(50), unique=True, nullable=False, index=True)
    make = Column(String(100))
    model = Column(String(100))
    vehicle_class = Column(String(50))    # sedan | suv | hatchback | ...
    registered_at = Column(DateTime(timezone=True))
    notes = Column(Text)

    def __repr__(self):
        return f"<Vehicle {self.registration_number} {self.make} {self.model}>"
