"""
Deployments table — one row per OUT/IN cycle of a vehicle.
Created when the OUT step is submitted, closed once when the IN step is submitted.
out_data / in_data hold the purpose-specific payloads as camelCase JSON.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float, JSON, Index, text
from fleetdesk.database import Base


class Deployment(Base):
    __tablename__ = "deployments"

    id = Column(String(100), primary_key=True)            # {vehicle_number}-{epoch_ms}
    vehicle_number = Column(String(50), nullable=False, index=True)
    purpose = Column(String(20), nullable=False)          # Office | Pilot
    out_timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    in_timestamp = Column(DateTime(timezone=True))        # set once on IN
    out_data = Column(JSON, nullable=False)
    in_data = Column(JSON)
    total_kms = Column(Float)
    duration_minutes = Column(Integer)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))

    __table_args__ = (
        # At most one open deployment per vehicle
        Index(
            "uq_deployments_open_vehicle",
            "vehicle_number",
            unique=True,
            postgresql_where=text("in_timestamp IS NULL"),
            sqlite_where=text("in_timestamp IS NULL"),
        ),
    )

    @property
    def is_open(self) -> bool:
        return self.out_timestamp is not None and self.in_timestamp is None

    def __repr__(self):
        return f"<Deployment {self.id} vehicle={self.vehicle_number} open={self.is_open}>"
