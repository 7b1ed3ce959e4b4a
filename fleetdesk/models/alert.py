"""
Alerts table — checklist mismatches, reported damage and data-integrity faults.
Written by alert_service after a vehicle returns; read by the alerts router.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from fleetdesk.database import Base


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_type = Column(String(50), nullable=False, index=True)  # checklist_mismatch | damage_reported | data_integrity
    vehicle_number = Column(String(50), nullable=False, index=True)
    deployment_id = Column(String(100), index=True)
    description = Column(Text)
    is_resolved = Column(Integer, default=0, nullable=False)
    triggered_at = Column(DateTime(timezone=True), nullable=False, index=True)
    resolved_at = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<Alert {self.id} type={self.alert_type} resolved={self.is_resolved}>"
