"""
Shared alert creation service.
Used by deployment_service after a vehicle returns (checklist mismatches,
reported damage, data-integrity faults).
"""

from datetime import datetime, timezone
from sqlalchemy.orm import Session
from fleetdesk.models.alert import Alert
from fleetdesk.utils.logger import get_logger

logger = get_logger(__name__)


async def create_alert(db: Session, alert_type, vehicle_number, deployment_id, description):
    """Create and persist an alert record. Always commits immediately."""
    db.add(Alert(alert_type=alert_type, vehicle_number=vehicle_number,
                 deployment_id=deployment_id, description=description,
                 is_resolved=0, triggered_at=datetime.now(timezone.utc)))
    db.commit()
    logger.warning(f"[ALERT][{alert_type.upper()}] {description}")
