from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from fleetdesk.database import get_db
from fleetdesk.models.alert import Alert
from fleetdesk.schemas.alert import AlertOut
from datetime import datetime, timezone
from typing import Optional

router = APIRouter()


@router.get("/alerts", response_model=list[AlertOut], summary="All alerts — filterable by type")
def get_all_alerts(
    alert_type: Optional[str] = None,
    vehicle_number: Optional[str] = None,
    is_resolved: Optional[int] = None,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """Checklist mismatches, reported damage and integrity faults, newest first."""
    q = db.query(Alert)
    if alert_type:
        q = q.filter(Alert.alert_type == alert_type)
    if vehicle_number:
        q = q.filter(Alert.vehicle_number == vehicle_number)
    if is_resolved is not None:
        q = q.filter(Alert.is_resolved == is_resolved)
    return q.order_by(Alert.triggered_at.desc()).limit(limit).all()


@router.put("/alerts/{alert_id}/resolve", response_model=AlertOut, summary="Mark an alert as resolved")
def resolve_alert(alert_id: int, db: Session = Depends(get_db)):
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    if not alert.is_resolved:
        alert.is_resolved = 1
        alert.resolved_at = datetime.now(timezone.utc)
        db.commit()
    return alert
