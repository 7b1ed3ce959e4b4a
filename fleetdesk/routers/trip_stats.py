"""Trip statistics and live status — trips per day, average duration, kms, vehicles out."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from fleetdesk.database import get_db
from fleetdesk.models.deployment import Deployment
from datetime import date

router = APIRouter()


@router.get("/stats/trips", summary="Daily trip summary")
def get_trip_stats(target_date: str = None, db: Session = Depends(get_db)):
    """Closed trips for a day (by IN time): count, average duration, kms, mismatch count."""
    target = target_date or str(date.today())
    rows = db.query(Deployment).filter(
        Deployment.in_timestamp != None,  # noqa: E711
        func.date(Deployment.in_timestamp) == target,
    ).all()

    durations = [r.duration_minutes for r in rows if r.duration_minutes is not None]
    kms = [r.total_kms for r in rows if r.total_kms is not None]
    with_mismatches = sum(1 for r in rows if (r.in_data or {}).get("checklistMismatches"))
    return {
        "date": target,
        "total_trips": len(rows),
        "avg_duration_minutes": round(sum(durations) / len(durations), 1) if durations else 0,
        "total_kms": round(sum(kms), 1),
        "trips_with_mismatches": with_mismatches,
    }


@router.get("/stats/live", summary="Vehicles currently out")
def get_live_status(db: Session = Depends(get_db)):
    rows = (
        db.query(Deployment)
        .filter(Deployment.in_timestamp == None)  # noqa: E711
        .order_by(Deployment.out_timestamp)
        .all()
    )
    vehicles = []
    for r in rows:
        out = r.out_data or {}
        vehicles.append({
            "deployment_id": r.id,
            "vehicle_number": r.vehicle_number,
            "purpose": r.purpose,
            "out_since": r.out_timestamp.isoformat(),
            "driver": out.get("driverName") or out.get("pilotId"),
            "supervisor": out.get("supervisorName"),
        })
    return {"currently_out": len(vehicles), "vehicles": vehicles}
