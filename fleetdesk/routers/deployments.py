"""Deployment history (ride history), direction check and trip summaries."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.models.deployment import Deployment
from fleetdesk.schemas.deployment import DeploymentRecord, Purpose
from fleetdesk.services.direction_service import evaluate_direction
from fleetdesk.services.record_store import RecordStore, get_record_store
from fleetdesk.services.trip_summary_service import build_trip_summary
from fleetdesk.utils.identifiers import normalize_vehicle_number
from fleetdesk.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _supervised_by(row: Deployment, supervisor: str) -> bool:
    needle = supervisor.lower()
    names = [(row.out_data or {}).get("supervisorName"), (row.in_data or {}).get("supervisorName")]
    return any(n and needle in n.lower() for n in names)


@router.get("/deployments", response_model=list[DeploymentRecord], summary="Ride history")
def list_deployments(
    vehicle_number: Optional[str] = None,
    purpose: Optional[Purpose] = None,
    status: Optional[str] = None,           # open | closed
    supervisor: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    """Most recent first. vehicle_number and supervisor match partially."""
    q = db.query(Deployment)
    if vehicle_number:
        q = q.filter(Deployment.vehicle_number.like(f"%{normalize_vehicle_number(vehicle_number)}%"))
    if purpose:
        q = q.filter(Deployment.purpose == purpose.value)
    if status == "open":
        q = q.filter(Deployment.in_timestamp == None)  # noqa: E711
    elif status == "closed":
        q = q.filter(Deployment.in_timestamp != None)  # noqa: E711
    if date_from:
        q = q.filter(func.date(Deployment.out_timestamp) >= date_from)
    if date_to:
        q = q.filter(func.date(Deployment.out_timestamp) <= date_to)

    rows = q.order_by(Deployment.out_timestamp.desc()).all()
    if supervisor:
        rows = [r for r in rows if _supervised_by(r, supervisor)]
    return [DeploymentRecord.model_validate(r) for r in rows[:limit]]


@router.get("/deployments/direction/{vehicle_number}", summary="Which direction a vehicle may move")
async def get_direction(vehicle_number: str, store: RecordStore = Depends(get_record_store)):
    number = normalize_vehicle_number(vehicle_number)
    status = evaluate_direction(number, await store.list_deployments_for_vehicle(number))
    conflict = status.conflict_error()
    return {
        "vehicle_number": number,
        "can_go_out": status.can_go_out,
        "can_come_in": status.can_come_in,
        "open_count": status.open_count,
        "open_deployment": (status.open_deployment.model_dump(mode="json", by_alias=True)
                            if status.open_deployment else None),
        "error": conflict.to_dict() if conflict else None,
    }


@router.get("/deployments/{deployment_id}", response_model=DeploymentRecord)
def get_deployment(deployment_id: str, db: Session = Depends(get_db)):
    row = db.query(Deployment).filter(Deployment.id == deployment_id).first()
    if not row:
        raise HTTPException(status_code=404, detail=f"Deployment '{deployment_id}' not found")
    return DeploymentRecord.model_validate(row)


@router.get("/deployments/{deployment_id}/summary", summary="Trip summary for a closed deployment")
def get_trip_summary(deployment_id: str, db: Session = Depends(get_db)):
    """
    Consumed by the PDF/CSV exporters. A summary with integrity_errors is still
    returned (flagged=true) so the faulty trip is visible rather than hidden.
    """
    row = db.query(Deployment).filter(Deployment.id == deployment_id).first()
    if not row:
        raise HTTPException(status_code=404, detail=f"Deployment '{deployment_id}' not found")
    summary = build_trip_summary(DeploymentRecord.model_validate(row))
    if summary.flagged:
        logger.warning(f"[SUMMARY] {deployment_id} flagged: {'; '.join(summary.integrity_errors)}")
    return summary.to_dict()
