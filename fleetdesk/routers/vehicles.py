"""Vehicle identification — registered vehicles, lookup and autocomplete."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from fleetdesk.database import get_db
from fleetdesk.models.vehicle import Vehicle
from fleetdesk.schemas.vehicle import VehicleCreate, VehicleOut
from fleetdesk.services.vehicle_service import lookup_vehicle, search_vehicles
from fleetdesk.utils.identifiers import normalize_vehicle_number
from datetime import datetime, timezone

router = APIRouter()


@router.get("/vehicles", response_model=list[VehicleOut], summary="List registered vehicles")
def list_vehicles(vehicle_class: str = None, db: Session = Depends(get_db)):
    q = db.query(Vehicle)
    if vehicle_class:
        q = q.filter(Vehicle.vehicle_class == vehicle_class)
    return q.order_by(Vehicle.registration_number).all()


@router.post("/vehicles", summary="Register a vehicle")
def register_vehicle(body: VehicleCreate, db: Session = Depends(get_db)):
    number = normalize_vehicle_number(body.registration_number)
    if not number:
        raise HTTPException(status_code=422, detail="Registration number is required")
    if lookup_vehicle(db, number):
        raise HTTPException(status_code=400, detail=f"Vehicle {number} already registered")
    db.add(Vehicle(
        registration_number=number,
        make=body.make,
        model=body.model,
        vehicle_class=body.vehicle_class,
        notes=body.notes,
        registered_at=datetime.now(timezone.utc),
    ))
    db.commit()
    return {"status": "registered", "registration_number": number}


@router.get("/vehicles/search", response_model=list[VehicleOut], summary="Autocomplete by number prefix")
def autocomplete(q: str, limit: int = 10, db: Session = Depends(get_db)):
    return search_vehicles(db, q, limit)


@router.get("/vehicles/lookup/{registration_number}", summary="Look up a registration number")
def lookup(registration_number: str, db: Session = Depends(get_db)):
    number = normalize_vehicle_number(registration_number)
    vehicle = lookup_vehicle(db, number)
    if not vehicle:
        return {"registration_number": number, "registered": False}
    return {"registration_number": number, "registered": True,
            "make": vehicle.make, "model": vehicle.model, "vehicle_class": vehicle.vehicle_class}


@router.delete("/vehicles/{registration_number}", summary="Remove a vehicle")
def remove_vehicle(registration_number: str, db: Session = Depends(get_db)):
    vehicle = lookup_vehicle(db, registration_number)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    db.delete(vehicle)
    db.commit()
    return {"status": "removed", "registration_number": vehicle.registration_number}
