"""
Vehicle lookup helpers — identification and autocomplete.
Used by the workflow and vehicles routers. An unregistered identifier is still
accepted; the workflow only needs a non-empty string.
"""

from typing import List

from sqlalchemy.orm import Session
from fleetdesk.models.vehicle import Vehicle
from fleetdesk.utils.identifiers import normalize_vehicle_number
from fleetdesk.utils.logger import get_logger

logger = get_logger(__name__)


def lookup_vehicle(db: Session, registration_number: str):
    """Find a registered vehicle by registration number. Returns None if not found."""
    return db.query(Vehicle).filter(
        Vehicle.registration_number == normalize_vehicle_number(registration_number)
    ).first()


def search_vehicles(db: Session, prefix: str, limit: int = 10) -> List[Vehicle]:
    """Autocomplete: registered vehicles whose number starts with the typed text."""
    prefix = normalize_vehicle_number(prefix)
    if not prefix:
        return []
    return (
        db.query(Vehicle)
        .filter(Vehicle.registration_number.like(f"{prefix}%"))
        .order_by(Vehicle.registration_number)
        .limit(limit)
        .all()
    )


def resolve_vehicle_number(db: Session, typed: str) -> str:
    """Registered number if known, otherwise the normalised input as typed."""
    normalized = normalize_vehicle_number(typed)
    vehicle = lookup_vehicle(db, normalized) if normalized else None
    if vehicle:
        return vehicle.registration_number
    if normalized:
        logger.info(f"[VEHICLE] {normalized} is not registered; continuing with manual entry")
    return normalized
