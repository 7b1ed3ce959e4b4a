# fleetdesk/schemas/deployment.py
"""
Deployment record and checklist schemas.

Every JSON form of a record (API responses, the out_data/in_data columns, the
remote deployments API) is camelCase: "outTimestamp", "supervisorName",
"fireExtinguisher". Attributes stay snake_case and are accepted on input too.
"""

from enum import Enum
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, List


class Direction(str, Enum):
    OUT = "OUT"
    IN = "IN"


class Purpose(str, Enum):
    OFFICE = "Office"
    PILOT = "Pilot"


class DriverChecklist(BaseModel):
    id_card: bool = False
    uniform: bool = False
    shoes: bool = False
    groomed: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class VehicleChecklist(BaseModel):
    fire_extinguisher: bool = False
    stepney: bool = False
    car_freshener: bool = False
    cleaning_cloth: bool = False
    umbrella: bool = False
    torch: bool = False
    toolkit: bool = False
    spanner: bool = False
    medical_kit: bool = False
    car_charger: bool = False
    jack: bool = False
    lights_working: bool = False
    tyre_pressure: bool = False
    wheel_caps: bool = False
    wiper_water: bool = False
    cleanliness: bool = False
    antenna: bool = False
    ac_working: bool = False
    mobile_cable: bool = False
    mobile_adapter: bool = False
    phone_stand: bool = False
    horn_working: bool = False
    damages: str = ""           # free text, never part of the diff

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class OutData(BaseModel):
    # Office
    driver_name: Optional[str] = None
    employee_name: Optional[str] = None
    # Pilot
    pilot_id: Optional[str] = None
    location: Optional[str] = None
    # Common
    odometer: float
    battery_charge: Optional[float] = None   # percent
    range_km: Optional[float] = None
    supervisor_name: str
    supervisor_selfie: Optional[str] = None  # capture handle
    driver_photo: Optional[str] = None       # capture handle
    vehicle_photos: List[str] = []
    driver_checklist: Optional[DriverChecklist] = None
    vehicle_checklist: Optional[VehicleChecklist] = None
    notes: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class InData(BaseModel):
    return_odometer: float
    supervisor_name: str
    supervisor_selfie: Optional[str] = None
    vehicle_photos: List[str] = []
    vehicle_checklist: Optional[VehicleChecklist] = None
    checklist_mismatches: List[str] = []

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class DeploymentRecord(BaseModel):
    id: str
    vehicle_number: str
    purpose: Purpose
    out_timestamp: datetime
    in_timestamp: Optional[datetime] = None
    out_data: OutData
    in_data: Optional[InData] = None
    total_kms: Optional[float] = None
    duration_minutes: Optional[int] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        frozen = True

    @property
    def is_open(self) -> bool:
        return self.out_timestamp is not None and self.in_timestamp is None

    @property
    def is_closed(self) -> bool:
        return self.out_timestamp is not None and self.in_timestamp is not None


class DeploymentClose(BaseModel):
    """PATCH body that closes a deployment on the remote store."""
    in_timestamp: datetime
    in_data: InData

    class Config:
        alias_generator = to_camel
        populate_by_name = True
