# fleetdesk/schemas/workflow.py
"""Request bodies for the session-driven deployment workflow endpoints."""

from pydantic import BaseModel
from typing import Any, Dict

from fleetdesk.schemas.deployment import Direction, Purpose


class IdentifyRequest(BaseModel):
    vehicle_number: str


class DirectionRequest(BaseModel):
    direction: Direction


class PurposeRequest(BaseModel):
    purpose: Purpose


class FieldsRequest(BaseModel):
    fields: Dict[str, Any]
