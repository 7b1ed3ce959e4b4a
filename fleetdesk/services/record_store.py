"""
Record store for deployment records.

The workflow only needs three calls: list a vehicle's deployments, create one
at OUT, close one at IN. Every call may fail and raises RemoteError when it
does, so the caller can keep its draft and let the operator retry.

  - SqlRecordStore   → local database via SQLAlchemy (default)
  - HttpRecordStore  → remote deployments API via httpx
                       (GET/POST /api/deployments, PATCH /api/deployments/{id});
                       query params and bodies are camelCase throughout
"""

from datetime import datetime, timezone
from typing import List, Optional

import httpx
from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fleetdesk.config import settings
from fleetdesk.database import get_db
from fleetdesk.exceptions import RemoteError
from fleetdesk.models.deployment import Deployment
from fleetdesk.schemas.deployment import DeploymentClose, DeploymentRecord, InData
from fleetdesk.services.deployment_workflow import close_record
from fleetdesk.utils.logger import get_logger

logger = get_logger(__name__)


class RecordStore:
    async def list_deployments_for_vehicle(self, vehicle_number: str) -> List[DeploymentRecord]:
        raise NotImplementedError

    async def create_deployment(self, record: DeploymentRecord) -> DeploymentRecord:
        raise NotImplementedError

    async def close_deployment(self, deployment_id: str, in_data: InData,
                               in_timestamp: datetime) -> DeploymentRecord:
        raise NotImplementedError


def _to_record(row: Deployment) -> DeploymentRecord:
    return DeploymentRecord.model_validate(row)


class SqlRecordStore(RecordStore):
    def __init__(self, db: Session, enforce_single_open: bool = None):
        self.db = db
        self.enforce_single_open = (settings.ENFORCE_SINGLE_OPEN_DEPLOYMENT
                                    if enforce_single_open is None else enforce_single_open)

    async def list_deployments_for_vehicle(self, vehicle_number: str) -> List[DeploymentRecord]:
        try:
            rows = (
                self.db.query(Deployment)
                .filter(Deployment.vehicle_number == vehicle_number)
                .order_by(Deployment.out_timestamp.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"[STORE] History lookup failed for {vehicle_number}: {e}")
            raise RemoteError(f"Could not load deployment history for {vehicle_number}") from e
        return [_to_record(r) for r in rows]

    async def create_deployment(self, record: DeploymentRecord) -> DeploymentRecord:
        if self.enforce_single_open:
            existing = self.db.query(Deployment).filter(
                Deployment.vehicle_number == record.vehicle_number,
                Deployment.in_timestamp == None,  # noqa: E711
            ).first()
            if existing:
                logger.warning(f"[STORE] {record.vehicle_number} already has open deployment {existing.id}")
                raise RemoteError(
                    f"Vehicle {record.vehicle_number} already has an open deployment ({existing.id})",
                    status_code=409,
                )

        data = record.model_dump(mode="json", by_alias=True)
        now = datetime.now(timezone.utc)
        row = Deployment(
            id=record.id,
            vehicle_number=record.vehicle_number,
            purpose=record.purpose.value,
            out_timestamp=record.out_timestamp,
            out_data=data["outData"],
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"[STORE] Create rejected for {record.id}: {e.orig}")
            raise RemoteError(f"Deployment for {record.vehicle_number} conflicts with an existing record",
                              status_code=409) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[STORE] Create failed for {record.id}: {e}")
            raise RemoteError(f"Could not save deployment {record.id}") from e

        logger.info(f"[OUT] Deployment {record.id} created for {record.vehicle_number}")
        return record

    async def close_deployment(self, deployment_id: str, in_data: InData,
                               in_timestamp: datetime) -> DeploymentRecord:
        row = self.db.query(Deployment).filter(Deployment.id == deployment_id).first()
        if not row:
            raise RemoteError(f"Deployment {deployment_id} not found", status_code=404)
        if row.in_timestamp is not None:
            raise RemoteError(f"Deployment {deployment_id} is already closed", status_code=409)

        closed = close_record(_to_record(row), in_data, in_timestamp)
        data = closed.model_dump(mode="json", by_alias=True)
        row.in_timestamp = in_timestamp
        row.in_data = data["inData"]
        row.total_kms = closed.total_kms
        row.duration_minutes = closed.duration_minutes
        row.updated_at = datetime.now(timezone.utc)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[STORE] Close failed for {deployment_id}: {e}")
            raise RemoteError(f"Could not close deployment {deployment_id}") from e

        logger.info(f"[IN] Deployment {deployment_id} closed | kms={closed.total_kms} "
                    f"mismatches={len(in_data.checklist_mismatches)}")
        return closed


class HttpRecordStore(RecordStore):
    def __init__(self, base_url: str = None, timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or settings.RECORD_STORE_URL).rstrip("/")
        self.timeout = timeout or settings.RECORD_STORE_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _request(self, method: str, path: str, **kwargs):
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[STORE] {method} {path} failed: {e}")
            raise RemoteError(f"Record store unreachable: {e}") from e

        if response.status_code >= 400:
            logger.warning(f"[STORE] {method} {path} returned HTTP {response.status_code}")
            raise RemoteError(f"Record store returned HTTP {response.status_code}",
                              status_code=response.status_code)
        return response.json()

    async def list_deployments_for_vehicle(self, vehicle_number: str) -> List[DeploymentRecord]:
        payload = await self._request("GET", "/api/deployments", params={"vehicleNumber": vehicle_number})
        return [DeploymentRecord.model_validate(item) for item in payload]

    async def create_deployment(self, record: DeploymentRecord) -> DeploymentRecord:
        payload = await self._request("POST", "/api/deployments",
                                      json=record.model_dump(mode="json", by_alias=True))
        return DeploymentRecord.model_validate(payload)

    async def close_deployment(self, deployment_id: str, in_data: InData,
                               in_timestamp: datetime) -> DeploymentRecord:
        body = DeploymentClose(in_timestamp=in_timestamp, in_data=in_data).model_dump(mode="json", by_alias=True)
        payload = await self._request("PATCH", f"/api/deployments/{deployment_id}", json=body)
        return DeploymentRecord.model_validate(payload)


def get_record_store(db: Session = Depends(get_db)) -> RecordStore:
    """FastAPI dependency — picks the backend configured in RECORD_STORE_BACKEND."""
    if settings.RECORD_STORE_BACKEND == "http":
        return HttpRecordStore()
    return SqlRecordStore(db)
