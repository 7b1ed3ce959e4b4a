# tests/test_record_store.py
"""Record store tests: SQL backend on in-memory SQLite, HTTP backend on a mock transport."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json

import httpx
import pytest
from datetime import datetime, timezone

from fleetdesk.exceptions import RemoteError
from fleetdesk.models.deployment import Deployment
from fleetdesk.schemas.deployment import DeploymentRecord, InData, OutData, Purpose, VehicleChecklist
from fleetdesk.services.record_store import HttpRecordStore, SqlRecordStore

VEHICLE = "KA01AB1234"
OUT_TIME = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
IN_TIME = datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)


def make_record(suffix="1", out_time=OUT_TIME):
    return DeploymentRecord(
        id=f"{VEHICLE}-{suffix}",
        vehicle_number=VEHICLE,
        purpose=Purpose.PILOT,
        out_timestamp=out_time,
        out_data=OutData(odometer=1000, supervisor_name="Ravi", pilot_id="P-7", location="Airport",
                         vehicle_checklist=VehicleChecklist(fire_extinguisher=True)),
    )


def make_in_data():
    return InData(return_odometer=1080, supervisor_name="Meera",
                  vehicle_checklist=VehicleChecklist(fire_extinguisher=False),
                  checklist_mismatches=["fireExtinguisher"])


class TestSqlRecordStore:
    @pytest.mark.asyncio
    async def test_create_then_list(self, db):
        store = SqlRecordStore(db)
        await store.create_deployment(make_record())

        history = await store.list_deployments_for_vehicle(VEHICLE)
        assert [r.id for r in history] == [f"{VEHICLE}-1"]
        assert history[0].is_open
        assert history[0].out_data.vehicle_checklist.fire_extinguisher is True

    @pytest.mark.asyncio
    async def test_second_open_deployment_is_rejected(self, db):
        store = SqlRecordStore(db, enforce_single_open=True)
        await store.create_deployment(make_record("1"))

        with pytest.raises(RemoteError) as exc:
            await store.create_deployment(make_record("2"))
        assert exc.value.status_code == 409

    @pytest.mark.asyncio
    async def test_unique_index_backs_up_the_check(self, db):
        store = SqlRecordStore(db, enforce_single_open=False)
        await store.create_deployment(make_record("1"))

        with pytest.raises(RemoteError) as exc:
            await store.create_deployment(make_record("2"))
        assert exc.value.status_code == 409

    @pytest.mark.asyncio
    async def test_close_sets_in_side_and_totals(self, db):
        store = SqlRecordStore(db)
        await store.create_deployment(make_record())

        closed = await store.close_deployment(f"{VEHICLE}-1", make_in_data(), IN_TIME)
        assert closed.is_closed
        assert closed.total_kms == 80
        assert closed.duration_minutes == 90

        row = db.query(Deployment).filter(Deployment.id == f"{VEHICLE}-1").first()
        assert row.out_data["supervisorName"] == "Ravi"
        assert row.in_data["checklistMismatches"] == ["fireExtinguisher"]

        stored = (await store.list_deployments_for_vehicle(VEHICLE))[0]
        assert stored.is_closed
        assert stored.in_data.checklist_mismatches == ["fireExtinguisher"]
        assert stored.in_data.vehicle_checklist.fire_extinguisher is False

    @pytest.mark.asyncio
    async def test_close_twice_is_rejected(self, db):
        store = SqlRecordStore(db)
        await store.create_deployment(make_record())
        await store.close_deployment(f"{VEHICLE}-1", make_in_data(), IN_TIME)

        with pytest.raises(RemoteError) as exc:
            await store.close_deployment(f"{VEHICLE}-1", make_in_data(), IN_TIME)
        assert exc.value.status_code == 409

    @pytest.mark.asyncio
    async def test_close_unknown_is_not_found(self, db):
        with pytest.raises(RemoteError) as exc:
            await SqlRecordStore(db).close_deployment("missing", make_in_data(), IN_TIME)
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_new_out_after_close_is_allowed(self, db):
        store = SqlRecordStore(db)
        await store.create_deployment(make_record("1"))
        await store.close_deployment(f"{VEHICLE}-1", make_in_data(), IN_TIME)
        await store.create_deployment(make_record("2", out_time=datetime(2024, 1, 2, 8, 0, tzinfo=timezone.utc)))

        history = await store.list_deployments_for_vehicle(VEHICLE)
        assert [r.id for r in history] == [f"{VEHICLE}-2", f"{VEHICLE}-1"]


class TestHttpRecordStore:
    @pytest.mark.asyncio
    async def test_list_sends_vehicle_number(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[make_record().model_dump(mode="json", by_alias=True)])

        store = HttpRecordStore("http://store.test", transport=httpx.MockTransport(handler))
        history = await store.list_deployments_for_vehicle(VEHICLE)

        assert seen == {"path": "/api/deployments", "params": {"vehicleNumber": VEHICLE}}
        assert history[0].id == f"{VEHICLE}-1"

    @pytest.mark.asyncio
    async def test_close_patches_the_record(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            closed = make_record().model_copy(update={"in_timestamp": IN_TIME, "in_data": make_in_data()})
            return httpx.Response(200, json=closed.model_dump(mode="json", by_alias=True))

        store = HttpRecordStore("http://store.test", transport=httpx.MockTransport(handler))
        closed = await store.close_deployment(f"{VEHICLE}-1", make_in_data(), IN_TIME)

        assert seen["method"] == "PATCH"
        assert seen["path"] == f"/api/deployments/{VEHICLE}-1"
        assert set(seen["body"]) == {"inTimestamp", "inData"}
        assert seen["body"]["inData"]["returnOdometer"] == 1080
        assert seen["body"]["inData"]["vehicleChecklist"]["fireExtinguisher"] is False
        assert seen["body"]["inData"]["checklistMismatches"] == ["fireExtinguisher"]
        assert closed.is_closed

    @pytest.mark.asyncio
    async def test_create_posts_camel_case_record(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json=seen["body"])

        store = HttpRecordStore("http://store.test", transport=httpx.MockTransport(handler))
        created = await store.create_deployment(make_record())

        body = seen["body"]
        assert {"vehicleNumber", "outTimestamp", "outData"} <= set(body)
        assert "out_data" not in body
        assert body["outData"]["supervisorName"] == "Ravi"
        assert body["outData"]["vehicleChecklist"]["fireExtinguisher"] is True
        assert created.model_dump() == make_record().model_dump()

    @pytest.mark.asyncio
    async def test_snake_case_response_is_still_accepted(self):
        payload = {"id": f"{VEHICLE}-1", "vehicle_number": VEHICLE, "purpose": "Pilot",
                   "out_timestamp": "2024-01-01T08:00:00Z",
                   "out_data": {"odometer": 1000, "supervisor_name": "Ravi"}}
        store = HttpRecordStore("http://store.test",
                                transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[payload])))
        history = await store.list_deployments_for_vehicle(VEHICLE)
        assert history[0].out_data.supervisor_name == "Ravi"

    @pytest.mark.asyncio
    async def test_error_status_becomes_remote_error(self):
        store = HttpRecordStore("http://store.test",
                                transport=httpx.MockTransport(lambda request: httpx.Response(409)))
        with pytest.raises(RemoteError) as exc:
            await store.create_deployment(make_record())
        assert exc.value.status_code == 409

    @pytest.mark.asyncio
    async def test_connection_failure_becomes_remote_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = HttpRecordStore("http://store.test", transport=httpx.MockTransport(handler))
        with pytest.raises(RemoteError) as exc:
            await store.list_deployments_for_vehicle(VEHICLE)
        assert exc.value.status_code is None
