# tests/test_deployment_service.py
"""Unit tests for the deployment service (record-store calls around the workflow)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock, AsyncMock, patch
from datetime import datetime, timezone

from fleetdesk.exceptions import RemoteError
from fleetdesk.schemas.deployment import DeploymentRecord, Direction, OutData, Purpose, VehicleChecklist
from fleetdesk.services import deployment_workflow as wf
from fleetdesk.services.deployment_service import identify_vehicle, submit_step
from fleetdesk.services.deployment_workflow import (
    CaptureSlot,
    DataEntryStep,
    DirectionStep,
    IdentifyStep,
    SummaryStep,
)
from fleetdesk.services.record_store import RecordStore

VEHICLE = "KA01AB1234"
OUT_TIME = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
IN_TIME = datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)


class FakeStore(RecordStore):
    """In-memory store; set `fail` to make every call raise RemoteError."""

    def __init__(self, records=None, fail=False):
        self.records = list(records or [])
        self.fail = fail
        self.calls = []

    def _check(self, name):
        self.calls.append(name)
        if self.fail:
            raise RemoteError("Record store unreachable", status_code=None)

    async def list_deployments_for_vehicle(self, vehicle_number):
        self._check("list")
        return [r for r in self.records if r.vehicle_number == vehicle_number]

    async def create_deployment(self, record):
        self._check("create")
        self.records.append(record)
        return record

    async def close_deployment(self, deployment_id, in_data, in_timestamp):
        self._check("close")
        record = next(r for r in self.records if r.id == deployment_id)
        closed = wf.close_record(record, in_data, in_timestamp)
        self.records = [closed if r.id == deployment_id else r for r in self.records]
        return closed


def open_pilot_record(damages=""):
    return DeploymentRecord(
        id=f"{VEHICLE}-1",
        vehicle_number=VEHICLE,
        purpose=Purpose.PILOT,
        out_timestamp=OUT_TIME,
        out_data=OutData(odometer=1000, supervisor_name="Ravi", pilot_id="P-7", location="Airport",
                         vehicle_checklist=VehicleChecklist(fire_extinguisher=True, jack=True, damages=damages)),
    )


def pilot_in_state(store_records, checklist, return_odometer=1120):
    state = wf.identify(wf.start(), VEHICLE, store_records).state
    state = wf.choose_direction(state, Direction.IN).state
    state = wf.choose_purpose(state, Purpose.PILOT).state
    state = wf.enter_data(state, {"return_odometer": return_odometer, "supervisor_name": "Meera",
                                  "vehicle_checklist": checklist}).state
    return wf.attach_capture(state, CaptureSlot.SUPERVISOR_SELFIE, "s/selfie.jpg").state


class TestIdentifyVehicle:
    @pytest.mark.asyncio
    async def test_history_drives_direction(self):
        store = FakeStore([open_pilot_record()])
        result = await identify_vehicle(wf.start(), f"  {VEHICLE} ", store)
        assert result.ok
        assert isinstance(result.state, DirectionStep)
        assert result.state.status.can_come_in is True
        assert store.calls == ["list"]

    @pytest.mark.asyncio
    async def test_empty_number_skips_the_store(self):
        store = FakeStore()
        result = await identify_vehicle(wf.start(), "", store)
        assert not result.ok
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_store_failure_keeps_state(self):
        state = wf.start()
        result = await identify_vehicle(state, VEHICLE, FakeStore(fail=True))
        assert isinstance(result.error, RemoteError)
        assert result.state is state


class TestSubmitStep:
    @pytest.mark.asyncio
    async def test_out_creates_record(self):
        store = FakeStore()
        state = wf.identify(wf.start(), VEHICLE, []).state
        state = wf.choose_direction(state, Direction.OUT).state
        state = wf.choose_purpose(state, Purpose.OFFICE).state
        state = wf.enter_data(state, {"driver_name": "Suresh", "employee_name": "Anita",
                                      "odometer": 1000, "supervisor_name": "Ravi"}).state

        result = await submit_step(state, store, now=OUT_TIME)
        assert isinstance(result.state, SummaryStep)
        assert store.calls == ["create"]
        assert store.records[0].is_open

    @pytest.mark.asyncio
    async def test_missing_fields_never_reach_the_store(self):
        store = FakeStore()
        state = wf.identify(wf.start(), VEHICLE, []).state
        state = wf.choose_direction(state, Direction.OUT).state
        state = wf.choose_purpose(state, Purpose.OFFICE).state

        result = await submit_step(state, store, now=OUT_TIME)
        assert result.state is state
        assert result.error.fields == ["driver_name", "employee_name", "odometer", "supervisor_name"]
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_store_failure_keeps_draft_for_retry(self):
        record = open_pilot_record()
        state = pilot_in_state([record], {"fireExtinguisher": True, "jack": True})

        result = await submit_step(state, FakeStore([record], fail=True), now=IN_TIME)
        assert isinstance(result.error, RemoteError)
        assert result.state is state
        assert isinstance(result.state, DataEntryStep)

        retry = await submit_step(result.state, FakeStore([record]), now=IN_TIME)
        assert isinstance(retry.state, SummaryStep)

    @pytest.mark.asyncio
    async def test_in_with_mismatch_raises_alert(self):
        record = open_pilot_record()
        store = FakeStore([record])
        state = pilot_in_state([record], {"fireExtinguisher": False, "jack": True})
        db = MagicMock()

        with patch("fleetdesk.services.deployment_service.create_alert", new_callable=AsyncMock) as mock_alert:
            result = await submit_step(state, store, db, now=IN_TIME)

        assert result.state.mismatches == ["fireExtinguisher"]
        assert result.state.summary.total_kms == 120
        mock_alert.assert_called_once()
        assert mock_alert.call_args.args[1] == "checklist_mismatch"
        assert "Fire Extinguisher" in mock_alert.call_args.args[4]

    @pytest.mark.asyncio
    async def test_clean_return_raises_no_alert(self):
        record = open_pilot_record()
        state = pilot_in_state([record], {"fireExtinguisher": True, "jack": True})

        with patch("fleetdesk.services.deployment_service.create_alert", new_callable=AsyncMock) as mock_alert:
            result = await submit_step(state, FakeStore([record]), MagicMock(), now=IN_TIME)

        assert result.ok
        mock_alert.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_damage_note_raises_damage_alert(self):
        record = open_pilot_record()
        state = pilot_in_state([record], {"fireExtinguisher": True, "jack": True,
                                          "damages": "Scratch on rear bumper"})

        with patch("fleetdesk.services.deployment_service.create_alert", new_callable=AsyncMock) as mock_alert:
            result = await submit_step(state, FakeStore([record]), MagicMock(), now=IN_TIME)

        assert result.state.mismatches == []
        assert result.state.summary.damage_review_required is True
        types = [c.args[1] for c in mock_alert.call_args_list]
        assert types == ["damage_reported"]

    @pytest.mark.asyncio
    async def test_lower_return_odometer_raises_integrity_alert(self):
        record = open_pilot_record()
        state = pilot_in_state([record], {"fireExtinguisher": True, "jack": True}, return_odometer=900)

        with patch("fleetdesk.services.deployment_service.create_alert", new_callable=AsyncMock) as mock_alert:
            result = await submit_step(state, FakeStore([record]), MagicMock(), now=IN_TIME)

        assert result.state.summary.total_kms is None
        assert result.state.summary.flagged
        types = [c.args[1] for c in mock_alert.call_args_list]
        assert types == ["data_integrity"]

    @pytest.mark.asyncio
    async def test_wrong_step_is_rejected(self):
        store = FakeStore()
        result = await submit_step(IdentifyStep(), store, now=OUT_TIME)
        assert not result.ok
        assert store.calls == []
