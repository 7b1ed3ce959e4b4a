"""
Vehicle deployment workflow: identify → direction → purpose → data entry → summary.

Each step is its own frozen state class carrying the draft plus whatever that
step needs (the direction status, the chosen direction, the persisted record).
Transitions are plain functions: they take the current state and return a
TransitionResult with the next state, or with the same state and an error.
Nothing here raises for operator mistakes and nothing here touches the
network; deployment_service does the fetching and persisting around it.

Back keeps everything typed so far and every photo captured. Reset (or closing
the summary) starts over with an empty draft.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_snake

from fleetdesk.exceptions import DataIntegrityError, DeploymentError, ValidationError
from fleetdesk.schemas.deployment import (
    DeploymentRecord,
    Direction,
    InData,
    OutData,
    Purpose,
)
from fleetdesk.services.checklist_service import diff
from fleetdesk.services.direction_service import DirectionStatus, evaluate_direction
from fleetdesk.services.trip_summary_service import (
    TripSummary,
    build_trip_summary,
    compute_total_kms,
    duration_minutes,
)
from fleetdesk.utils.logger import get_logger

logger = get_logger(__name__)


class Step(str, Enum):
    IDENTIFY = "identify"
    DIRECTION = "direction"
    PURPOSE = "purpose"
    DATA_ENTRY = "data_entry"
    SUMMARY = "summary"


class CaptureSlot(str, Enum):
    DRIVER_PHOTO = "driver_photo"
    VEHICLE_PHOTO = "vehicle_photo"
    SUPERVISOR_SELFIE = "supervisor_selfie"
    DAMAGE_PHOTO = "damage_photo"


@dataclass(frozen=True)
class Capture:
    slot: CaptureSlot
    handle: str     # opaque reference from the capture service


@dataclass(frozen=True)
class Draft:
    vehicle_number: str = ""
    direction: Optional[Direction] = None
    purpose: Optional[Purpose] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    captures: Tuple[Capture, ...] = ()

    def latest_capture(self, slot: CaptureSlot) -> Optional[str]:
        for capture in reversed(self.captures):
            if capture.slot == slot:
                return capture.handle
        return None

    def captures_for(self, *slots: CaptureSlot) -> List[str]:
        return [c.handle for c in self.captures if c.slot in slots]


# ── States ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class IdentifyStep:
    step: ClassVar[Step] = Step.IDENTIFY
    draft: Draft = field(default_factory=Draft)


@dataclass(frozen=True)
class DirectionStep:
    step: ClassVar[Step] = Step.DIRECTION
    draft: Draft
    status: DirectionStatus


@dataclass(frozen=True)
class PurposeStep:
    step: ClassVar[Step] = Step.PURPOSE
    draft: Draft
    status: DirectionStatus
    direction: Direction


@dataclass(frozen=True)
class DataEntryStep:
    step: ClassVar[Step] = Step.DATA_ENTRY
    draft: Draft
    status: DirectionStatus
    direction: Direction
    purpose: Purpose

    @property
    def open_deployment(self) -> Optional[DeploymentRecord]:
        return self.status.open_deployment


@dataclass(frozen=True)
class SummaryStep:
    step: ClassVar[Step] = Step.SUMMARY
    draft: Draft
    record: DeploymentRecord
    summary: Optional[TripSummary] = None   # only for IN

    @property
    def mismatches(self) -> List[str]:
        if self.record.in_data is None:
            return []
        return list(self.record.in_data.checklist_mismatches)


WorkflowState = Union[IdentifyStep, DirectionStep, PurposeStep, DataEntryStep, SummaryStep]


@dataclass(frozen=True)
class TransitionResult:
    state: WorkflowState
    error: Optional[DeploymentError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class OutSubmission:
    record: DeploymentRecord


@dataclass(frozen=True)
class InSubmission:
    deployment_id: str
    in_timestamp: datetime
    in_data: InData
    closed_record: DeploymentRecord


Submission = Union[OutSubmission, InSubmission]


@dataclass(frozen=True)
class SubmissionResult:
    submission: Optional[Submission] = None
    error: Optional[DeploymentError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ── Field sets ───────────────────────────────────────────────────────────────

CHECKLIST_FIELDS = {"driver_checklist", "vehicle_checklist"}

ALLOWED_FIELDS = {
    (Direction.OUT, Purpose.OFFICE): {"driver_name", "employee_name", "odometer", "battery_charge",
                                      "range_km", "supervisor_name", "notes"},
    (Direction.OUT, Purpose.PILOT): {"pilot_id", "location", "odometer", "battery_charge", "range_km",
                                     "supervisor_name", "notes", "driver_checklist", "vehicle_checklist"},
    (Direction.IN, Purpose.OFFICE): {"return_odometer", "supervisor_name"},
    (Direction.IN, Purpose.PILOT): {"return_odometer", "supervisor_name", "vehicle_checklist"},
}

REQUIRED_FIELDS = {
    (Direction.OUT, Purpose.OFFICE): ("driver_name", "employee_name", "odometer", "supervisor_name"),
    (Direction.OUT, Purpose.PILOT): ("pilot_id", "location", "odometer", "supervisor_name"),
    (Direction.IN, Purpose.OFFICE): ("return_odometer", "supervisor_name"),
    (Direction.IN, Purpose.PILOT): ("return_odometer", "supervisor_name"),
}

ODOMETER_FIELDS = {"odometer", "return_odometer"}


def _wrong_step(state: WorkflowState, action: str) -> TransitionResult:
    return TransitionResult(
        state, ValidationError(f"Cannot {action} during the {state.step.value} step")
    )


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _positive_number(value: Any) -> bool:
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


# ── Transitions ──────────────────────────────────────────────────────────────

def start() -> IdentifyStep:
    return IdentifyStep()


def identify(state: WorkflowState, vehicle_number: str,
             history: Sequence[DeploymentRecord]) -> TransitionResult:
    if not isinstance(state, IdentifyStep):
        return _wrong_step(state, "identify a vehicle")

    vehicle_number = (vehicle_number or "").strip()
    if not vehicle_number:
        return TransitionResult(state, ValidationError("Vehicle number is required", ["vehicle_number"]))

    draft = state.draft
    if draft.vehicle_number != vehicle_number:
        # A different vehicle is a different deployment: nothing typed or captured carries over.
        draft = Draft(vehicle_number=vehicle_number)

    status = evaluate_direction(vehicle_number, history)
    logger.info(f"[WORKFLOW] {vehicle_number}: can_go_out={status.can_go_out} "
                f"can_come_in={status.can_come_in} open={status.open_count}")
    return TransitionResult(DirectionStep(draft=draft, status=status))


def choose_direction(state: WorkflowState, direction: Direction) -> TransitionResult:
    if not isinstance(state, DirectionStep):
        return _wrong_step(state, "choose a direction")

    conflict = state.status.conflict_error()
    if conflict is not None:
        logger.warning(f"[WORKFLOW] {conflict.message}")
        return TransitionResult(state, conflict)

    if not state.status.allows(direction):
        reason = "is already OUT" if direction == Direction.OUT else "is not OUT"
        return TransitionResult(
            state, ValidationError(f"Vehicle {state.draft.vehicle_number} {reason}", ["direction"])
        )

    purpose = state.draft.purpose
    if direction == Direction.IN:
        purpose = state.status.open_deployment.purpose
    draft = replace(state.draft, direction=direction, purpose=purpose)
    return TransitionResult(PurposeStep(draft=draft, status=state.status, direction=direction))


def choose_purpose(state: WorkflowState, purpose: Purpose) -> TransitionResult:
    if not isinstance(state, PurposeStep):
        return _wrong_step(state, "choose a purpose")

    if state.direction == Direction.IN:
        open_purpose = state.status.open_deployment.purpose
        if purpose != open_purpose:
            return TransitionResult(state, ValidationError(
                f"Vehicle went OUT for {open_purpose.value}; the return must use the same purpose",
                ["purpose"],
            ))

    draft = replace(state.draft, purpose=purpose)
    return TransitionResult(DataEntryStep(
        draft=draft, status=state.status, direction=state.direction, purpose=purpose,
    ))


def enter_data(state: WorkflowState, fields: Mapping[str, Any]) -> TransitionResult:
    """Merge typed values into the draft. Office deployments never carry checklists."""
    if not isinstance(state, DataEntryStep):
        return _wrong_step(state, "enter deployment data")

    allowed = ALLOWED_FIELDS[(state.direction, state.purpose)]
    incoming = dict(fields)
    if state.purpose == Purpose.OFFICE:
        for key in CHECKLIST_FIELDS:
            incoming.pop(key, None)

    unknown = sorted(k for k in incoming if k not in allowed)
    if unknown:
        return TransitionResult(state, ValidationError(
            f"Unexpected fields for {state.purpose.value} {state.direction.value}: {', '.join(unknown)}",
            unknown,
        ))

    draft = replace(state.draft, fields={**state.draft.fields, **incoming})
    return TransitionResult(replace(state, draft=draft))


def attach_capture(state: WorkflowState, slot: CaptureSlot, handle: str) -> TransitionResult:
    if isinstance(state, SummaryStep):
        return _wrong_step(state, "attach a photo")
    if _is_blank(handle):
        return TransitionResult(state, ValidationError("Capture handle is empty", ["handle"]))
    draft = replace(state.draft, captures=state.draft.captures + (Capture(slot, handle),))
    return TransitionResult(replace(state, draft=draft))


def missing_fields(state: DataEntryStep) -> List[str]:
    values = state.draft.fields
    missing = []
    for name in REQUIRED_FIELDS[(state.direction, state.purpose)]:
        value = values.get(name)
        if name in ODOMETER_FIELDS:
            if not _positive_number(value):
                missing.append(name)
        elif _is_blank(value):
            missing.append(name)
    if state.purpose == Purpose.PILOT and not state.draft.latest_capture(CaptureSlot.SUPERVISOR_SELFIE):
        missing.append("supervisor_selfie")
    return missing


def close_record(record: DeploymentRecord, in_data: InData, in_timestamp: datetime) -> DeploymentRecord:
    """The record as it looks once closed. Totals stay empty when they would be invalid."""
    try:
        total_kms = compute_total_kms(record.out_data.odometer, in_data.return_odometer)
    except DataIntegrityError:
        total_kms = None
    try:
        minutes = duration_minutes(record.out_timestamp, in_timestamp)
    except DataIntegrityError:
        minutes = None
    return record.model_copy(update={
        "in_timestamp": in_timestamp,
        "in_data": in_data,
        "total_kms": total_kms,
        "duration_minutes": minutes,
    })


def _build_out_data(state: DataEntryStep) -> OutData:
    draft = state.draft
    payload = {k: v for k, v in draft.fields.items() if k in ALLOWED_FIELDS[(Direction.OUT, state.purpose)]}
    payload["supervisor_selfie"] = draft.latest_capture(CaptureSlot.SUPERVISOR_SELFIE)
    payload["driver_photo"] = draft.latest_capture(CaptureSlot.DRIVER_PHOTO)
    payload["vehicle_photos"] = draft.captures_for(CaptureSlot.VEHICLE_PHOTO, CaptureSlot.DAMAGE_PHOTO)
    return OutData.model_validate(payload)


def _build_in_data(state: DataEntryStep) -> InData:
    draft = state.draft
    payload = {k: v for k, v in draft.fields.items() if k in ALLOWED_FIELDS[(Direction.IN, state.purpose)]}
    payload["supervisor_selfie"] = draft.latest_capture(CaptureSlot.SUPERVISOR_SELFIE)
    payload["vehicle_photos"] = draft.captures_for(CaptureSlot.VEHICLE_PHOTO, CaptureSlot.DAMAGE_PHOTO)
    in_data = InData.model_validate(payload)

    if state.purpose == Purpose.PILOT:
        out_checklist = state.open_deployment.out_data.vehicle_checklist
        mismatches = diff(out_checklist, in_data.vehicle_checklist)
        in_data = in_data.model_copy(update={"checklist_mismatches": mismatches})
    return in_data


def prepare_submission(state: WorkflowState, now: datetime) -> SubmissionResult:
    """Run the required-field check and assemble what the record store must save."""
    if not isinstance(state, DataEntryStep):
        return SubmissionResult(error=ValidationError(f"Cannot submit during the {state.step.value} step"))

    missing = missing_fields(state)
    if missing:
        return SubmissionResult(error=ValidationError(f"Missing required fields: {', '.join(missing)}", missing))

    try:
        if state.direction == Direction.OUT:
            record = DeploymentRecord(
                id=f"{state.draft.vehicle_number}-{int(now.timestamp() * 1000)}",
                vehicle_number=state.draft.vehicle_number,
                purpose=state.purpose,
                out_timestamp=now,
                out_data=_build_out_data(state),
            )
            return SubmissionResult(submission=OutSubmission(record))

        in_data = _build_in_data(state)
    except PydanticValidationError as e:
        bad = sorted({to_snake(str(err["loc"][0])) for err in e.errors() if err.get("loc")})
        return SubmissionResult(error=ValidationError(f"Invalid values for: {', '.join(bad)}", bad))

    open_record = state.open_deployment
    return SubmissionResult(submission=InSubmission(
        deployment_id=open_record.id,
        in_timestamp=now,
        in_data=in_data,
        closed_record=close_record(open_record, in_data, now),
    ))


def complete(state: WorkflowState, persisted: DeploymentRecord) -> TransitionResult:
    """DataEntry → Summary, once the record store has accepted the submission."""
    if not isinstance(state, DataEntryStep):
        return _wrong_step(state, "complete the deployment")

    summary = None
    if state.direction == Direction.IN:
        if not persisted.is_closed:
            return TransitionResult(state, DataIntegrityError(
                f"Record store returned deployment {persisted.id} without an IN time"
            ))
        summary = build_trip_summary(persisted)
    return TransitionResult(SummaryStep(draft=state.draft, record=persisted, summary=summary))


def back(state: WorkflowState) -> TransitionResult:
    if isinstance(state, DirectionStep):
        return TransitionResult(IdentifyStep(draft=state.draft))
    if isinstance(state, PurposeStep):
        return TransitionResult(DirectionStep(draft=state.draft, status=state.status))
    if isinstance(state, DataEntryStep):
        return TransitionResult(PurposeStep(draft=state.draft, status=state.status, direction=state.direction))
    if isinstance(state, SummaryStep):
        return reset(state)
    return TransitionResult(state)


def reset(state: WorkflowState = None) -> TransitionResult:
    return TransitionResult(IdentifyStep())


# ── Presentation ─────────────────────────────────────────────────────────────

def _dump(record: Optional[DeploymentRecord]) -> Optional[dict]:
    return record.model_dump(mode="json", by_alias=True) if record is not None else None


def describe_state(state: WorkflowState) -> dict:
    draft = state.draft
    data = {
        "step": state.step.value,
        "vehicle_number": draft.vehicle_number or None,
        "direction": draft.direction.value if draft.direction else None,
        "purpose": draft.purpose.value if draft.purpose else None,
        "fields": dict(draft.fields),
        "captures": [{"slot": c.slot.value, "handle": c.handle} for c in draft.captures],
    }
    status = getattr(state, "status", None)
    if status is not None:
        data.update({
            "can_go_out": status.can_go_out,
            "can_come_in": status.can_come_in,
            "direction_conflict": status.conflict,
            "open_deployment": _dump(status.open_deployment),
        })
    if isinstance(state, DataEntryStep):
        data["missing_fields"] = missing_fields(state)
    if isinstance(state, SummaryStep):
        data["record"] = _dump(state.record)
        data["mismatches"] = state.mismatches
        data["summary"] = state.summary.to_dict() if state.summary else None
    return data
