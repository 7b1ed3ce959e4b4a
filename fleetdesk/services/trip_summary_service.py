"""
Trip summary for a closed deployment.

Pure derivation, no I/O: duration, total distance, checklist mismatches and the
supervisors on both ends. A negative or zero duration, or an odometer reading
lower at IN than at OUT, is a data-integrity fault. The summary is still built
with the faulty field left empty and the fault listed in integrity_errors, so
the screen and the exporters can show it.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple, Union

from fleetdesk.exceptions import DataIntegrityError
from fleetdesk.schemas.deployment import DeploymentRecord
from fleetdesk.services.checklist_service import damage_note_changed, describe_mismatches

Timestamp = Union[datetime, str]


@dataclass(frozen=True)
class TripSummary:
    deployment_id: str
    vehicle_number: str
    purpose: str
    out_timestamp: datetime
    in_timestamp: datetime
    duration: Optional[str]
    duration_minutes: Optional[int]
    total_kms: Optional[float]
    mismatches: Tuple[str, ...]
    mismatch_labels: Tuple[str, ...]
    out_supervisor: str
    in_supervisor: str
    damage_review_required: bool = False
    integrity_errors: Tuple[str, ...] = ()

    @property
    def flagged(self) -> bool:
        return bool(self.integrity_errors)

    def raise_for_integrity(self):
        if self.integrity_errors:
            raise DataIntegrityError("; ".join(self.integrity_errors))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["out_timestamp"] = self.out_timestamp.isoformat()
        data["in_timestamp"] = self.in_timestamp.isoformat()
        data["mismatches"] = list(self.mismatches)
        data["mismatch_labels"] = list(self.mismatch_labels)
        data["integrity_errors"] = list(self.integrity_errors)
        data["flagged"] = self.flagged
        return data


def to_utc(value: Timestamp) -> datetime:
    """ISO string or datetime -> aware UTC datetime. Naive values are taken as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def duration_minutes(out_timestamp: Timestamp, in_timestamp: Timestamp) -> int:
    delta = to_utc(in_timestamp) - to_utc(out_timestamp)
    if delta.total_seconds() <= 0:
        raise DataIntegrityError(
            f"IN time {to_utc(in_timestamp).isoformat()} is not after OUT time "
            f"{to_utc(out_timestamp).isoformat()}"
        )
    # Whole minutes; a positive trip shorter than a minute counts as 1.
    return max(1, int(delta.total_seconds() // 60))


def format_duration(out_timestamp: Timestamp, in_timestamp: Timestamp) -> str:
    """'1h 30m', or '45m' under an hour. Under a minute reads '1m'."""
    hours, minutes = divmod(duration_minutes(out_timestamp, in_timestamp), 60)
    if hours < 1:
        return f"{minutes}m"
    return f"{hours}h {minutes}m"


def compute_total_kms(out_odometer: float, in_odometer: float) -> float:
    total = in_odometer - out_odometer
    if total < 0:
        raise DataIntegrityError(
            f"Return odometer {in_odometer} is lower than departure odometer {out_odometer}"
        )
    return total


def build_trip_summary(record: DeploymentRecord) -> TripSummary:
    if not record.is_closed or record.in_data is None:
        raise DataIntegrityError(f"Deployment {record.id} is not closed; no trip summary available")

    errors = []
    duration = minutes = None
    try:
        minutes = duration_minutes(record.out_timestamp, record.in_timestamp)
        duration = format_duration(record.out_timestamp, record.in_timestamp)
    except DataIntegrityError as e:
        errors.append(e.message)

    total_kms = None
    try:
        total_kms = compute_total_kms(record.out_data.odometer, record.in_data.return_odometer)
    except DataIntegrityError as e:
        errors.append(e.message)

    mismatches = tuple(record.in_data.checklist_mismatches)
    return TripSummary(
        deployment_id=record.id,
        vehicle_number=record.vehicle_number,
        purpose=record.purpose.value,
        out_timestamp=to_utc(record.out_timestamp),
        in_timestamp=to_utc(record.in_timestamp),
        duration=duration,
        duration_minutes=minutes,
        total_kms=total_kms,
        mismatches=mismatches,
        mismatch_labels=tuple(describe_mismatches(mismatches)),
        out_supervisor=record.out_data.supervisor_name,
        in_supervisor=record.in_data.supervisor_name,
        damage_review_required=damage_note_changed(
            record.out_data.vehicle_checklist, record.in_data.vehicle_checklist
        ),
        integrity_errors=tuple(errors),
    )
