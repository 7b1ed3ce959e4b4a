"""
Decides which direction a vehicle may move next, from its deployment history.

  - no open deployment      → OUT only
  - exactly one open        → IN only (the open record is returned for the IN form)
  - more than one open      → neither; a data-integrity conflict the operator must see

Only the history passed in is consulted. Cross-session exclusion is enforced
by the record store (see SqlRecordStore.create_deployment).
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from fleetdesk.exceptions import DirectionConflictError
from fleetdesk.schemas.deployment import DeploymentRecord, Direction
from fleetdesk.utils.identifiers import normalize_vehicle_number


@dataclass(frozen=True)
class DirectionStatus:
    vehicle_number: str
    can_go_out: bool
    can_come_in: bool
    open_deployment: Optional[DeploymentRecord] = None
    open_count: int = 0

    @property
    def conflict(self) -> bool:
        return not self.can_go_out and not self.can_come_in

    def allows(self, direction: Direction) -> bool:
        if direction == Direction.OUT:
            return self.can_go_out
        return self.can_come_in

    def conflict_error(self) -> Optional[DirectionConflictError]:
        if not self.conflict:
            return None
        return DirectionConflictError(
            f"Vehicle {self.vehicle_number} has {self.open_count} open deployments; "
            f"no direction can be chosen until this is resolved",
            vehicle_number=self.vehicle_number,
            open_count=self.open_count,
        )


def evaluate_direction(vehicle_number: str, deployments: Iterable[DeploymentRecord]) -> DirectionStatus:
    target = normalize_vehicle_number(vehicle_number)
    open_records = [
        d for d in deployments
        if normalize_vehicle_number(d.vehicle_number) == target and d.is_open
    ]
    count = len(open_records)
    return DirectionStatus(
        vehicle_number=vehicle_number,
        can_go_out=count == 0,
        can_come_in=count == 1,
        open_deployment=open_records[0] if count == 1 else None,
        open_count=count,
    )
