"""
Deployment service — runs the record-store calls around the workflow.

  identify_vehicle → resolve the typed number, fetch history, Identify → Direction
  submit_step      → required-field check, create (OUT) or close (IN), DataEntry → Summary
                     + alerts for checklist mismatches, reported damage, integrity faults

A failed store call leaves the state exactly as it was and returns the
RemoteError, so the operator can press submit again without retyping anything.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from fleetdesk.config import settings
from fleetdesk.exceptions import RemoteError
from fleetdesk.services import deployment_workflow as workflow
from fleetdesk.services.alert_service import create_alert
from fleetdesk.services.deployment_workflow import (
    InSubmission,
    OutSubmission,
    SummaryStep,
    TransitionResult,
    WorkflowState,
)
from fleetdesk.services.record_store import RecordStore
from fleetdesk.services.vehicle_service import resolve_vehicle_number
from fleetdesk.utils.logger import get_logger

logger = get_logger(__name__)


async def identify_vehicle(state: WorkflowState, typed_number: str, store: RecordStore,
                           db: Optional[Session] = None) -> TransitionResult:
    if db is not None:
        vehicle_number = resolve_vehicle_number(db, typed_number or "")
    else:
        vehicle_number = (typed_number or "").strip()

    if not vehicle_number or not isinstance(state, workflow.IdentifyStep):
        return workflow.identify(state, vehicle_number, [])

    try:
        history = await store.list_deployments_for_vehicle(vehicle_number)
    except RemoteError as e:
        logger.error(f"[WORKFLOW] History fetch failed for {vehicle_number}: {e.message}")
        return TransitionResult(state, e)

    return workflow.identify(state, vehicle_number, history)


async def submit_step(state: WorkflowState, store: RecordStore, db: Optional[Session] = None,
                      now: Optional[datetime] = None) -> TransitionResult:
    now = now or datetime.now(timezone.utc)
    prepared = workflow.prepare_submission(state, now)
    if not prepared.ok:
        return TransitionResult(state, prepared.error)

    submission = prepared.submission
    try:
        if isinstance(submission, OutSubmission):
            persisted = await store.create_deployment(submission.record)
        else:
            persisted = await store.close_deployment(
                submission.deployment_id, submission.in_data, submission.in_timestamp
            )
    except RemoteError as e:
        logger.error(f"[WORKFLOW] Submit failed for {state.draft.vehicle_number}: {e.message} "
                     f"— draft kept for retry")
        return TransitionResult(state, e)

    result = workflow.complete(state, persisted)
    if result.ok and isinstance(submission, InSubmission) and db is not None:
        await raise_return_alerts(db, result.state)
    return result


async def raise_return_alerts(db: Session, state: SummaryStep):
    summary = state.summary
    if summary is None:
        return

    if summary.mismatches and settings.MISMATCH_ALERTS_ENABLED:
        await create_alert(
            db,
            "checklist_mismatch",
            summary.vehicle_number,
            summary.deployment_id,
            f"{summary.vehicle_number} returned without: {', '.join(summary.mismatch_labels)}",
        )

    if summary.damage_review_required and settings.DAMAGE_ALERTS_ENABLED:
        note = state.record.in_data.vehicle_checklist.damages.strip()
        await create_alert(
            db,
            "damage_reported",
            summary.vehicle_number,
            summary.deployment_id,
            f"New damage noted on {summary.vehicle_number}: {note}",
        )

    if summary.integrity_errors:
        await create_alert(
            db,
            "data_integrity",
            summary.vehicle_number,
            summary.deployment_id,
            "; ".join(summary.integrity_errors),
        )
