"""
Deployment workflow endpoints — one operator session per console tab.

POST   /workflow/sessions                    — start a session (Identify step)
GET    /workflow/sessions/{id}               — current step + draft
POST   /workflow/sessions/{id}/identify      — Identify → Direction
POST   /workflow/sessions/{id}/direction     — Direction → Purpose
POST   /workflow/sessions/{id}/purpose       — Purpose → DataEntry
PATCH  /workflow/sessions/{id}/fields        — save typed values
POST   /workflow/sessions/{id}/captures      — upload a photo (raw image body)
POST   /workflow/sessions/{id}/submit        — DataEntry → Summary (persists)
POST   /workflow/sessions/{id}/back | /reset
DELETE /workflow/sessions/{id}               — abandon the draft

Operator mistakes come back as 200 with ok=false and the unchanged state.
Record-store failures come back as 502 (or the store's 4xx) with the same body,
so the console can offer a retry.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.exceptions import DeploymentError, RemoteError
from fleetdesk.schemas.workflow import DirectionRequest, FieldsRequest, IdentifyRequest, PurposeRequest
from fleetdesk.services import deployment_workflow as workflow
from fleetdesk.services.capture_service import store_capture
from fleetdesk.services.deployment_service import identify_vehicle, submit_step
from fleetdesk.services.deployment_workflow import CaptureSlot, TransitionResult
from fleetdesk.services.record_store import RecordStore, get_record_store
from fleetdesk.services.session_service import SessionNotFound, WorkflowSessionManager, get_sessions
from fleetdesk.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _load(sessions: WorkflowSessionManager, session_id: str):
    try:
        return sessions.get(session_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail=f"Workflow session '{session_id}' not found")


def _respond(sessions: WorkflowSessionManager, session_id: str, result: TransitionResult):
    sessions.save(session_id, result.state)
    body = {
        "session_id": session_id,
        "ok": result.ok,
        "error": result.error.to_dict() if result.error else None,
        "state": workflow.describe_state(result.state),
    }
    if isinstance(result.error, RemoteError):
        code = result.error.status_code
        return JSONResponse(status_code=code if code and 400 <= code < 500 else 502, content=body)
    return body


@router.post("/workflow/sessions", summary="Start a deployment workflow session")
def start_session(sessions: WorkflowSessionManager = Depends(get_sessions)):
    session_id = sessions.create()
    return {"session_id": session_id, "ok": True, "error": None,
            "state": workflow.describe_state(sessions.get(session_id))}


@router.get("/workflow/sessions/{session_id}", summary="Current workflow step")
def get_session(session_id: str, sessions: WorkflowSessionManager = Depends(get_sessions)):
    state = _load(sessions, session_id)
    return {"session_id": session_id, "ok": True, "error": None, "state": workflow.describe_state(state)}


@router.delete("/workflow/sessions/{session_id}", summary="Abandon a workflow session")
def discard_session(session_id: str, sessions: WorkflowSessionManager = Depends(get_sessions)):
    _load(sessions, session_id)
    sessions.discard(session_id)
    return {"session_id": session_id, "status": "discarded"}


@router.post("/workflow/sessions/{session_id}/identify", summary="Identify the vehicle")
async def identify(session_id: str, body: IdentifyRequest,
                   sessions: WorkflowSessionManager = Depends(get_sessions),
                   store: RecordStore = Depends(get_record_store),
                   db: Session = Depends(get_db)):
    state = _load(sessions, session_id)
    result = await identify_vehicle(state, body.vehicle_number, store, db)
    return _respond(sessions, session_id, result)


@router.post("/workflow/sessions/{session_id}/direction", summary="Choose OUT or IN")
def choose_direction(session_id: str, body: DirectionRequest,
                     sessions: WorkflowSessionManager = Depends(get_sessions)):
    state = _load(sessions, session_id)
    return _respond(sessions, session_id, workflow.choose_direction(state, body.direction))


@router.post("/workflow/sessions/{session_id}/purpose", summary="Choose Office or Pilot")
def choose_purpose(session_id: str, body: PurposeRequest,
                   sessions: WorkflowSessionManager = Depends(get_sessions)):
    state = _load(sessions, session_id)
    return _respond(sessions, session_id, workflow.choose_purpose(state, body.purpose))


@router.patch("/workflow/sessions/{session_id}/fields", summary="Save typed form values")
def enter_fields(session_id: str, body: FieldsRequest,
                 sessions: WorkflowSessionManager = Depends(get_sessions)):
    state = _load(sessions, session_id)
    return _respond(sessions, session_id, workflow.enter_data(state, body.fields))


@router.post("/workflow/sessions/{session_id}/captures", summary="Upload a photo for the draft")
async def upload_capture(session_id: str, slot: CaptureSlot, request: Request,
                         sessions: WorkflowSessionManager = Depends(get_sessions)):
    """Send the image bytes as the request body with an image/* content-type."""
    state = _load(sessions, session_id)
    data = await request.body()
    content_type = request.headers.get("content-type", "image/jpeg")
    try:
        handle = store_capture(data, slot.value, session_id, content_type)
    except DeploymentError as e:
        return _respond(sessions, session_id, TransitionResult(state, e))
    return _respond(sessions, session_id, workflow.attach_capture(state, slot, handle))


@router.post("/workflow/sessions/{session_id}/submit", summary="Submit OUT or IN data")
async def submit(session_id: str,
                 sessions: WorkflowSessionManager = Depends(get_sessions),
                 store: RecordStore = Depends(get_record_store),
                 db: Session = Depends(get_db)):
    state = _load(sessions, session_id)
    result = await submit_step(state, store, db)
    return _respond(sessions, session_id, result)


@router.post("/workflow/sessions/{session_id}/back", summary="Go back one step")
def go_back(session_id: str, sessions: WorkflowSessionManager = Depends(get_sessions)):
    state = _load(sessions, session_id)
    return _respond(sessions, session_id, workflow.back(state))


@router.post("/workflow/sessions/{session_id}/reset", summary="Close the summary / start over")
def reset(session_id: str, sessions: WorkflowSessionManager = Depends(get_sessions)):
    state = _load(sessions, session_id)
    return _respond(sessions, session_id, workflow.reset(state))
