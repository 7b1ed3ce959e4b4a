"""
Operator sessions for the deployment workflow.

Each session owns exactly one workflow state (and so one draft). States are
replaced wholesale after every transition, never mutated. Sessions live in
process memory: run a single worker, and expect unsaved drafts to be lost on
restart.
"""

import uuid
from typing import Dict

from fleetdesk.services.deployment_workflow import WorkflowState, start
from fleetdesk.utils.logger import get_logger

logger = get_logger(__name__)


class SessionNotFound(KeyError):
    pass


class WorkflowSessionManager:
    def __init__(self):
        self._sessions: Dict[str, WorkflowState] = {}

    def create(self) -> str:
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = start()
        logger.info(f"[SESSION] Started {session_id}")
        return session_id

    def get(self, session_id: str) -> WorkflowState:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id)

    def save(self, session_id: str, state: WorkflowState) -> WorkflowState:
        if session_id not in self._sessions:
            raise SessionNotFound(session_id)
        self._sessions[session_id] = state
        return state

    def discard(self, session_id: str):
        if self._sessions.pop(session_id, None) is not None:
            logger.info(f"[SESSION] Discarded {session_id}")

    def __len__(self):
        return len(self._sessions)


sessions = WorkflowSessionManager()


def get_sessions() -> WorkflowSessionManager:
    """FastAPI dependency — the process-wide session registry."""
    return sessions
