"""
Conversation session endpoints backed by the in-memory session store.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field

from agents.llm_client import LLMClient
from agents.title_generator import generate_title
from backend.deps import get_current_user_id, get_llm_client, get_sessions, require_user_id
from backend.errors import ApiError
from models.data_models import CamelModel
from storage.session_store import STAGES, SessionStore
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

router = APIRouter(prefix="/api", tags=["sessions"])


class CreateSessionRequest(CamelModel):
    session_id: Optional[str] = Field(None, alias="sessionId")
    initial_input: Optional[Dict[str, Any]] = Field(None, alias="initialInput")


class ResetStageRequest(CamelModel):
    session_id: str = Field(..., alias="sessionId")
    target_stage: str = Field(..., alias="targetStage")


class SyncSessionRequest(CamelModel):
    session_id: Optional[str] = Field(None, alias="sessionId")
    session_data: Optional[Dict[str, Any]] = Field(None, alias="sessionData")


class GenTitleRequest(CamelModel):
    conversation_id: str = Field(..., alias="conversationId", min_length=1)
    message_count: Optional[int] = Field(None, alias="messageCount", ge=0)
    model: Optional[str] = None
    max_length: int = Field(20, alias="maxLength", ge=5, le=100)


@router.post("/session")
def create_session(
    body: Optional[CreateSessionRequest] = None,
    user_id: str = Depends(require_user_id),
    sessions: SessionStore = Depends(get_sessions),
):
    """Create a conversation session for the signed-in user."""
    body = body or CreateSessionRequest()
    initial = {}
    if body.initial_input:
        initial["collected_data"] = {"initial_input": body.initial_input}
    session = sessions.create(user_id, session_id=body.session_id, initial=initial)
    return {"success": True, "sessionId": session["id"], "session": session}


@router.get("/session")
def get_session_status(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    debug: bool = Query(False),
    user_id: str = Depends(require_user_id),
    sessions: SessionStore = Depends(get_sessions),
):
    """
    Status of one session.

    Query Parameters:
    - sessionId: required
    - debug: include store diagnostics when the session is missing
    """
    if not session_id:
        raise ApiError(400, "missing_session_id", "sessionId is required")

    status = sessions.status(user_id, session_id)
    if status is None:
        details = None
        if debug:
            details = {
                "user_id": user_id,
                "session_id": session_id,
                "user_session_ids": [s["id"] for s in sessions.list_for_user(user_id)],
                "total_sessions": sessions.count(),
            }
        raise ApiError(404, "session_not_found", "Session not found", details=details)

    return {"success": True, "status": status, "session": sessions.get(user_id, session_id)}


@router.patch("/session")
def reset_session_stage(
    body: ResetStageRequest,
    user_id: str = Depends(require_user_id),
    sessions: SessionStore = Depends(get_sessions),
):
    """Move a session to another stage (welcome, info_collection, page_design, code_generation)."""
    if not sessions.reset_to_stage(user_id, body.session_id, body.target_stage):
        raise ApiError(
            400,
            "reset_failed",
            f"Could not reset session to '{body.target_stage}'",
            details={"valid_stages": STAGES},
        )
    return {"success": True, "status": sessions.status(user_id, body.session_id)}


@router.post("/session/sync")
def sync_session(
    body: SyncSessionRequest,
    user_id: str = Depends(require_user_id),
    sessions: SessionStore = Depends(get_sessions),
):
    """
    Push the client's copy of a session.

    The server keeps its own progress counters and metrics; everything else
    comes from the client.
    """
    if not body.session_id or not isinstance(body.session_data, dict):
        raise ApiError(400, "invalid_request", "sessionId and sessionData are required")
    try:
        merged = sessions.sync(user_id, body.session_id, body.session_data)
        return {"success": True, "session": merged}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to sync session {body.session_id}: {e}")
        raise ApiError(500, "sync_failed", f"Failed to sync session: {e}")


@router.get("/sessions")
def list_sessions(
    user_id: Optional[str] = Depends(get_current_user_id),
    sessions: SessionStore = Depends(get_sessions),
):
    """The caller's sessions, most recently active first (empty when signed out)."""
    if not user_id:
        return {"success": True, "sessions": []}
    return {"success": True, "sessions": sessions.list_for_user(user_id)}


@router.delete("/sessions/{session_id}")
def delete_session(
    session_id: str,
    user_id: str = Depends(require_user_id),
    sessions: SessionStore = Depends(get_sessions),
):
    if not sessions.delete(user_id, session_id):
        raise ApiError(404, "session_not_found", "Session not found")
    return {"success": True, "message": "Session deleted"}


@router.post("/conversations/gen-title")
def generate_conversation_title(
    body: GenTitleRequest,
    user_id: str = Depends(require_user_id),
    sessions: SessionStore = Depends(get_sessions),
    llm: LLMClient = Depends(get_llm_client),
):
    """Generate (or return the cached) short title of a conversation."""
    session = sessions.get(user_id, body.conversation_id)
    if session is None:
        raise ApiError(404, "session_not_found", "Conversation not found")

    try:
        if body.model:
            llm.model = body.model
        result = generate_title(llm, session, message_count=body.message_count, max_length=body.max_length)
        if not result["cached"]:
            sessions.put(user_id, body.conversation_id, session)
        return {"success": True, **result}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to generate title for {body.conversation_id}: {e}")
        raise ApiError(500, "title_failed", f"Failed to generate title: {e}")
