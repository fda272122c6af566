"""
Agent endpoints.

The chat agents stream their responses as Server-Sent Events. Each turn is
recorded in the session's conversation history once the stream finishes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field

from agents.coding_agent import CodingAgent
from agents.file_tools import READ_ONLY_TOOLS, FileTools
from agents.info_collection import InfoCollectionAgent
from agents.llm_client import LLMClient
from backend.deps import (
    get_github,
    get_llm_client,
    get_optional_sandbox,
    get_sessions,
    get_supabase,
    require_user_id,
)
from backend.errors import ApiError
from backend.streaming import agent_event_stream, sse_response
from integrations.github import GitHubClient
from integrations.sandbox import SandboxService
from models.data_models import AgentResponse, CamelModel
from storage.session_store import SessionStore
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

router = APIRouter(prefix="/api", tags=["agents"])


class AgentRequest(CamelModel):
    message: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    context: Dict[str, Any] = Field(default_factory=dict)


class FileOperationRequest(CamelModel):
    session_id: str = Field(..., alias="sessionId", min_length=1)
    operation: str = Field(..., min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_coding_session(
    supabase: SupabaseClient, session_id: str, user_id: str, claim: bool = False
) -> None:
    """
    404 unless the coding session is unclaimed or belongs to the caller.

    With claim=True an unclaimed session is created for the caller, so its
    files can be written.
    """
    row = supabase.get_coding_session(session_id, include_files=False)
    if row is not None and row.get("user_id") != user_id:
        logger.warning(f"User {user_id} asked for coding session {session_id} they do not own")
        raise ApiError(404, "session_not_found", "Coding session not found")
    if row is None and claim:
        supabase.upsert_coding_session(user_id, session_id)


def _load_session(sessions: SessionStore, user_id: str, session_id: Optional[str]) -> Dict[str, Any]:
    session = sessions.get(user_id, session_id) if session_id else None
    return session if session is not None else sessions.create(user_id, session_id=session_id)


def _run_agent_turn(agent, message: str, session: Dict[str, Any], context: Dict[str, Any], replies: List[AgentResponse]):
    """Run the agent, remembering every frame for the conversation history."""
    for response in agent.process(message, session, context):
        replies.append(response)
        yield response


def _record_turn(
    sessions: SessionStore,
    user_id: str,
    session: Dict[str, Any],
    agent_name: str,
    message: str,
    replies: List[AgentResponse],
) -> None:
    history = session.setdefault("conversation_history", [])
    history.append({"type": "user_message", "role": "user", "content": message, "timestamp": _now()})

    final = next((r for r in reversed(replies) if r.system_state.intent != "thinking"), None)
    if final is not None:
        history.append({
            "type": "agent_response",
            "role": "assistant",
            "agent": agent_name,
            "content": final.immediate_display.reply,
            "intent": final.system_state.intent,
            "timestamp": final.immediate_display.timestamp,
        })

    metadata = session.setdefault("metadata", {})
    metrics = metadata.setdefault("metrics", {})
    metrics["user_interactions"] = metrics.get("user_interactions", 0) + 1
    flow = session.setdefault("agent_flow", [])
    if not flow or flow[-1].get("agent") != agent_name:
        flow.append({"agent": agent_name, "started_at": _now()})
        metrics["agent_transitions"] = metrics.get("agent_transitions", 0) + 1
    if final is not None and final.system_state.intent in ("error", "error_recovery"):
        metrics["errors_encountered"] = metrics.get("errors_encountered", 0) + 1

    sessions.put(user_id, session["id"], session)


def _stream_turn(agent, body: AgentRequest, user_id: str, sessions: SessionStore):
    if not body.message or not body.message.strip():
        raise ApiError(400, "missing_message", "message is required")

    session = _load_session(sessions, user_id, body.session_id)
    replies: List[AgentResponse] = []
    logger.info(f"{agent.name} turn for session {session['id']} ({len(body.message)} chars)")

    stream = agent_event_stream(
        _run_agent_turn(agent, body.message, session, body.context, replies),
        agent.name,
        on_complete=lambda: _record_turn(sessions, user_id, session, agent.agent_id, body.message, replies),
    )
    return sse_response(stream)


@router.post("/agents/info-collection")
def info_collection(
    body: AgentRequest,
    user_id: str = Depends(require_user_id),
    sessions: SessionStore = Depends(get_sessions),
    llm: LLMClient = Depends(get_llm_client),
    github: GitHubClient = Depends(get_github),
):
    """
    Stream the information collection agent's reply.

    Body:
    - message: user message (required)
    - sessionId: session to continue (created if unknown)
    - context: optional welcome_data {user_role, use_case} and parsed_documents
    """
    return _stream_turn(InfoCollectionAgent(llm, github=github), body, user_id, sessions)


@router.post("/coding-agent")
def coding_agent(
    body: AgentRequest,
    user_id: str = Depends(require_user_id),
    sessions: SessionStore = Depends(get_sessions),
    llm: LLMClient = Depends(get_llm_client),
    supabase: SupabaseClient = Depends(get_supabase),
    sandbox_service: Optional[SandboxService] = Depends(get_optional_sandbox),
):
    """
    Stream the coding agent's work on the session's project.

    context may set mode (initial, incremental, analysis), project_title and
    sandbox_id (enables the run_command tool).
    """
    if body.session_id:
        _require_coding_session(supabase, body.session_id, user_id)
    sandbox_id = body.context.get("sandbox_id")
    sandbox = None
    if sandbox_id and sandbox_service is not None:
        if not sandbox_service.owns(sandbox_id, user_id):
            raise ApiError(404, "sandbox_not_found", "Sandbox not found")
        sandbox = sandbox_service
    return _stream_turn(CodingAgent(llm, supabase, sandbox=sandbox), body, user_id, sessions)


@router.post("/coding-agent/file-operation")
def file_operation(
    body: FileOperationRequest,
    user_id: str = Depends(require_user_id),
    supabase: SupabaseClient = Depends(get_supabase),
):
    """
    Run one file tool directly (read_file, write_file, edit_file, append_to_file,
    delete_file, list_files, search_code, get_file_structure).
    """
    _require_coding_session(supabase, body.session_id, user_id, claim=body.operation not in READ_ONLY_TOOLS)
    try:
        result = FileTools(supabase, body.session_id).run(body.operation, **body.params)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"File operation {body.operation} failed: {e}")
        raise ApiError(500, "file_operation_failed", f"File operation failed: {e}")

    if not result.get("success"):
        raise ApiError(400, "file_operation_failed", result.get("error", "File operation failed"))
    return result


@router.get("/coding-agent/files")
def list_project_files(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    user_id: str = Depends(require_user_id),
    supabase: SupabaseClient = Depends(get_supabase),
):
    """All files of a coding session plus project statistics."""
    if not session_id:
        raise ApiError(400, "missing_session_id", "sessionId is required")
    _require_coding_session(supabase, session_id, user_id)
    try:
        return {
            "success": True,
            "files": supabase.get_coding_files(session_id),
            "stats": supabase.get_project_stats(session_id),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list files for {session_id}: {e}")
        raise ApiError(500, "files_failed", f"Failed to list project files: {e}")
