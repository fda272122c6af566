"""In-memory store for conversation sessions.

Sessions are plain dicts keyed by (user_id, session_id). They live only in
this process: nothing is persisted, nothing is evicted, and a restart or a
second worker starts from an empty map.
"""

import copy
import threading
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from utils.logger import setup_logger

logger = setup_logger(name=__name__)

SESSION_VERSION = "1.0.0"
STAGES = ["welcome", "info_collection", "page_design", "code_generation"]

Key = Tuple[str, str]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_metadata() -> Dict[str, Any]:
    now = _now()
    return {
        "created_at": now,
        "updated_at": now,
        "last_active": now,
        "version": SESSION_VERSION,
        "progress": {
            "current_stage": STAGES[0],
            "completed_stages": [],
            "total_stages": len(STAGES),
            "percentage": 0,
        },
        "metrics": {
            "total_time": 0,
            "user_interactions": 0,
            "agent_transitions": 0,
            "errors_encountered": 0,
        },
        "settings": {
            "auto_save": True,
            "reminder_enabled": False,
            "privacy_level": "private",
        },
    }


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


class SessionStore:
    """Process-local session map.

    A lock guards the dict itself; two requests updating the same session
    still race, and the later write wins.
    """

    def __init__(self):
        self._sessions: Dict[Key, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create(
        self,
        user_id: str,
        session_id: Optional[str] = None,
        initial: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create a session for a user, replacing any session with the same id."""
        session_id = session_id or new_session_id()
        initial = dict(initial or {})
        metadata = {**default_metadata(), **initial.pop("metadata", {})}

        record = {
            "id": session_id,
            "user_id": user_id,
            "status": "active",
            "title": None,
            "conversation_history": [],
            "collected_data": {},
            "agent_flow": [],
            **initial,
            "metadata": metadata,
        }
        with self._lock:
            self._sessions[(user_id, session_id)] = record
        logger.info(f"Created session {session_id} for user {user_id}")
        return record

    def get(self, user_id: str, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._sessions.get((user_id, session_id))

    def put(self, user_id: str, session_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Store a record as-is, refreshing its activity timestamps."""
        now = _now()
        metadata = record.setdefault("metadata", default_metadata())
        metadata["updated_at"] = now
        metadata["last_active"] = now
        record["id"] = session_id
        record["user_id"] = user_id
        with self._lock:
            self._sessions[(user_id, session_id)] = record
        return record

    def delete(self, user_id: str, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop((user_id, session_id), None)
        if removed is not None:
            logger.info(f"Deleted session {session_id} for user {user_id}")
        return removed is not None

    def sync(self, user_id: str, session_id: str, incoming: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge a session pushed by the client into the stored copy.

        The client's copy wins for everything except the progress counters
        (current stage, percentage, completed stages) and the metrics, which
        only the server advances.

        Args:
            user_id: Owner of the session
            session_id: Session being synced
            incoming: Full session object sent by the client

        Returns:
            The merged record now stored
        """
        incoming = copy.deepcopy(incoming)
        existing = self.get(user_id, session_id)

        if existing is None:
            incoming.setdefault("metadata", default_metadata())
            logger.info(f"Sync created session {session_id} for user {user_id}")
            return self.put(user_id, session_id, incoming)

        server_meta = existing.get("metadata") or {}
        server_progress = server_meta.get("progress") or {}
        client_meta = incoming.get("metadata") or {}
        progress = {
            **(client_meta.get("progress") or {}),
            "current_stage": server_progress.get("current_stage", STAGES[0]),
            "percentage": server_progress.get("percentage", 0),
            "completed_stages": list(server_progress.get("completed_stages", [])),
        }
        merged = {
            **incoming,
            "metadata": {
                **client_meta,
                "progress": progress,
                "metrics": server_meta.get("metrics") or default_metadata()["metrics"],
                "created_at": server_meta.get("created_at", client_meta.get("created_at")),
            },
        }
        logger.debug(f"Synced session {session_id} for user {user_id}")
        return self.put(user_id, session_id, merged)

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """All of a user's sessions, most recently active first."""
        with self._lock:
            sessions = [s for (owner, _), s in self._sessions.items() if owner == user_id]
        return sorted(
            sessions,
            key=lambda s: (s.get("metadata") or {}).get("last_active") or "",
            reverse=True,
        )

    def reset_to_stage(self, user_id: str, session_id: str, stage: str) -> bool:
        """Move a session back (or forward) to a stage; False if impossible."""
        session = self.get(user_id, session_id)
        if session is None or stage not in STAGES:
            return False

        index = STAGES.index(stage)
        progress = session["metadata"].setdefault("progress", {})
        progress["current_stage"] = stage
        progress["completed_stages"] = STAGES[:index]
        progress["total_stages"] = len(STAGES)
        progress["percentage"] = round(index / len(STAGES) * 100)
        self.put(user_id, session_id, session)
        logger.info(f"Reset session {session_id} to stage {stage}")
        return True

    def status(self, user_id: str, session_id: str) -> Optional[Dict[str, Any]]:
        """Short summary of a session for status polling."""
        session = self.get(user_id, session_id)
        if session is None:
            return None
        metadata = session.get("metadata") or {}
        progress = metadata.get("progress") or {}
        return {
            "id": session_id,
            "status": session.get("status", "active"),
            "title": session.get("title"),
            "current_stage": progress.get("current_stage"),
            "percentage": progress.get("percentage", 0),
            "completed_stages": progress.get("completed_stages", []),
            "message_count": len(session.get("conversation_history") or []),
            "last_active": metadata.get("last_active"),
        }

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    """The process-wide session store."""
    return SessionStore()
