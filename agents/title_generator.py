"""Short conversation titles for the session list."""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from agents.llm_client import LLMClient
from agents.prompt_template import TITLE_PROMPT
from backend.errors import ApiError
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

CONTEXT_MESSAGES = 6
MESSAGE_PREVIEW_CHARS = 200
# Regenerate only after this many new messages since the last title
TITLE_REFRESH_MESSAGES = 3

_LABEL_RE = re.compile(r"^(title|标题)\s*[:：]\s*", re.IGNORECASE)
_QUOTES = "\"'“”‘’「」《》"


def _is_user(message: Dict[str, Any]) -> bool:
    return message.get("type") == "user_message" or message.get("role") == "user"


def build_title_context(history: list) -> str:
    """First few non-empty messages as 'User:'/'AI:' lines, each truncated."""
    lines = []
    messages = [m for m in history if (m.get("content") or "").strip()][:CONTEXT_MESSAGES]
    for message in messages:
        content = message["content"]
        if len(content) > MESSAGE_PREVIEW_CHARS:
            content = content[:MESSAGE_PREVIEW_CHARS] + "..."
        lines.append(f"{'User' if _is_user(message) else 'AI'}: {content}")
    return "\n".join(lines)


def clean_title(raw: str, max_length: int) -> str:
    title = (raw or "").strip()
    title = title.splitlines()[0].strip() if title else ""
    title = _LABEL_RE.sub("", title)
    title = title.strip(_QUOTES).strip()
    return title[:max_length].strip()


def generate_title(
    llm_client: LLMClient,
    session: Dict[str, Any],
    message_count: Optional[int] = None,
    max_length: int = 20,
) -> Dict[str, Any]:
    """
    Produce (or reuse) a title for a conversation session.

    The stored title is reused while fewer than four messages were added
    since it was generated. A new title is written back to the session.

    Returns:
        Dict with title, cached and generated_at

    Raises:
        ApiError: 400 if the conversation is empty, 500 if the model
                  returned nothing usable
    """
    history = session.get("conversation_history") or []
    if not history:
        raise ApiError(400, "empty_history", "Conversation history is empty, cannot generate a title")

    if (
        session.get("title")
        and message_count
        and message_count <= (session.get("last_title_message_count") or 0) + TITLE_REFRESH_MESSAGES
    ):
        return {
            "title": session["title"],
            "cached": True,
            "generated_at": session.get("title_generated_at"),
        }

    context = build_title_context(history)
    if not context:
        raise ApiError(400, "empty_history", "Not enough message content to generate a title")

    raw = llm_client.send_prompt(TITLE_PROMPT.format(max_length=max_length, conversation=context))
    title = clean_title(raw, max_length)
    if not title:
        raise ApiError(500, "empty_title", "The model returned an empty title")

    generated_at = datetime.now(timezone.utc).isoformat()
    session["title"] = title
    session["title_generated_at"] = generated_at
    session["last_title_message_count"] = message_count if message_count is not None else len(history)
    logger.info(f"Generated title for session {session.get('id')}: {title}")

    return {"title": title, "cached": False, "generated_at": generated_at}
