"""Server-Sent Events framing for agent responses."""

import json
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, Optional

from fastapi.responses import StreamingResponse

from models.data_models import AgentResponse
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_frame(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"


def _error_frame(agent_name: str, error: Exception) -> str:
    return sse_frame({
        "immediate_display": {
            "reply": "Sorry, something went wrong while streaming the response.",
            "agent_name": agent_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        "system_state": {"intent": "error", "done": True, "metadata": {"error": str(error)}},
    })


def agent_event_stream(
    responses: Iterable[AgentResponse],
    agent_name: str,
    on_complete: Optional[Callable[[], None]] = None,
) -> Iterator[str]:
    """
    Frame agent responses as SSE events.

    Stops after the first response marked done, then always ends with
    'data: [DONE]'. An exception from the agent becomes one error event.
    on_complete runs once the agent has finished, successfully or not.
    """
    try:
        for response in responses:
            yield sse_frame(response.model_dump(exclude_none=True))
            if response.done:
                break
    except Exception as e:
        logger.error(f"{agent_name} stream failed: {e}")
        yield _error_frame(agent_name, e)
    finally:
        if on_complete is not None:
            try:
                on_complete()
            except Exception as e:
                logger.error(f"Failed to save session after {agent_name} stream: {e}")
    yield "data: [DONE]\n\n"


def sse_response(stream: Iterator[str]) -> StreamingResponse:
    return StreamingResponse(stream, media_type="text/event-stream", headers=SSE_HEADERS)
