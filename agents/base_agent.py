"""
Base class for streaming agents.

An agent turns one user message into a sequence of AgentResponse frames
(thinking updates, then a final answer). All per-conversation state is read
from and written back to the session record, so agent instances can be
created per request.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from agents.llm_client import LLMClient, Tool, ToolLoopResult
from models.data_models import AgentResponse, ImmediateDisplay, SystemState
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

MAX_HISTORY_MESSAGES = 20


class BaseAgent(ABC):
    def __init__(self, name: str, agent_id: str, llm_client: LLMClient):
        self.name = name
        self.agent_id = agent_id
        self.llm = llm_client

    @abstractmethod
    def get_tools(self) -> Dict[str, Tool]:
        """Tools this agent exposes to the model, keyed by name."""

    @abstractmethod
    def process(
        self,
        user_input: str,
        session: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> Iterator[AgentResponse]:
        """Handle one user message, yielding response frames."""

    def create_response(
        self,
        reply: str,
        intent: str = "processing",
        done: bool = False,
        **state: Any,
    ) -> AgentResponse:
        return AgentResponse(
            immediate_display=ImmediateDisplay(
                reply=reply,
                agent_name=self.name,
                timestamp=datetime.now(timezone.utc).isoformat(),
            ),
            system_state=SystemState(intent=intent, done=done, **state),
        )

    def create_thinking_response(self, message: str, progress: int) -> AgentResponse:
        return self.create_response(message, intent="thinking", progress=progress, current_stage="analyzing")

    def error_response(self, error: Exception) -> AgentResponse:
        logger.error(f"[{self.name}] processing failed: {error}")
        return self.create_response(
            "Sorry, something went wrong while handling your request. Please try again.",
            intent="error",
            done=True,
            metadata={"error": str(error), "timestamp": datetime.now(timezone.utc).isoformat()},
        )

    # Conversation history is kept per agent inside the session metadata

    def get_history(self, session: Dict[str, Any]) -> list:
        metadata = session.setdefault("metadata", {})
        return metadata.setdefault("agent_history", {}).setdefault(self.agent_id, [])

    def update_conversation_history(self, session: Dict[str, Any], user_input: str, reply: str) -> None:
        history = self.get_history(session)
        history.extend([
            {"role": "user", "content": user_input},
            {"role": "assistant", "content": reply},
        ])
        if len(history) > MAX_HISTORY_MESSAGES:
            del history[:len(history) - MAX_HISTORY_MESSAGES]

    def execute_multi_step(
        self,
        user_input: str,
        session: Dict[str, Any],
        system_prompt: str,
        max_steps: int = 6,
        tools: Optional[Dict[str, Tool]] = None,
    ) -> ToolLoopResult:
        """Run the tool loop with system prompt, prior history and the new message."""
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(self.get_history(session))
        messages.append({"role": "user", "content": user_input})
        return self.llm.run_tool_loop(messages, tools if tools is not None else self.get_tools(), max_steps)
