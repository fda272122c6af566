"""
Coding agent.

Builds and edits a Next.js project for the user through file tools backed by
the coding_files table. Three modes:
- initial: generate a project from scratch (up to 8 model steps)
- incremental: change an existing project (up to 6 steps)
- analysis: read-only questions about the code (up to 4 steps)
"""

from typing import Any, Dict, Iterator, List, Optional

from agents.base_agent import BaseAgent
from agents.file_tools import FileTools
from agents.llm_client import LLMClient, Tool, ToolLoopResult
from agents.prompt_template import CODING_MODE_INSTRUCTIONS, CODING_SYSTEM_PROMPT
from integrations.sandbox import SandboxService
from models.data_models import AgentResponse
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

MODE_MAX_STEPS = {"initial": 8, "incremental": 6, "analysis": 4}
MODE_INTENTS = {
    "initial": "project_generation_complete",
    "incremental": "incremental_modification_complete",
    "analysis": "analysis_complete",
}

_ANALYSIS_WORDS = ("analy", "explain", "review", "check", "why ", "what ", "how does")


def determine_mode(user_input: str, has_files: bool) -> str:
    """An empty project is always generated from scratch; questions about an existing one are read-only."""
    if not has_files:
        return "initial"
    text = f"{user_input.lower()} "
    return "analysis" if any(word in text for word in _ANALYSIS_WORDS) else "incremental"


def summarize_file_changes(result: ToolLoopResult) -> Dict[str, List[str]]:
    created, modified, deleted, commands = [], [], [], []
    for entry in result.tool_results:
        output = entry.get("result")
        if not isinstance(output, dict) or not output.get("success"):
            continue
        path = output.get("file_path")
        action = output.get("action")
        if action == "created" and path not in created:
            created.append(path)
        elif action == "modified" and path not in modified and path not in created:
            modified.append(path)
        elif action == "deleted":
            deleted.append(path)
        elif entry.get("tool_name") == "run_command":
            commands.append(output.get("command"))
    return {"created": created, "modified": modified, "deleted": deleted, "commands": commands}


class CodingAgent(BaseAgent):
    def __init__(
        self,
        llm_client: LLMClient,
        supabase: SupabaseClient,
        sandbox: Optional[SandboxService] = None,
    ):
        super().__init__("Coding Agent", "coding", llm_client)
        self.supabase = supabase
        self.sandbox = sandbox
        self._file_tools: Optional[FileTools] = None
        self._sandbox_id: Optional[str] = None

    def _run_command(self, command: str, cwd: Optional[str] = None) -> Dict[str, Any]:
        if self.sandbox is None or not self._sandbox_id:
            return {"success": False, "error": "No sandbox is attached to this session"}
        output = self.sandbox.run_command(self._sandbox_id, command, cwd=cwd)
        return {"success": output["exit_code"] == 0, "command": command, **output}

    def get_tools(self, mode: str = "incremental") -> Dict[str, Tool]:
        if self._file_tools is None:
            return {}
        tools = self._file_tools.as_tools(read_only=mode == "analysis")
        if mode != "analysis" and self.sandbox is not None and self._sandbox_id:
            tools["run_command"] = Tool(
                "run_command",
                "Run a shell command (npm install, npm run build, ...) in the project's sandbox.",
                {
                    "type": "object",
                    "properties": {"command": {"type": "string"}, "cwd": {"type": "string"}},
                    "required": ["command"],
                },
                self._run_command,
            )
        return tools

    def process(
        self,
        user_input: str,
        session: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> Iterator[AgentResponse]:
        context = context or {}
        session_id = session["id"]
        user_id = session.get("user_id")
        self._file_tools = FileTools(self.supabase, session_id)
        self._sandbox_id = context.get("sandbox_id")

        try:
            existing = self.supabase.get_coding_files(session_id)
            mode = context.get("mode") or determine_mode(user_input, bool(existing))
            if mode not in MODE_MAX_STEPS:
                raise ValueError(f"Unknown coding mode: {mode}")
            logger.info(f"Coding agent mode={mode} session={session_id} files={len(existing)}")

            yield self.create_thinking_response(
                "🔍 Analysing your project requirements..." if mode == "initial" else "🔍 Analysing your request...",
                10,
            )

            system_prompt = CODING_SYSTEM_PROMPT.format(
                mode=mode,
                mode_instructions=CODING_MODE_INSTRUCTIONS[mode],
                file_list="\n".join(f"- {f['path']}" for f in existing) or "(empty project)",
            )
            result = self.execute_multi_step(
                user_input, session, system_prompt, MODE_MAX_STEPS[mode], tools=self.get_tools(mode)
            )
            changes = summarize_file_changes(result)

            if user_id:
                self.supabase.upsert_coding_session(
                    user_id,
                    session_id,
                    title=context.get("project_title"),
                    metadata={"last_mode": mode, "total_files": len(self.supabase.get_coding_files(session_id))},
                )

            reply = result.text or self._default_reply(mode, changes)
            self.update_conversation_history(session, user_input, reply)

            yield self.create_response(
                reply,
                intent=MODE_INTENTS[mode],
                done=True,
                progress=100,
                current_stage=f"{mode}_complete",
                metadata={
                    "mode": mode,
                    "files_created": changes["created"],
                    "files_modified": changes["modified"],
                    "files_deleted": changes["deleted"],
                    "commands_executed": changes["commands"],
                    "total_steps": result.steps,
                    "tools_used": sorted({call["name"] for call in result.tool_calls}),
                },
            )
        except Exception as e:
            yield self.error_response(e)

    @staticmethod
    def _default_reply(mode: str, changes: Dict[str, List[str]]) -> str:
        if mode == "analysis":
            return "I've looked through the project."
        parts = []
        if changes["created"]:
            parts.append(f"created {len(changes['created'])} file(s)")
        if changes["modified"]:
            parts.append(f"modified {len(changes['modified'])} file(s)")
        if changes["deleted"]:
            parts.append(f"deleted {len(changes['deleted'])} file(s)")
        return f"Done: {', '.join(parts)}." if parts else "No files needed to change."
