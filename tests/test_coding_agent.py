"""Tests for the coding agent, its file tools and the sandbox wrapper."""

import pytest
from unittest.mock import Mock, patch

from agents.coding_agent import CodingAgent, determine_mode, summarize_file_changes
from agents.file_tools import FileTools
from agents.llm_client import ToolLoopResult
from integrations.sandbox import SandboxService

FILES = [
    {"path": "app/page.tsx", "language": "typescript", "size": 40, "content": "export default function Page() {\n  return <Hero />\n}"},
    {"path": "app/layout.tsx", "language": "typescript", "size": 20, "content": "import './globals.css'"},
    {"path": "package.json", "language": "json", "size": 2, "content": "{}"},
]


@pytest.fixture
def file_tools(mock_supabase):
    return FileTools(mock_supabase, "sess-1")


class TestFileTools:
    def test_read_file_normalizes_path(self, file_tools, mock_supabase):
        mock_supabase.get_coding_file.return_value = {"content": "hi", "language": "text", "version": 2}
        result = file_tools.read_file("./app/notes.txt")
        mock_supabase.get_coding_file.assert_called_once_with("sess-1", "app/notes.txt")
        assert result == {"success": True, "file_path": "app/notes.txt", "content": "hi", "language": "text", "version": 2}

    def test_read_missing_file(self, file_tools, mock_supabase):
        mock_supabase.get_coding_file.return_value = None
        result = file_tools.read_file("/missing.ts")
        assert result["success"] is False
        assert "missing.ts" in result["error"]

    def test_write_file_reports_status(self, file_tools, mock_supabase):
        mock_supabase.upsert_coding_file.return_value = {"status": "modified", "version": 3}
        result = file_tools.write_file("app/page.tsx", "abc")
        mock_supabase.upsert_coding_file.assert_called_once_with("sess-1", "app/page.tsx", "abc")
        assert result["action"] == "modified"
        assert result["size"] == 3
        assert result["version"] == 3

    def test_write_requires_path(self, file_tools, mock_supabase):
        assert file_tools.write_file("", "abc")["success"] is False
        mock_supabase.upsert_coding_file.assert_not_called()

    def test_edit_replaces_first_occurrence(self, file_tools, mock_supabase):
        mock_supabase.get_coding_file.return_value = {"content": "a b a"}
        mock_supabase.upsert_coding_file.return_value = {"version": 2}

        result = file_tools.edit_file("x.txt", "a", "c")

        assert result["success"] is True
        assert mock_supabase.upsert_coding_file.call_args[0][2] == "c b a"

    def test_edit_snippet_not_found(self, file_tools, mock_supabase):
        mock_supabase.get_coding_file.return_value = {"content": "hello"}
        result = file_tools.edit_file("x.txt", "bye", "hi")
        assert result["success"] is False
        mock_supabase.upsert_coding_file.assert_not_called()

    def test_append_creates_missing_file(self, file_tools, mock_supabase):
        mock_supabase.get_coding_file.return_value = None
        mock_supabase.upsert_coding_file.return_value = {"version": 1}
        result = file_tools.append_to_file("log.txt", "line")
        assert result["action"] == "created"
        assert mock_supabase.upsert_coding_file.call_args[0][2] == "line"

    def test_delete_missing_file(self, file_tools, mock_supabase):
        mock_supabase.delete_coding_file.return_value = False
        assert file_tools.delete_file("gone.ts")["success"] is False

    def test_search_code(self, file_tools, mock_supabase):
        mock_supabase.get_coding_files.return_value = FILES
        result = file_tools.search_code("HERO")
        assert result["matches"] == [{"file_path": "app/page.tsx", "line": 2, "text": "return <Hero />"}]
        assert file_tools.search_code("hero", file_pattern="layout")["matches"] == []

    def test_file_structure(self, file_tools, mock_supabase):
        mock_supabase.get_coding_files.return_value = FILES
        structure = file_tools.get_file_structure()["structure"]
        assert structure == {
            "app": {"page.tsx": "typescript", "layout.tsx": "typescript"},
            "package.json": "json",
        }

    def test_run_dispatch(self, file_tools, mock_supabase):
        mock_supabase.get_coding_files.return_value = FILES
        assert len(file_tools.run("list_files")["files"]) == 3
        assert file_tools.run("format_disk")["error"] == "Unknown operation: format_disk"
        assert file_tools.run("read_file", path="x")["error"].startswith("Invalid arguments for read_file")

    def test_read_only_tools(self, file_tools):
        assert set(file_tools.as_tools(read_only=True)) == {"read_file", "list_files", "search_code", "get_file_structure"}
        assert "write_file" in file_tools.as_tools()


class TestModeDetection:
    @pytest.mark.parametrize("text,has_files,expected", [
        ("Create a portfolio site", False, "initial"),
        ("Add a contact form", False, "initial"),
        ("Add a contact form", True, "incremental"),
        ("Explain how the layout works", True, "analysis"),
        ("What does page.tsx do?", True, "analysis"),
        ("Review my code", False, "initial"),
    ])
    def test_determine_mode(self, text, has_files, expected):
        assert determine_mode(text, has_files) == expected

    def test_summarize_file_changes(self):
        result = ToolLoopResult(tool_results=[
            {"tool_name": "write_file", "result": {"success": True, "file_path": "a.ts", "action": "created"}},
            {"tool_name": "edit_file", "result": {"success": True, "file_path": "a.ts", "action": "modified"}},
            {"tool_name": "edit_file", "result": {"success": True, "file_path": "b.ts", "action": "modified"}},
            {"tool_name": "delete_file", "result": {"success": True, "file_path": "c.ts", "action": "deleted"}},
            {"tool_name": "write_file", "result": {"success": False, "error": "nope"}},
            {"tool_name": "run_command", "result": {"success": True, "command": "npm run build"}},
        ])
        assert summarize_file_changes(result) == {
            "created": ["a.ts"],
            "modified": ["b.ts"],
            "deleted": ["c.ts"],
            "commands": ["npm run build"],
        }


class TestCodingAgent:
    def test_initial_generation(self, mock_supabase):
        llm = Mock()
        llm.run_tool_loop.return_value = ToolLoopResult(
            text="",
            tool_calls=[{"id": "c1", "name": "write_file", "arguments": {}}],
            tool_results=[{"tool_name": "write_file", "result": {"success": True, "file_path": "app/page.tsx", "action": "created"}}],
            steps=2,
        )
        mock_supabase.get_coding_files.side_effect = [[], FILES[:1]]
        session = {"id": "sess-1", "user_id": "user_1"}

        frames = list(CodingAgent(llm, mock_supabase).process("Create a portfolio", session, {"project_title": "Folio"}))

        assert frames[0].system_state.intent == "thinking"
        final = frames[-1]
        assert final.done is True
        assert final.system_state.intent == "project_generation_complete"
        assert final.system_state.metadata["files_created"] == ["app/page.tsx"]
        assert final.system_state.metadata["tools_used"] == ["write_file"]
        assert final.immediate_display.reply == "Done: created 1 file(s)."

        messages, tools, max_steps = llm.run_tool_loop.call_args[0]
        assert max_steps == 8
        assert "run_command" not in tools
        mock_supabase.upsert_coding_session.assert_called_once_with(
            "user_1", "sess-1", title="Folio", metadata={"last_mode": "initial", "total_files": 1}
        )

    def test_analysis_uses_read_only_tools(self, mock_supabase):
        llm = Mock()
        llm.run_tool_loop.return_value = ToolLoopResult(text="It renders a hero.", steps=1)
        mock_supabase.get_coding_files.return_value = FILES

        frames = list(CodingAgent(llm, mock_supabase).process("Explain page.tsx", {"id": "sess-1"}))

        _, tools, max_steps = llm.run_tool_loop.call_args[0]
        assert max_steps == 4
        assert "write_file" not in tools
        assert frames[-1].system_state.intent == "analysis_complete"
        assert frames[-1].immediate_display.reply == "It renders a hero."
        mock_supabase.upsert_coding_session.assert_not_called()

    def test_sandbox_adds_run_command(self, mock_supabase):
        llm = Mock()
        llm.run_tool_loop.return_value = ToolLoopResult(text="ok")
        mock_supabase.get_coding_files.return_value = FILES
        sandbox = Mock()
        sandbox.run_command.return_value = {"stdout": "built", "stderr": "", "exit_code": 0}
        agent = CodingAgent(llm, mock_supabase, sandbox=sandbox)

        list(agent.process("Add a footer", {"id": "sess-1"}, {"sandbox_id": "sbx-1"}))

        tools = llm.run_tool_loop.call_args[0][1]
        result = tools["run_command"].execute(command="npm run build")
        assert result["success"] is True
        sandbox.run_command.assert_called_once_with("sbx-1", "npm run build", cwd=None)

    def test_unknown_mode_reports_error(self, mock_supabase):
        mock_supabase.get_coding_files.return_value = []
        frames = list(CodingAgent(Mock(), mock_supabase).process("hi", {"id": "sess-1"}, {"mode": "refactor"}))
        assert frames[-1].system_state.intent == "error"
        assert "Unknown coding mode" in frames[-1].system_state.metadata["error"]


class TestSandboxService:
    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            SandboxService("")

    @patch("integrations.sandbox.Sandbox")
    def test_create_passes_template(self, mock_sandbox_class):
        mock_sandbox_class.create.return_value = Mock(sandbox_id="sbx-1")
        result = SandboxService("key", template="nextjs").create("u1", metadata={"project": "folio", "user_id": "spoof"})
        mock_sandbox_class.create.assert_called_once_with(
            api_key="key", timeout=300, template="nextjs", metadata={"project": "folio", "user_id": "u1"}
        )
        assert result == {"sandbox_id": "sbx-1"}

    @patch("integrations.sandbox.Sandbox")
    def test_creator_owns_sandbox(self, mock_sandbox_class):
        mock_sandbox_class.create.return_value = Mock(sandbox_id="sbx-1")
        service = SandboxService("key")
        service.create("u1")

        assert service.owns("sbx-1", "u1") is True
        assert service.owns("sbx-1", "u2") is False
        assert service.owns("sbx-2", "u1") is False
        assert service.owns("sbx-1", None) is False

    @patch("integrations.sandbox.Sandbox")
    def test_kill_forgets_owner(self, mock_sandbox_class):
        mock_sandbox_class.create.return_value = Mock(sandbox_id="sbx-1")
        service = SandboxService("key")
        service.create("u1")

        service.kill("sbx-1")

        mock_sandbox_class.connect.return_value.kill.assert_called_once_with()
        assert service.owns("sbx-1", "u1") is False

    @patch("integrations.sandbox.Sandbox")
    def test_run_command(self, mock_sandbox_class):
        sandbox = Mock()
        sandbox.commands.run.return_value = Mock(stdout="ok", stderr="", exit_code=0)
        mock_sandbox_class.connect.return_value = sandbox

        result = SandboxService("key").run_command("sbx-1", "ls", cwd="/app")

        mock_sandbox_class.connect.assert_called_once_with("sbx-1", api_key="key")
        sandbox.commands.run.assert_called_once_with("ls", cwd="/app", timeout=60)
        assert result == {"stdout": "ok", "stderr": "", "exit_code": 0}

    @patch("integrations.sandbox.Sandbox")
    def test_write_files(self, mock_sandbox_class):
        sandbox = Mock()
        mock_sandbox_class.connect.return_value = sandbox
        count = SandboxService("key").write_files("sbx-1", [{"path": "a.txt", "content": "x"}, {"path": "b.txt"}])
        assert count == 2
        sandbox.files.write.assert_any_call("b.txt", "")
