"""File tools the coding agent uses to work on a project stored in coding_files."""

from typing import Any, Dict, Optional

from agents.llm_client import Tool
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

MAX_SEARCH_RESULTS = 50
READ_ONLY_TOOLS = ("read_file", "list_files", "search_code", "get_file_structure")


def _path_schema(description: str = "Path relative to the project root") -> Dict[str, Any]:
    return {"type": "string", "description": description}


class FileTools:
    """
    Project file operations for one coding session.

    Every operation returns a dict with 'success'; failures carry an
    'error' message instead of raising, so the model can recover.
    """

    def __init__(self, supabase: SupabaseClient, session_id: str):
        self.supabase = supabase
        self.session_id = session_id

    @staticmethod
    def _normalize(path: str) -> str:
        if not path:
            return path
        path = path.strip()
        while path.startswith("./"):
            path = path[2:]
        return path.lstrip("/")

    def read_file(self, file_path: str) -> Dict[str, Any]:
        path = self._normalize(file_path)
        row = self.supabase.get_coding_file(self.session_id, path)
        if row is None:
            return {"success": False, "error": f"File not found: {path}"}
        return {
            "success": True,
            "file_path": path,
            "content": row.get("content", ""),
            "language": row.get("language"),
            "version": row.get("version"),
        }

    def write_file(self, file_path: str, content: str) -> Dict[str, Any]:
        path = self._normalize(file_path)
        if not path:
            return {"success": False, "error": "file_path is required"}
        row = self.supabase.upsert_coding_file(self.session_id, path, content)
        return {
            "success": True,
            "file_path": path,
            "action": row.get("status", "created"),
            "size": len(content),
            "version": row.get("version"),
        }

    def edit_file(self, file_path: str, old_content: str, new_content: str) -> Dict[str, Any]:
        """Replace the first exact occurrence of old_content."""
        path = self._normalize(file_path)
        row = self.supabase.get_coding_file(self.session_id, path)
        if row is None:
            return {"success": False, "error": f"File not found: {path}"}
        current = row.get("content", "")
        if not old_content or old_content not in current:
            return {"success": False, "error": f"Content to replace was not found in {path}"}

        stored = self.supabase.upsert_coding_file(self.session_id, path, current.replace(old_content, new_content, 1))
        return {"success": True, "file_path": path, "action": "modified", "version": stored.get("version")}

    def append_to_file(self, file_path: str, content: str) -> Dict[str, Any]:
        path = self._normalize(file_path)
        row = self.supabase.get_coding_file(self.session_id, path)
        current = row.get("content", "") if row else ""
        stored = self.supabase.upsert_coding_file(self.session_id, path, current + content)
        return {
            "success": True,
            "file_path": path,
            "action": "modified" if row else "created",
            "version": stored.get("version"),
        }

    def delete_file(self, file_path: str) -> Dict[str, Any]:
        path = self._normalize(file_path)
        if not self.supabase.delete_coding_file(self.session_id, path):
            return {"success": False, "error": f"File not found: {path}"}
        return {"success": True, "file_path": path, "action": "deleted"}

    def list_files(self) -> Dict[str, Any]:
        files = self.supabase.get_coding_files(self.session_id)
        return {
            "success": True,
            "files": [
                {"path": f["path"], "language": f.get("language"), "size": f.get("size", 0)}
                for f in files
            ],
        }

    def search_code(self, query: str, file_pattern: Optional[str] = None) -> Dict[str, Any]:
        """Case-insensitive substring search across project files."""
        if not query:
            return {"success": False, "error": "query is required"}
        needle = query.lower()
        matches = []
        for f in self.supabase.get_coding_files(self.session_id):
            if file_pattern and file_pattern not in f["path"]:
                continue
            for number, line in enumerate((f.get("content") or "").splitlines(), start=1):
                if needle in line.lower():
                    matches.append({"file_path": f["path"], "line": number, "text": line.strip()})
                    if len(matches) >= MAX_SEARCH_RESULTS:
                        return {"success": True, "matches": matches, "truncated": True}
        return {"success": True, "matches": matches, "truncated": False}

    def get_file_structure(self) -> Dict[str, Any]:
        """Nested dict tree of the project; files map to their language."""
        tree: Dict[str, Any] = {}
        for f in self.supabase.get_coding_files(self.session_id):
            node = tree
            *dirs, name = f["path"].split("/")
            for d in dirs:
                node = node.setdefault(d, {})
            node[name] = f.get("language") or "text"
        return {"success": True, "structure": tree}

    def run(self, tool_name: str, **arguments: Any) -> Dict[str, Any]:
        """Dispatch one operation by name (used by the file-operation route)."""
        tools = self.as_tools()
        if tool_name not in tools:
            return {"success": False, "error": f"Unknown operation: {tool_name}"}
        try:
            return tools[tool_name].execute(**arguments)
        except TypeError as e:
            return {"success": False, "error": f"Invalid arguments for {tool_name}: {e}"}

    def as_tools(self, read_only: bool = False) -> Dict[str, Tool]:
        tools = [
            Tool("read_file", "Read a project file.",
                 {"type": "object", "properties": {"file_path": _path_schema()}, "required": ["file_path"]},
                 self.read_file),
            Tool("write_file", "Create a file or overwrite it completely.",
                 {"type": "object",
                  "properties": {"file_path": _path_schema(), "content": {"type": "string"}},
                  "required": ["file_path", "content"]},
                 self.write_file),
            Tool("edit_file", "Replace an exact snippet of a file with new content.",
                 {"type": "object",
                  "properties": {
                      "file_path": _path_schema(),
                      "old_content": {"type": "string", "description": "Exact text to replace"},
                      "new_content": {"type": "string", "description": "Replacement text"},
                  },
                  "required": ["file_path", "old_content", "new_content"]},
                 self.edit_file),
            Tool("append_to_file", "Append content to the end of a file (creating it if needed).",
                 {"type": "object",
                  "properties": {"file_path": _path_schema(), "content": {"type": "string"}},
                  "required": ["file_path", "content"]},
                 self.append_to_file),
            Tool("delete_file", "Delete a project file.",
                 {"type": "object", "properties": {"file_path": _path_schema()}, "required": ["file_path"]},
                 self.delete_file),
            Tool("list_files", "List all project files.",
                 {"type": "object", "properties": {}},
                 self.list_files),
            Tool("search_code", "Search project files for a string (case-insensitive).",
                 {"type": "object",
                  "properties": {
                      "query": {"type": "string"},
                      "file_pattern": {"type": "string", "description": "Only search paths containing this"},
                  },
                  "required": ["query"]},
                 self.search_code),
            Tool("get_file_structure", "Show the project directory tree.",
                 {"type": "object", "properties": {}},
                 self.get_file_structure),
        ]
        if read_only:
            tools = [t for t in tools if t.name in READ_ONLY_TOOLS]
        return {tool.name: tool for tool in tools}
