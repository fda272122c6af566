"""E2B cloud sandbox wrapper for running generated projects."""

import threading
from typing import Any, Dict, List, Optional

from e2b import CommandExitException, Sandbox

from utils.logger import setup_logger

logger = setup_logger(name=__name__)


class SandboxService:
    """Creates sandboxes and runs commands in them by id.

    Each call reconnects by sandbox id, so no sandbox handle is kept between
    requests. The service remembers which user created each sandbox; routes
    check `owns` before touching one. Ownership lives in process memory, like
    conversation sessions, so sandboxes created before a restart belong to
    nobody.
    """

    def __init__(self, api_key: str, template: Optional[str] = None, timeout: int = 300):
        if not api_key:
            raise ValueError("E2B API key is required")
        self.api_key = api_key
        self.template = template
        self.timeout = timeout
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _connect(self, sandbox_id: str) -> Sandbox:
        return Sandbox.connect(sandbox_id, api_key=self.api_key)

    def owns(self, sandbox_id: str, user_id: Optional[str]) -> bool:
        with self._lock:
            return user_id is not None and self._owners.get(sandbox_id) == user_id

    def create(self, user_id: str, metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "api_key": self.api_key,
            "timeout": self.timeout,
            "metadata": {**(metadata or {}), "user_id": user_id},
        }
        if self.template:
            kwargs["template"] = self.template
        sandbox = Sandbox.create(**kwargs)
        with self._lock:
            self._owners[sandbox.sandbox_id] = user_id
        logger.info(f"Created E2B sandbox {sandbox.sandbox_id} for {user_id}")
        return {"sandbox_id": sandbox.sandbox_id}

    def write_files(self, sandbox_id: str, files: List[Dict[str, str]]) -> int:
        """Write [{path, content}, ...] into the sandbox; returns the count."""
        sandbox = self._connect(sandbox_id)
        for f in files:
            sandbox.files.write(f["path"], f.get("content", ""))
        logger.info(f"Wrote {len(files)} file(s) to sandbox {sandbox_id}")
        return len(files)

    def run_command(
        self,
        sandbox_id: str,
        command: str,
        cwd: Optional[str] = None,
        timeout: int = 60,
    ) -> Dict[str, Any]:
        """Run a shell command; a non-zero exit is reported, not raised."""
        sandbox = self._connect(sandbox_id)
        logger.info(f"Running in sandbox {sandbox_id}: {command}")
        try:
            result = sandbox.commands.run(command, cwd=cwd, timeout=timeout)
        except CommandExitException as e:
            return {"stdout": e.stdout, "stderr": e.stderr, "exit_code": e.exit_code}
        return {"stdout": result.stdout, "stderr": result.stderr, "exit_code": result.exit_code}

    def status(self, sandbox_id: str) -> Dict[str, Any]:
        sandbox = self._connect(sandbox_id)
        return {"sandbox_id": sandbox_id, "running": sandbox.is_running()}

    def kill(self, sandbox_id: str) -> None:
        self._connect(sandbox_id).kill()
        with self._lock:
            self._owners.pop(sandbox_id, None)
        logger.info(f"Killed sandbox {sandbox_id}")
