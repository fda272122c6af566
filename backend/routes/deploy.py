"""
Preview deployment endpoints: Vercel deployments and E2B sandboxes.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field

from backend.deps import get_sandbox, get_vercel, require_user_id
from backend.errors import ApiError
from integrations.sandbox import SandboxService
from integrations.vercel import VercelClient, VercelError
from models.data_models import CamelModel
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

router = APIRouter(prefix="/api", tags=["deploy"])


class DeployRequest(CamelModel):
    project_name: Optional[str] = Field(None, alias="projectName")
    files: Optional[List[Dict[str, Any]]] = None
    target: str = Field("preview", pattern="^(preview|production)$")
    git_metadata: Optional[Dict[str, Any]] = Field(None, alias="gitMetadata")
    project_settings: Optional[Dict[str, Any]] = Field(None, alias="projectSettings")
    meta: Optional[Dict[str, str]] = None


class CreateSandboxRequest(CamelModel):
    metadata: Optional[Dict[str, str]] = None


class RunCommandRequest(CamelModel):
    sandbox_id: str = Field(..., alias="sandboxId", min_length=1)
    command: str = Field(..., min_length=1)
    cwd: Optional[str] = None
    timeout: int = Field(60, ge=1, le=600)


class WriteFilesRequest(CamelModel):
    sandbox_id: str = Field(..., alias="sandboxId", min_length=1)
    files: List[Dict[str, str]]


class SandboxRequest(CamelModel):
    sandbox_id: str = Field(..., alias="sandboxId", min_length=1)


def _vercel_error(e: Exception) -> ApiError:
    message = str(e)
    lowered = message.lower()
    if (isinstance(e, VercelError) and e.status_code == 403) or "403" in message or "forbidden" in lowered:
        return ApiError(403, "vercel_auth_failed", "Invalid or expired Vercel token")
    if (isinstance(e, VercelError) and e.status_code == 400) or "400" in message or "bad request" in lowered:
        return ApiError(400, "invalid_deployment", "Invalid deployment configuration", details=message)
    return ApiError(500, "deployment_failed", f"Deployment failed: {message}")


@router.post("/vercel-deploy")
def vercel_deploy(
    body: DeployRequest,
    user_id: str = Depends(require_user_id),
    vercel: VercelClient = Depends(get_vercel),
):
    """
    Deploy a generated project to Vercel and wait until it is ready.

    Body:
    - projectName: Vercel project name (sanitized)
    - files: [{filename or path, content}, ...]
    - target: preview (default) or production
    - gitMetadata, projectSettings, meta: optional overrides
    """
    if not body.project_name or not body.files:
        raise ApiError(400, "invalid_request", "Missing required parameters: projectName and files")

    logger.info(f"Deploying {body.project_name} ({len(body.files)} files) for {user_id}")
    try:
        deployment = vercel.deploy_project(
            body.project_name,
            body.files,
            target=body.target,
            git_metadata=body.git_metadata,
            project_settings=body.project_settings,
            meta=body.meta,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Vercel deployment of {body.project_name} failed: {e}")
        raise _vercel_error(e)

    return {"success": True, "deployment": deployment}


@router.get("/vercel-deploy")
def vercel_deployment_status(
    deployment_id: Optional[str] = Query(None, alias="id"),
    user_id: str = Depends(require_user_id),
    vercel: VercelClient = Depends(get_vercel),
):
    if not deployment_id:
        raise ApiError(400, "missing_deployment_id", "Missing deployment ID")
    try:
        return {"success": True, "deployment": vercel.describe(vercel.get_deployment(deployment_id))}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch deployment {deployment_id}: {e}")
        raise _vercel_error(e)


# E2B sandbox


def _require_owned(sandbox: SandboxService, sandbox_id: str, user_id: str) -> None:
    if not sandbox.owns(sandbox_id, user_id):
        logger.warning(f"User {user_id} asked for sandbox {sandbox_id} they do not own")
        raise ApiError(404, "sandbox_not_found", "Sandbox not found")


@router.post("/e2b-sandbox/create")
def create_sandbox(
    body: Optional[CreateSandboxRequest] = None,
    user_id: str = Depends(require_user_id),
    sandbox: SandboxService = Depends(get_sandbox),
):
    try:
        return {"success": True, **sandbox.create(user_id, metadata=body.metadata if body else None)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create sandbox for {user_id}: {e}")
        raise ApiError(500, "sandbox_create_failed", f"Failed to create sandbox: {e}")


@router.post("/e2b-sandbox/run-command")
def run_sandbox_command(
    body: RunCommandRequest,
    user_id: str = Depends(require_user_id),
    sandbox: SandboxService = Depends(get_sandbox),
):
    """Run a shell command; a non-zero exit code is reported with success=false."""
    _require_owned(sandbox, body.sandbox_id, user_id)
    try:
        result = sandbox.run_command(body.sandbox_id, body.command, cwd=body.cwd, timeout=body.timeout)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Command failed in sandbox {body.sandbox_id}: {e}")
        raise ApiError(500, "command_failed", f"Failed to run command: {e}")
    return {"success": result["exit_code"] == 0, **result}


@router.post("/e2b-sandbox/files")
def write_sandbox_files(
    body: WriteFilesRequest,
    user_id: str = Depends(require_user_id),
    sandbox: SandboxService = Depends(get_sandbox),
):
    if any(not f.get("path") for f in body.files):
        raise ApiError(400, "invalid_request", "Every file needs a path")
    _require_owned(sandbox, body.sandbox_id, user_id)
    try:
        written = sandbox.write_files(body.sandbox_id, body.files)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to write files to sandbox {body.sandbox_id}: {e}")
        raise ApiError(500, "write_files_failed", f"Failed to write files: {e}")
    return {"success": True, "written": written}


@router.get("/e2b-sandbox/status")
def sandbox_status(
    sandbox_id: Optional[str] = Query(None, alias="sandboxId"),
    user_id: str = Depends(require_user_id),
    sandbox: SandboxService = Depends(get_sandbox),
):
    if not sandbox_id:
        raise ApiError(400, "missing_sandbox_id", "sandboxId is required")
    _require_owned(sandbox, sandbox_id, user_id)
    try:
        return {"success": True, **sandbox.status(sandbox_id)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get status of sandbox {sandbox_id}: {e}")
        raise ApiError(500, "sandbox_status_failed", f"Failed to get sandbox status: {e}")


@router.post("/e2b-sandbox/kill")
def kill_sandbox(
    body: SandboxRequest,
    user_id: str = Depends(require_user_id),
    sandbox: SandboxService = Depends(get_sandbox),
):
    _require_owned(sandbox, body.sandbox_id, user_id)
    try:
        sandbox.kill(body.sandbox_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to kill sandbox {body.sandbox_id}: {e}")
        raise ApiError(500, "sandbox_kill_failed", f"Failed to kill sandbox: {e}")
    return {"success": True, "message": "Sandbox killed"}
