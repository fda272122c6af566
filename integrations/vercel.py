"""Vercel REST client for deploying generated projects."""

import re
import time
from typing import Any, Dict, List, Optional

import requests

from utils.logger import setup_logger

logger = setup_logger(name=__name__)

VERCEL_API = "https://api.vercel.com"

DEFAULT_GIT_METADATA = {
    "remoteUrl": "https://github.com/heysme/api-deployment",
    "commitRef": "main",
    "commitAuthorName": "HeysMe API",
    "commitAuthorEmail": "api@heysme.com",
    "dirty": False,
}

DEFAULT_PROJECT_SETTINGS = {
    "buildCommand": "npm run build",
    "installCommand": "npm install",
}


class VercelError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"Vercel API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


def sanitize_project_name(name: str) -> str:
    """Vercel project names: lowercase letters, digits and '-', at most 63 chars."""
    cleaned = re.sub(r"[^a-z0-9-]", "-", name.lower())
    cleaned = re.sub(r"-+", "-", cleaned).strip("-")
    return cleaned[:63].strip("-")


class VercelClient:
    """
    Deploys inline files to Vercel and polls until the deployment settles.

    Args:
        token: Vercel API token
        team_id: Optional team id (sent as teamId on every call)
        team_slug: Optional team slug
        poll_interval: Seconds between status polls
        max_attempts: Polls before giving up (120 x 5s = 10 minutes)
    """

    def __init__(
        self,
        token: str,
        team_id: Optional[str] = None,
        team_slug: Optional[str] = None,
        poll_interval: float = 5,
        max_attempts: int = 120,
    ):
        if not token:
            raise ValueError("Vercel token is required")
        self.token = token
        self.team_id = team_id
        self.team_slug = team_slug
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _params(self) -> Dict[str, str]:
        params = {}
        if self.team_id:
            params["teamId"] = self.team_id
        if self.team_slug:
            params["slug"] = self.team_slug
        return params

    def _request(self, method: str, path: str, json: Optional[dict] = None) -> requests.Response:
        response = requests.request(
            method,
            f"{VERCEL_API}{path}",
            headers=self.headers,
            params=self._params(),
            json=json,
            timeout=60,
        )
        return response

    @staticmethod
    def _raise_for(response: requests.Response) -> None:
        if response.status_code < 400:
            return
        try:
            message = response.json().get("error", {}).get("message") or response.text
        except ValueError:
            message = response.text
        raise VercelError(response.status_code, message[:500])

    def ensure_project(self, name: str, framework: str = "nextjs") -> None:
        """Create the project; an existing project (409) is fine."""
        response = self._request("POST", "/v10/projects", json={"name": name, "framework": framework})
        if response.status_code == 409:
            logger.debug(f"Vercel project {name} already exists")
            return
        self._raise_for(response)
        logger.info(f"Created Vercel project {name}")

    def create_deployment(
        self,
        name: str,
        files: List[Dict[str, Any]],
        target: str = "preview",
        git_metadata: Optional[Dict[str, Any]] = None,
        project_settings: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Start a deployment with the files inlined in the request body."""
        body = {
            "name": name,
            "project": name,
            "files": [
                {"file": f.get("filename") or f.get("path"), "data": f.get("content", "")}
                for f in files
            ],
            "target": target,
            "gitMetadata": git_metadata or {
                **DEFAULT_GIT_METADATA,
                "commitMessage": f"Deploy {name} via API",
            },
            "projectSettings": project_settings or DEFAULT_PROJECT_SETTINGS,
            "meta": {"source": "heysme-api", "timestamp": str(int(time.time() * 1000)), **(meta or {})},
        }
        response = self._request("POST", "/v13/deployments", json=body)
        self._raise_for(response)
        deployment = response.json()
        logger.info(f"Created Vercel deployment {deployment.get('id')} for {name} ({len(files)} files)")
        return deployment

    def get_deployment(self, deployment_id: str) -> Dict[str, Any]:
        response = self._request("GET", f"/v13/deployments/{deployment_id}")
        self._raise_for(response)
        return response.json()

    @staticmethod
    def describe(deployment: Dict[str, Any]) -> Dict[str, Any]:
        url = deployment.get("url")
        return {
            "id": deployment.get("id"),
            "url": f"https://{url}" if url else None,
            "state": deployment.get("readyState") or deployment.get("status"),
            "created_at": deployment.get("createdAt"),
            "ready_at": deployment.get("ready"),
        }

    def wait_for_deployment(self, deployment_id: str) -> Dict[str, Any]:
        """
        Poll a deployment until it is READY.

        Transient errors while polling count as an attempt and are retried.

        Raises:
            VercelError: If the deployment ends in ERROR/CANCELED or never
                         becomes ready within max_attempts polls
        """
        for attempt in range(self.max_attempts):
            try:
                status = self.describe(self.get_deployment(deployment_id))
            except (VercelError, requests.RequestException) as e:
                logger.warning(f"Polling deployment {deployment_id} failed (attempt {attempt + 1}): {e}")
            else:
                logger.debug(f"Deployment {deployment_id} state: {status['state']}")
                if status["state"] == "READY":
                    return status
                if status["state"] in ("ERROR", "CANCELED"):
                    raise VercelError(500, f"Deployment failed with state {status['state']}")
            time.sleep(self.poll_interval)

        raise VercelError(504, f"Deployment {deployment_id} timed out")

    def deploy_project(
        self,
        project_name: str,
        files: List[Dict[str, Any]],
        target: str = "preview",
        git_metadata: Optional[Dict[str, Any]] = None,
        project_settings: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, str]] = None,
        wait: bool = True,
    ) -> Dict[str, Any]:
        """Create the project if needed, deploy the files, and wait for READY."""
        name = sanitize_project_name(project_name)
        if not name:
            raise ValueError(f"Invalid project name: {project_name}")

        self.ensure_project(name)
        deployment = self.create_deployment(name, files, target, git_metadata, project_settings, meta)
        if not wait:
            return self.describe(deployment)
        return self.wait_for_deployment(deployment["id"])
