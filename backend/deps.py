"""
FastAPI dependency providers.

Config and clients are created lazily on first use and cached, so importing
the app does not need credentials. Tests swap any of these out through
app.dependency_overrides.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from agents.llm_client import LLMClient
from backend.errors import ApiError
from integrations.clerk import AuthError, ClerkAuth
from integrations.github import GitHubClient
from integrations.sandbox import SandboxService
from integrations.vercel import VercelClient
from models.config_models import Config
from storage.session_store import SessionStore, get_session_store
from storage.supabase_client import SupabaseClient
from utils.config_loader import load_config
from utils.logger import setup_logger

logger = setup_logger(name=__name__)


@lru_cache(maxsize=1)
def get_config() -> Config:
    return load_config()


@lru_cache(maxsize=1)
def _supabase(url: str, key: str) -> SupabaseClient:
    return SupabaseClient(url, key)


def get_supabase(config: Config = Depends(get_config)) -> SupabaseClient:
    return _supabase(config.credentials.supabase_url, config.credentials.supabase_key)


def get_sessions() -> SessionStore:
    return get_session_store()


@lru_cache(maxsize=1)
def _clerk(jwks_url: Optional[str], issuer: Optional[str], webhook_secret: Optional[str]) -> ClerkAuth:
    return ClerkAuth(jwks_url, issuer=issuer, webhook_secret=webhook_secret)


def get_clerk(config: Config = Depends(get_config)) -> ClerkAuth:
    creds = config.credentials
    return _clerk(creds.clerk_jwks_url, creds.clerk_issuer, creds.clerk_webhook_secret)


def get_llm_client(config: Config = Depends(get_config)) -> LLMClient:
    creds = config.credentials
    api_key = creds.llm_api_key()
    if not api_key:
        raise ApiError(503, "llm_not_configured", f"No API key configured for provider '{creds.llm_provider}'")
    return LLMClient(provider=creds.llm_provider, model=creds.llm_model, api_key=api_key)


def get_github(config: Config = Depends(get_config)) -> GitHubClient:
    return GitHubClient(config.credentials.github_token)


def get_vercel(config: Config = Depends(get_config)) -> VercelClient:
    creds = config.credentials
    if not creds.enable_vercel_preview:
        raise ApiError(503, "vercel_disabled", "Vercel deployment is not enabled")
    if not creds.vercel_token:
        raise ApiError(503, "vercel_not_configured", "VERCEL_TOKEN is not configured")
    return VercelClient(creds.vercel_token, team_id=creds.vercel_team_id, team_slug=creds.vercel_team_slug)


@lru_cache(maxsize=1)
def _sandbox(api_key: str) -> SandboxService:
    # One instance per process so sandbox ownership survives across requests
    return SandboxService(api_key)


def get_sandbox(config: Config = Depends(get_config)) -> SandboxService:
    if not config.credentials.e2b_api_key:
        raise ApiError(503, "sandbox_not_configured", "E2B_API_KEY is not configured")
    return _sandbox(config.credentials.e2b_api_key)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return request.cookies.get("__session")


def get_current_user_id(request: Request, clerk: ClerkAuth = Depends(get_clerk)) -> Optional[str]:
    """Clerk user id of the caller, or None for anonymous/invalid tokens."""
    token = _bearer_token(request)
    if not token:
        return None
    try:
        return clerk.verify_session_token(token)["sub"]
    except AuthError as e:
        logger.debug(f"Rejected session token: {e}")
        return None


def require_user_id(user_id: Optional[str] = Depends(get_current_user_id)) -> str:
    if not user_id:
        raise ApiError(401, "unauthorized", "Please sign in first")
    return user_id


def require_admin(
    user_id: str = Depends(require_user_id),
    supabase: SupabaseClient = Depends(get_supabase),
) -> str:
    if not supabase.is_admin(user_id):
        raise ApiError(403, "forbidden", "Admin access required")
    return user_id


def get_optional_sandbox(config: Config = Depends(get_config)) -> Optional[SandboxService]:
    """Sandbox service when E2B is configured, otherwise None."""
    if not config.credentials.e2b_api_key:
        return None
    return _sandbox(config.credentials.e2b_api_key)
