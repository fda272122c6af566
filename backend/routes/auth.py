"""
Health, current-user and Clerk webhook endpoints.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from backend.deps import get_clerk, get_config, get_current_user_id, get_supabase
from backend.errors import ApiError
from integrations.clerk import AuthError, ClerkAuth
from models.config_models import Config
from services.user_sync import UserSyncService
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/auth/user")
def current_user(user_id: Optional[str] = Depends(get_current_user_id)):
    """
    Report who the caller is.

    Returns:
    - userId: Clerk user id, or null when not signed in
    - isAuthenticated: whether a valid session token was sent
    """
    return {
        "userId": user_id,
        "isAuthenticated": user_id is not None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/webhooks/clerk")
async def clerk_webhook(
    request: Request,
    clerk: ClerkAuth = Depends(get_clerk),
    supabase: SupabaseClient = Depends(get_supabase),
    config: Config = Depends(get_config),
):
    """
    Receive Clerk user events (signed by Svix).

    user.created is refused with 403 when invite codes are required and the
    email has no pending invite code usage.
    """
    payload = await request.body()
    try:
        event = clerk.verify_webhook(payload, request.headers)
    except AuthError as e:
        logger.warning(f"Clerk webhook rejected: {e}")
        raise ApiError(400, "invalid_signature", "Webhook verification failed")

    service = UserSyncService(supabase, require_invite_code=config.require_invite_code)
    try:
        return await run_in_threadpool(service.handle_event, event)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to handle Clerk event {event.get('type')}: {e}")
        raise ApiError(500, "webhook_failed", f"Failed to handle webhook: {e}")
