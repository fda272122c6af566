"""
Invite code endpoints: public verify/use plus the admin panel API.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import Field

from backend.deps import get_current_user_id, get_supabase, require_admin
from backend.errors import ApiError
from models.data_models import CamelModel
from services.invite_codes import InviteCodeService
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

router = APIRouter(prefix="/api", tags=["invite-codes"])


class VerifyRequest(CamelModel):
    code: Optional[str] = None


class UseRequest(CamelModel):
    code: Optional[str] = None
    email: Optional[str] = None
    user_agent: Optional[str] = Field(None, alias="userAgent")


class GenerateRequest(CamelModel):
    name: Optional[str] = None
    max_uses: Optional[int] = Field(1, alias="maxUses", ge=1)
    expires_at: Optional[str] = Field(None, alias="expiresAt")
    permissions: Optional[Dict[str, Any]] = None
    batch_id: Optional[str] = Field(None, alias="batchId")
    count: int = Field(1, ge=1, le=100)
    code_prefix: str = Field("", alias="codePrefix", max_length=8, pattern="^[A-Za-z0-9]*$")


class UpdateRequest(CamelModel):
    name: Optional[str] = None
    max_uses: Optional[int] = Field(None, alias="maxUses", ge=1)
    expires_at: Optional[str] = Field(None, alias="expiresAt")
    permissions: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = Field(None, alias="isActive")


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else None)


@router.post("/invite-codes/verify")
def verify_invite_code(body: VerifyRequest, supabase: SupabaseClient = Depends(get_supabase)):
    """
    Check an invite code before sign-up.

    Returns:
    - success: true
    - data: code, name, permissions, remaining_uses (null = unlimited), expires_at
    """
    try:
        return {"success": True, "data": InviteCodeService(supabase).verify(body.code)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to verify invite code: {e}")
        raise ApiError(500, "verify_failed", f"Failed to verify invite code: {e}")


@router.post("/invite-codes/use")
def use_invite_code(
    body: UseRequest,
    request: Request,
    user_id: Optional[str] = Depends(get_current_user_id),
    supabase: SupabaseClient = Depends(get_supabase),
):
    """Record an invite code usage for an email (and the signed-in user, if any)."""
    try:
        result = InviteCodeService(supabase).use(
            body.code,
            email=body.email,
            user_id=user_id,
            user_agent=body.user_agent or request.headers.get("user-agent"),
            ip_address=_client_ip(request),
        )
        return {"success": True, "data": result}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to use invite code: {e}")
        raise ApiError(500, "use_failed", f"Failed to use invite code: {e}")


# Admin


@router.post("/admin/invite-codes/generate")
def generate_invite_codes(
    body: GenerateRequest,
    admin_id: str = Depends(require_admin),
    supabase: SupabaseClient = Depends(get_supabase),
):
    try:
        codes = InviteCodeService(supabase).generate(
            created_by=admin_id,
            name=body.name,
            max_uses=body.max_uses,
            expires_at=body.expires_at,
            permissions=body.permissions,
            batch_id=body.batch_id,
            count=body.count,
            code_prefix=body.code_prefix,
        )
        return {"success": True, "data": {"codes": codes, "count": len(codes)}}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to generate invite codes: {e}")
        raise ApiError(500, "generate_failed", f"Failed to generate invite codes: {e}")


@router.get("/admin/invite-codes/generate")
def list_invite_codes(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(20, ge=1, le=100, description="Codes per page"),
    status: Optional[str] = Query(None, pattern="^(active|expired|used_up|disabled)$"),
    batch_id: Optional[str] = Query(None, alias="batchId"),
    admin_id: str = Depends(require_admin),
    supabase: SupabaseClient = Depends(get_supabase),
):
    """
    List invite codes for the admin panel.

    Query Parameters:
    - page, limit: pagination
    - status: active, expired, used_up or disabled
    - batchId: only codes of one batch
    """
    try:
        return {
            "success": True,
            "data": InviteCodeService(supabase).list(status=status, batch_id=batch_id, page=page, limit=limit),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list invite codes: {e}")
        raise ApiError(500, "list_failed", f"Failed to list invite codes: {e}")


@router.get("/admin/invite-codes/stats")
def invite_code_stats(admin_id: str = Depends(require_admin), supabase: SupabaseClient = Depends(get_supabase)):
    try:
        return {"success": True, "data": InviteCodeService(supabase).stats()}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to compute invite code stats: {e}")
        raise ApiError(500, "stats_failed", f"Failed to compute invite code stats: {e}")


@router.get("/admin/invite-codes/{invite_code_id}")
def get_invite_code(
    invite_code_id: str,
    admin_id: str = Depends(require_admin),
    supabase: SupabaseClient = Depends(get_supabase),
):
    try:
        return {"success": True, "data": InviteCodeService(supabase).get_detail(invite_code_id)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to fetch invite code {invite_code_id}: {e}")
        raise ApiError(500, "fetch_failed", f"Failed to fetch invite code: {e}")


@router.patch("/admin/invite-codes/{invite_code_id}")
def update_invite_code(
    invite_code_id: str,
    body: UpdateRequest,
    admin_id: str = Depends(require_admin),
    supabase: SupabaseClient = Depends(get_supabase),
):
    try:
        updated = InviteCodeService(supabase).update(invite_code_id, **body.model_dump(exclude_unset=True))
        return {"success": True, "data": updated}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update invite code {invite_code_id}: {e}")
        raise ApiError(500, "update_failed", f"Failed to update invite code: {e}")


@router.delete("/admin/invite-codes/{invite_code_id}")
def delete_invite_code(
    invite_code_id: str,
    admin_id: str = Depends(require_admin),
    supabase: SupabaseClient = Depends(get_supabase),
):
    try:
        InviteCodeService(supabase).delete(invite_code_id)
        return {"success": True, "message": "Invite code deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete invite code {invite_code_id}: {e}")
        raise ApiError(500, "delete_failed", f"Failed to delete invite code: {e}")
