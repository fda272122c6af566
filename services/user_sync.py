"""Keep the users table in step with Clerk webhook events."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.errors import ApiError
from models.data_models import DEFAULT_MODEL, InviteCodePermissions
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)


def _iso_from_millis(value: Optional[int]) -> str:
    if not value:
        return datetime.now(timezone.utc).isoformat()
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def _primary_email(data: Dict[str, Any]) -> str:
    addresses = data.get("email_addresses") or []
    return addresses[0].get("email_address", "") if addresses else ""


class UserSyncService:
    """Applies Clerk user events (created/updated/deleted) to the users table."""

    def __init__(self, supabase: SupabaseClient, require_invite_code: bool = True):
        self.supabase = supabase
        self.require_invite_code = require_invite_code

    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        event_type = event.get("type", "")
        data = event.get("data") or {}
        logger.info(f"Clerk webhook: {event_type} for {data.get('id')}")

        if event_type == "user.created":
            return self._user_created(data)
        if event_type == "user.updated":
            return self._user_updated(data)
        if event_type == "user.deleted":
            self.supabase.soft_delete_user(data["id"])
            return {"success": True, "message": "User deleted"}

        return {"success": True, "message": f"Event {event_type} received but not handled"}

    def _user_created(self, data: Dict[str, Any]) -> Dict[str, Any]:
        email = _primary_email(data)
        usage = self.supabase.find_unlinked_usage_by_email(email) if email else None

        if usage is None and self.require_invite_code:
            logger.warning(f"Rejected sign-up without invite code: {email}")
            raise ApiError(
                403,
                "invite_code_required",
                "An invite code is required to register",
                details={"email": email, "hint": "Verify and use an invite code before signing up"},
            )

        if usage is not None:
            invite = usage.get("invite_codes") or {}
            permissions = InviteCodePermissions(**(invite.get("permissions") or {}))
            plan, projects = permissions.plan, permissions.projects
            metadata = {
                "invite_code": invite.get("code") or usage.get("code"),
                "invite_code_used_at": usage.get("used_at"),
                "special_access": permissions.special_access,
                "granted_features": permissions.features,
            }
        else:
            plan, projects, metadata = "free", ["HeysMe"], {}

        record = {
            "id": data["id"],
            "email": email,
            "first_name": data.get("first_name") or "",
            "last_name": data.get("last_name") or "",
            "avatar_url": data.get("image_url") or "",
            "username": data.get("username"),
            "projects": projects,
            "plan": plan,
            "default_model": DEFAULT_MODEL,
            "metadata": metadata,
            "created_at": _iso_from_millis(data.get("created_at")),
            "updated_at": _iso_from_millis(data.get("updated_at")),
        }
        self.supabase.insert_user(record)

        if usage is not None:
            self.supabase.link_usage_to_user(usage, data["id"])

        return {
            "success": True,
            "message": "User created",
            "user": {"id": data["id"], "email": email},
            "invite_code_applied": usage is not None,
        }

    def _user_updated(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self.supabase.update_user(data["id"], {
            "email": _primary_email(data),
            "first_name": data.get("first_name") or "",
            "last_name": data.get("last_name") or "",
            "avatar_url": data.get("image_url") or "",
            "updated_at": _iso_from_millis(data.get("updated_at")),
        })
        return {"success": True, "message": "User updated"}
