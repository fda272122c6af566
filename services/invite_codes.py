"""
Invite code business logic.

Registration is gated by invite codes: a visitor verifies a code, "uses" it
with their email before signing up, and the Clerk webhook later links that
usage to the new user. Admins generate, list, edit and delete codes.
"""

import math
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from backend.errors import ApiError
from models.data_models import InviteCodePermissions, InviteCodeStatus
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_PATTERN = re.compile(r"^[A-Z0-9]{8,20}$")
MAX_GENERATION_ATTEMPTS = 10
_NULLABLE_FIELDS = ("name", "max_uses", "expires_at")


def generate_invite_code(length: int = 8, prefix: str = "") -> str:
    """Random code: upper-cased prefix followed by `length` A-Z0-9 characters."""
    body = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix.upper()}{body}"


def validate_invite_code_format(code: str) -> bool:
    return bool(code) and CODE_PATTERN.match(code) is not None


def format_invite_code(code: str) -> str:
    """Group a code in blocks of four for display (ABCD EFGH)."""
    return " ".join(code[i:i + 4] for i in range(0, len(code), 4))


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def get_invite_code_status(row: Dict[str, Any], now: Optional[datetime] = None) -> InviteCodeStatus:
    """
    Compute the effective status of an invite code row.

    Checks run in order: disabled, expired, used up, otherwise active.
    """
    now = now or datetime.now(timezone.utc)
    if not row.get("is_active", True):
        return InviteCodeStatus.DISABLED
    expires_at = _parse_timestamp(row.get("expires_at"))
    if expires_at is not None and expires_at < now:
        return InviteCodeStatus.EXPIRED
    max_uses = row.get("max_uses")
    if max_uses is not None and (row.get("current_uses") or 0) >= max_uses:
        return InviteCodeStatus.USED_UP
    return InviteCodeStatus.ACTIVE


def remaining_uses(row: Dict[str, Any]) -> Optional[int]:
    max_uses = row.get("max_uses")
    if max_uses is None:
        return None
    return max(0, max_uses - (row.get("current_uses") or 0))


_STATUS_ERRORS = {
    InviteCodeStatus.DISABLED: ("code_disabled", "Invite code has been disabled"),
    InviteCodeStatus.EXPIRED: ("code_expired", "Invite code has expired"),
    InviteCodeStatus.USED_UP: ("code_used_up", "Invite code has reached its usage limit"),
}


class InviteCodeService:
    """Invite code operations on top of SupabaseClient."""

    def __init__(self, supabase: SupabaseClient):
        self.supabase = supabase

    def _load_usable(self, code: Optional[str]) -> Dict[str, Any]:
        """Fetch a code and make sure it can still be used; raises ApiError otherwise."""
        if not code or not code.strip():
            raise ApiError(400, "invalid_code", "Please provide a valid invite code")

        row = self.supabase.get_invite_code_by_code(code.strip().upper())
        if row is None:
            raise ApiError(404, "code_not_found", "Invite code does not exist")

        status = get_invite_code_status(row)
        if status in _STATUS_ERRORS:
            error_code, message = _STATUS_ERRORS[status]
            raise ApiError(400, error_code, message)
        return row

    def verify(self, code: Optional[str]) -> Dict[str, Any]:
        """
        Check that an invite code exists and is usable.

        Args:
            code: Code entered by the visitor (case-insensitive)

        Returns:
            Dict with code, name, permissions, remaining_uses, expires_at

        Raises:
            ApiError: 400 for a missing/disabled/expired/used-up code, 404 if unknown
        """
        row = self._load_usable(code)
        logger.info(f"Verified invite code {row['code']}")
        return {
            "code": row["code"],
            "name": row.get("name"),
            "permissions": row.get("permissions") or InviteCodePermissions().model_dump(),
            "remaining_uses": remaining_uses(row),
            "expires_at": row.get("expires_at"),
        }

    def use(
        self,
        code: Optional[str],
        email: Optional[str],
        user_id: Optional[str] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Record that an email (and optionally a signed-in user) used a code.

        Re-runs every verify check, refuses a second use by the same email or
        user, records the usage and bumps the use counter. When the user
        already exists their plan and projects are upgraded right away;
        otherwise the Clerk webhook applies them at sign-up.

        Returns:
            Dict with usage_id, permissions and message

        Raises:
            ApiError: on any verify failure, missing email, or repeated use
        """
        if not email and not user_id:
            raise ApiError(400, "invalid_request", "An email address is required")

        row = self._load_usable(code)

        if self.supabase.find_invite_usage(row["id"], email=email, user_id=user_id):
            raise ApiError(400, "code_already_used", "You have already used this invite code")

        now = datetime.now(timezone.utc).isoformat()
        usage = self.supabase.insert_invite_usage({
            "invite_code_id": row["id"],
            "code": row["code"],
            "user_id": user_id,
            "email": email,
            "ip_address": ip_address,
            "user_agent": user_agent,
            "metadata": {"registration_source": "web", "timestamp": now},
        })
        self.supabase.increment_invite_code_uses(row)

        permissions = InviteCodePermissions(**(row.get("permissions") or {}))
        if user_id:
            try:
                self.supabase.update_user(user_id, {
                    "plan": permissions.plan,
                    "projects": permissions.projects,
                    "metadata": {
                        "invite_code": row["code"],
                        "invite_code_used_at": now,
                        "special_access": permissions.special_access,
                        "granted_features": permissions.features,
                    },
                    "updated_at": now,
                })
            except Exception as e:
                # The usage is recorded; the webhook path can still apply permissions
                logger.warning(f"Could not apply invite permissions to user {user_id}: {e}")

        logger.info(f"Invite code {row['code']} used by {email or user_id}")
        return {
            "usage_id": usage.get("id"),
            "permissions": permissions.model_dump(),
            "message": "Invite code applied successfully",
        }

    def _unique_code(self, length: int, prefix: str) -> str:
        for _ in range(MAX_GENERATION_ATTEMPTS):
            candidate = generate_invite_code(length, prefix)
            if not self.supabase.invite_code_exists(candidate):
                return candidate
        raise ApiError(500, "code_generation_failed", "Failed to generate a unique invite code, please retry")

    def generate(
        self,
        created_by: str,
        name: Optional[str] = None,
        max_uses: Optional[int] = 1,
        expires_at: Optional[str] = None,
        permissions: Optional[Dict[str, Any]] = None,
        batch_id: Optional[str] = None,
        count: int = 1,
        code_prefix: str = "",
        length: int = 8,
    ) -> List[Dict[str, Any]]:
        """
        Generate one or more invite codes.

        Args:
            created_by: Admin user id
            name: Label; batches get " #<n>" appended (default 'Batch invite')
            max_uses: Uses per code (None for unlimited)
            expires_at: Optional ISO timestamp
            permissions: Overrides for the default InviteCodePermissions
            batch_id: Optional batch grouping
            count: Number of codes
            code_prefix: Prefix prepended to each code

        Returns:
            List of stored invite code rows
        """
        perms = InviteCodePermissions(**(permissions or {})).model_dump()
        generated_at = datetime.now(timezone.utc).isoformat()
        created = []

        for i in range(count):
            code = self._unique_code(length, code_prefix)
            label = f"{name or 'Batch invite'} #{i + 1}" if count > 1 else name
            row = self.supabase.insert_invite_code({
                "code": code,
                "name": label,
                "created_by": created_by,
                "max_uses": max_uses,
                "current_uses": 0,
                "expires_at": expires_at,
                "permissions": perms,
                "is_active": True,
                "batch_id": batch_id,
                "metadata": {
                    "generated_at": generated_at,
                    "generator": "admin-panel",
                    "batch_index": i,
                },
            })
            created.append(row)

        logger.info(f"Generated {len(created)} invite code(s) for {created_by}")
        return created

    def list(
        self,
        status: Optional[str] = None,
        batch_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """
        Page through invite codes, optionally filtered by computed status.

        Status depends on comparing current_uses with max_uses, which the
        store cannot filter on, so status-filtered listings are paginated here.
        """
        if status:
            rows, _ = self.supabase.list_invite_codes(batch_id=batch_id)
            matching = [r for r in rows if get_invite_code_status(r).value == status]
            total = len(matching)
            offset = (page - 1) * limit
            codes = matching[offset:offset + limit]
        else:
            codes, total = self.supabase.list_invite_codes(batch_id=batch_id, page=page, limit=limit)

        return {
            "codes": [{**c, "status": get_invite_code_status(c).value} for c in codes],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    def get_detail(self, invite_code_id: str) -> Dict[str, Any]:
        row = self.supabase.get_invite_code(invite_code_id)
        if row is None:
            raise ApiError(404, "code_not_found", "Invite code does not exist")
        return {
            "invite_code": {**row, "status": get_invite_code_status(row).value},
            "usages": self.supabase.list_invite_usages(invite_code_id),
        }

    def update(self, invite_code_id: str, **fields: Any) -> Dict[str, Any]:
        """
        Update the fields that were sent.

        name, max_uses and expires_at accept None to clear them (a code with no
        max_uses is unlimited); None is ignored for permissions and is_active.
        """
        if self.supabase.get_invite_code(invite_code_id) is None:
            raise ApiError(404, "code_not_found", "Invite code does not exist")

        changes = {
            k: v for k, v in fields.items()
            if k in _NULLABLE_FIELDS or (k in ("permissions", "is_active") and v is not None)
        }
        if "permissions" in changes:
            changes["permissions"] = InviteCodePermissions(**changes["permissions"]).model_dump()
        if not changes:
            raise ApiError(400, "invalid_request", "No fields to update")

        updated = self.supabase.update_invite_code(invite_code_id, changes)
        logger.info(f"Updated invite code {invite_code_id} ({', '.join(changes)})")
        return updated

    def delete(self, invite_code_id: str) -> None:
        if self.supabase.get_invite_code(invite_code_id) is None:
            raise ApiError(404, "code_not_found", "Invite code does not exist")
        if self.supabase.has_invite_usages(invite_code_id):
            raise ApiError(400, "code_in_use", "Invite code has been used and cannot be deleted; disable it instead")
        self.supabase.delete_invite_code(invite_code_id)

    def stats(self) -> Dict[str, int]:
        rows, _ = self.supabase.list_invite_codes()
        counts = {status: 0 for status in InviteCodeStatus}
        for row in rows:
            counts[get_invite_code_status(row)] += 1
        return {
            "total_codes": len(rows),
            "active_codes": counts[InviteCodeStatus.ACTIVE],
            "expired_codes": counts[InviteCodeStatus.EXPIRED],
            "used_up_codes": counts[InviteCodeStatus.USED_UP],
            "disabled_codes": counts[InviteCodeStatus.DISABLED],
            "total_usages": self.supabase.count_invite_usages(),
        }
