"""Plaza listing: public pages shared by users, shaped for the frontend cards."""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

DEFAULT_AVATAR = "/placeholder-user.jpg"


def format_relative_age(timestamp: Optional[str], now: Optional[datetime] = None) -> str:
    """
    Describe how long ago a timestamp was, e.g. "3 days ago" or "2 weeks ago".

    Days are rounded up and floored at one, so anything within the last 24
    hours (including the same instant) is "1 day ago".
    """
    if not timestamp:
        return ""
    now = now or datetime.now(timezone.utc)
    moment = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)

    days = max(1, math.ceil(abs((now - moment).total_seconds()) / 86400))
    if days == 1:
        return "1 day ago"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{math.ceil(days / 7)} weeks ago"
    return f"{math.ceil(days / 30)} months ago"


def format_relative_update(updated_at: Optional[str], now: Optional[datetime] = None) -> str:
    age = format_relative_age(updated_at, now)
    return f"Updated {age}" if age else ""


def format_plaza_page(row: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    owner = row.get("users") or {}
    return {
        "id": row.get("id"),
        "title": row.get("title"),
        "description": row.get("description"),
        "category": row.get("category"),
        "tags": row.get("tags") or [],
        "industryTags": row.get("industry_tags") or [],
        "location": row.get("location"),
        "updatedAt": format_relative_update(row.get("updated_at"), now),
        "viewCount": row.get("view_count") or 0,
        "favoriteCount": row.get("favorite_count") or 0,
        "avatar": owner.get("avatar_url") or DEFAULT_AVATAR,
        "verified": False,
        "trending": False,
        "username": owner.get("username"),
        "displayName": owner.get("full_name"),
        "content": row.get("content"),
    }


class PlazaService:
    def __init__(self, supabase: SupabaseClient):
        self.supabase = supabase

    def list_pages(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 12,
    ) -> Dict[str, Any]:
        rows, total = self.supabase.list_plaza_pages(category=category, search=search, page=page, limit=limit)
        return {
            "data": [format_plaza_page(row) for row in rows],
            "total": total,
            "page": page,
            "totalPages": math.ceil(total / limit) if limit else 0,
        }
