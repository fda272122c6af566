"""Template marketplace: published page templates other users can fork."""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from backend.errors import ApiError
from services.plaza import DEFAULT_AVATAR, format_relative_age
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

TEMPLATE_SORTS = ("newest", "popular", "trending")
DEFAULT_THUMBNAIL = "/placeholder.jpg"
DEFAULT_DIFFICULTY = "intermediate"


def format_template_card(row: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    creator = row.get("users") or {}
    return {
        "id": row.get("id"),
        "title": row.get("title"),
        "description": row.get("description"),
        "category": row.get("category"),
        "tags": row.get("tags") or [],
        "designTags": row.get("design_tags") or [],
        "creator": {
            "name": creator.get("full_name") or creator.get("username"),
            "avatar": creator.get("avatar_url") or DEFAULT_AVATAR,
            "verified": False,
        },
        "forkCount": row.get("fork_count") or 0,
        "useCount": row.get("use_count") or 0,
        "viewCount": row.get("view_count") or 0,
        "favoriteCount": 0,
        "isFeatured": bool(row.get("is_featured")),
        "trending": False,
        "thumbnail": DEFAULT_THUMBNAIL,
        "createdAt": format_relative_age(row.get("created_at"), now),
        "difficulty": DEFAULT_DIFFICULTY,
        "content": row.get("sanitized_content"),
    }


class TemplateService:
    def __init__(self, supabase: SupabaseClient):
        self.supabase = supabase

    def list_templates(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "newest",
        page: int = 1,
        limit: int = 12,
    ) -> Dict[str, Any]:
        if sort_by not in TEMPLATE_SORTS:
            sort_by = "newest"
        rows, total = self.supabase.list_templates(
            category=category, search=search, sort_by=sort_by, page=page, limit=limit
        )
        return {
            "data": [format_template_card(row) for row in rows],
            "total": total,
            "page": page,
            "totalPages": math.ceil(total / limit) if limit else 0,
        }

    def create_template(
        self,
        creator_id: str,
        title: str,
        description: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None,
        design_tags: Optional[List[str]] = None,
        content: Any = None,
    ) -> Dict[str, Any]:
        """
        Publish a template owned by the caller.

        The content is stored as given; callers are expected to have removed
        personal details from the page first.
        """
        if not title or not title.strip():
            raise ApiError(400, "invalid_request", "A template title is required")

        now = datetime.now(timezone.utc).isoformat()
        return self.supabase.insert_template({
            "title": title.strip(),
            "description": description,
            "category": category,
            "tags": tags or [],
            "design_tags": design_tags or [],
            "sanitized_content": content,
            "creator_id": creator_id,
            "status": "published",
            "created_at": now,
            "updated_at": now,
        })
