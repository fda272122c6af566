"""Template marketplace: browse published templates and publish new ones."""

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field

from backend.deps import get_supabase, require_user_id
from backend.errors import ApiError
from models.data_models import CamelModel
from services.templates import TemplateService
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

router = APIRouter(prefix="/api", tags=["templates"])


class CreateTemplateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    design_tags: List[str] = Field(default_factory=list, alias="designTags")
    content: Any = None


@router.get("/templates")
def list_templates(
    category: Optional[str] = Query(None, description="Category filter ('all' for every category)"),
    search: Optional[str] = Query(None, description="Case-insensitive match on title or description"),
    sort_by: str = Query("newest", alias="sortBy", pattern="^(newest|popular|trending)$"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(12, ge=1, le=50, description="Templates per page (max 50)"),
    supabase: SupabaseClient = Depends(get_supabase),
):
    """
    List published templates.

    sortBy: newest (default), popular (most forked) or trending (flagged
    templates only, newest first).

    Returns data (template cards), total, page and totalPages.
    """
    try:
        return TemplateService(supabase).list_templates(
            category=category, search=search, sort_by=sort_by, page=page, limit=limit
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list templates: {e}")
        raise ApiError(500, "templates_failed", f"Failed to load templates: {e}")


@router.post("/templates")
def create_template(
    body: CreateTemplateRequest,
    user_id: str = Depends(require_user_id),
    supabase: SupabaseClient = Depends(get_supabase),
):
    try:
        template = TemplateService(supabase).create_template(
            user_id,
            body.title,
            description=body.description,
            category=body.category,
            tags=body.tags,
            design_tags=body.design_tags,
            content=body.content,
        )
        return {"success": True, "data": template}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to create template for {user_id}: {e}")
        raise ApiError(500, "template_create_failed", f"Failed to create template: {e}")
