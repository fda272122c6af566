"""Public plaza listing of shared user pages."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.deps import get_supabase
from backend.errors import ApiError
from services.plaza import PlazaService
from storage.supabase_client import SupabaseClient
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

router = APIRouter(prefix="/api", tags=["plaza"])


@router.get("/user-pages")
def list_user_pages(
    category: Optional[str] = Query(None, description="Category filter ('all' for every category)"),
    search: Optional[str] = Query(None, description="Case-insensitive match on title or description"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(12, ge=1, le=50, description="Pages per page (max 50)"),
    supabase: SupabaseClient = Depends(get_supabase),
):
    """
    List pages shared to the plaza, most recently updated first.

    Returns:
    - data: page cards (camelCase fields for the frontend)
    - total: number of matching pages
    - page: current page
    - totalPages: ceil(total / limit)
    """
    try:
        return PlazaService(supabase).list_pages(category=category, search=search, page=page, limit=limit)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to list plaza pages: {e}")
        raise ApiError(500, "plaza_failed", f"Failed to load pages: {e}")
