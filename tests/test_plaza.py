"""Tests for the plaza listing service."""

import pytest
from datetime import datetime, timezone

from services.plaza import (
    DEFAULT_AVATAR,
    PlazaService,
    format_plaza_page,
    format_relative_age,
    format_relative_update,
)

NOW = datetime(2025, 6, 30, 12, 0, tzinfo=timezone.utc)


class TestRelativeUpdate:
    @pytest.mark.parametrize("updated_at,expected", [
        ("2025-06-30T12:00:00Z", "Updated 1 day ago"),
        ("2025-06-30T11:00:00Z", "Updated 1 day ago"),
        ("2025-06-29T12:00:00Z", "Updated 1 day ago"),
        ("2025-06-27T12:00:00Z", "Updated 3 days ago"),
        ("2025-06-20T12:00:00Z", "Updated 2 weeks ago"),
        ("2025-04-01T12:00:00Z", "Updated 3 months ago"),
    ])
    def test_buckets(self, updated_at, expected):
        assert format_relative_update(updated_at, NOW) == expected

    def test_missing_timestamp(self):
        assert format_relative_update(None, NOW) == ""

    def test_age_without_prefix(self):
        assert format_relative_age("2025-06-27T12:00:00", NOW) == "3 days ago"
        assert format_relative_age("", NOW) == ""


class TestFormatPage:
    def test_maps_fields_to_camel_case(self):
        row = {
            "id": "p1",
            "title": "My portfolio",
            "description": "Frontend engineer",
            "category": "tech",
            "tags": ["react"],
            "industry_tags": ["saas"],
            "location": "Berlin",
            "updated_at": "2025-06-27T12:00:00Z",
            "view_count": 42,
            "favorite_count": None,
            "users": {"username": "ada", "full_name": "Ada L", "avatar_url": "https://img/ada.png"},
        }
        card = format_plaza_page(row, NOW)
        assert card["industryTags"] == ["saas"]
        assert card["viewCount"] == 42
        assert card["favoriteCount"] == 0
        assert card["avatar"] == "https://img/ada.png"
        assert card["username"] == "ada"
        assert card["displayName"] == "Ada L"
        assert card["updatedAt"] == "Updated 3 days ago"
        assert card["verified"] is False

    def test_default_avatar(self):
        card = format_plaza_page({"id": "p1", "users": {"avatar_url": None}}, NOW)
        assert card["avatar"] == DEFAULT_AVATAR
        assert card["tags"] == []


class TestPlazaService:
    def test_list_pages(self, mock_supabase):
        mock_supabase.list_plaza_pages.return_value = ([{"id": "p1", "users": {}}], 25)

        result = PlazaService(mock_supabase).list_pages(category="tech", search="ai", page=2, limit=12)

        mock_supabase.list_plaza_pages.assert_called_once_with(category="tech", search="ai", page=2, limit=12)
        assert result["total"] == 25
        assert result["page"] == 2
        assert result["totalPages"] == 3
        assert result["data"][0]["id"] == "p1"

    def test_empty_listing(self, mock_supabase):
        mock_supabase.list_plaza_pages.return_value = ([], 0)
        result = PlazaService(mock_supabase).list_pages()
        assert result == {"data": [], "total": 0, "page": 1, "totalPages": 0}
