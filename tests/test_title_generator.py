"""Tests for conversation title generation."""

import pytest
from unittest.mock import Mock

from agents.title_generator import build_title_context, clean_title, generate_title
from backend.errors import ApiError

HISTORY = [
    {"type": "user_message", "content": "I want a portfolio for my design work"},
    {"type": "agent_response", "content": "Great, tell me about your projects"},
    {"type": "user_message", "content": "   "},
]


class TestHelpers:
    def test_context_labels_and_skips_blank(self):
        context = build_title_context(HISTORY)
        assert context.splitlines() == [
            "User: I want a portfolio for my design work",
            "AI: Great, tell me about your projects",
        ]

    def test_context_truncates_long_messages(self):
        context = build_title_context([{"role": "user", "content": "x" * 250}])
        assert context == "User: " + "x" * 200 + "..."

    @pytest.mark.parametrize("raw,expected", [
        ('"Design Portfolio"', "Design Portfolio"),
        ("Title: Design Portfolio\nextra line", "Design Portfolio"),
        ("标题：设计作品集", "设计作品集"),
        ("A very long title that keeps going", "A very long title th"),
        ("", ""),
    ])
    def test_clean_title(self, raw, expected):
        assert clean_title(raw, 20) == expected


class TestGenerateTitle:
    def test_generates_and_stores(self):
        llm = Mock()
        llm.send_prompt.return_value = "“Design Portfolio”"
        session = {"id": "s1", "conversation_history": HISTORY}

        result = generate_title(llm, session, message_count=3)

        assert result["title"] == "Design Portfolio"
        assert result["cached"] is False
        assert session["title"] == "Design Portfolio"
        assert session["last_title_message_count"] == 3
        assert "User: I want a portfolio" in llm.send_prompt.call_args[0][0]

    def test_reuses_recent_title(self):
        llm = Mock()
        session = {
            "conversation_history": HISTORY,
            "title": "Old",
            "title_generated_at": "2025-01-01T00:00:00+00:00",
            "last_title_message_count": 2,
        }
        result = generate_title(llm, session, message_count=5)
        assert result == {"title": "Old", "cached": True, "generated_at": "2025-01-01T00:00:00+00:00"}
        llm.send_prompt.assert_not_called()

    def test_refreshes_after_enough_messages(self):
        llm = Mock()
        llm.send_prompt.return_value = "New"
        session = {"conversation_history": HISTORY, "title": "Old", "last_title_message_count": 2}
        assert generate_title(llm, session, message_count=6)["title"] == "New"

    def test_empty_history(self):
        with pytest.raises(ApiError) as exc_info:
            generate_title(Mock(), {"conversation_history": []})
        assert exc_info.value.status_code == 400

    def test_empty_model_reply(self):
        llm = Mock()
        llm.send_prompt.return_value = '""'
        with pytest.raises(ApiError) as exc_info:
            generate_title(llm, {"conversation_history": HISTORY})
        assert exc_info.value.status_code == 500
        assert exc_info.value.code == "empty_title"
