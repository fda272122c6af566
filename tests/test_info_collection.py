"""Tests for the information collection agent."""

import json
import pytest
from unittest.mock import Mock, patch

from agents.info_collection import (
    InfoCollectionAgent,
    assess_completeness,
    detect_links,
    extract_from_tool_results,
    merge_collected,
    parse_json_block,
    summarize_tool_results,
    tool_confidence,
)
from agents.llm_client import ToolLoopResult

GITHUB_RESULT = {
    "tool_name": "analyze_github",
    "result": {
        "username": "octocat",
        "profile": {"name": "The Octocat", "bio": "Mascot", "location": "SF"},
        "repositories": [
            {"name": "hello-world", "description": "First repo", "language": "Python", "html_url": "https://github.com/octocat/hello-world"},
            {"name": "docs", "description": None, "language": None, "html_url": "https://github.com/octocat/docs"},
        ],
        "languages": {"summary": [["Python", 3], ["Go", 1]]},
    },
}

COMPLETE_PROFILE = {
    "basic_profile": {"name": "Ada", "title": "Engineer"},
    "skills": {"technical": ["Python"]},
    "experience": {"projects": [{"name": "engine"}]},
    "online_presence": {"github_url": "https://github.com/ada"},
}


@pytest.fixture
def llm():
    return Mock()


@pytest.fixture
def github():
    return Mock()


@pytest.fixture
def agent(llm, github):
    return InfoCollectionAgent(llm, github=github)


class TestHelpers:
    def test_detect_links(self):
        text = "My GitHub https://github.com/ada and site http://ada.dev/about ok"
        assert detect_links(text) == ["https://github.com/ada", "http://ada.dev/about"]
        assert detect_links("") == []

    def test_parse_json_block(self):
        assert parse_json_block('Sure! {"basic_profile": {"name": "Ada"}} thanks') == {"basic_profile": {"name": "Ada"}}
        assert parse_json_block("no json here") is None
        assert parse_json_block("{broken") is None

    def test_merge_keeps_existing_values(self):
        collected = {"basic_profile": {"name": "Ada", "title": "Engineer"}, "skills": {"technical": ["Python"]}}
        extracted = {
            "basic_profile": {"name": "", "location": "London"},
            "skills": {"technical": ["Python", "Rust"], "soft": ["Writing"]},
        }
        merged = merge_collected(collected, extracted)
        assert merged["basic_profile"] == {"name": "Ada", "title": "Engineer", "location": "London"}
        assert merged["skills"]["technical"] == ["Python", "Rust"]
        assert merged["skills"]["soft"] == ["Writing"]
        assert collected["skills"]["technical"] == ["Python"]

    def test_assess_complete_profile(self):
        assessment = assess_completeness(COMPLETE_PROFILE, current_round=1)
        assert assessment["score"] == 1.0
        assert assessment["needs_more_info"] is False
        assert assessment["missing_areas"] == []

    def test_assess_thresholds_by_round(self):
        only_basic = {"basic_profile": {"name": "Ada", "title": "Engineer"}}
        assert assess_completeness(only_basic, 1)["needs_more_info"] is True
        assert assess_completeness(only_basic, 2)["needs_more_info"] is False

    def test_assess_empty_profile_asks_questions(self):
        assessment = assess_completeness({}, 1)
        assert assessment["score"] == 0
        assert assessment["missing_areas"] == ["basic info", "skills", "experience"]
        assert len(assessment["specific_questions"]) == 3

    def test_extract_from_github_result(self):
        extracted = extract_from_tool_results([GITHUB_RESULT])
        assert extracted["basic_profile"]["name"] == "The Octocat"
        assert extracted["online_presence"]["github_url"] == "https://github.com/octocat"
        assert extracted["skills"]["technical"] == ["Python", "Go"]
        assert extracted["experience"]["projects"][0]["technologies"] == ["Python"]
        assert extracted["experience"]["projects"][1]["technologies"] == []

    def test_extract_skips_plain_errors(self):
        results = [{"tool_name": "scrape_webpage", "result": {"url": "https://x.dev", "error": "timeout"}}]
        assert "website_url" not in extract_from_tool_results(results)["online_presence"]

    def test_extract_linkedin_and_website(self):
        results = [
            {"tool_name": "scrape_webpage", "result": {"url": "https://ada.dev", "description": "Ada's site"}},
            {"tool_name": "extract_linkedin", "result": {"profile_url": "https://linkedin.com/in/ada", "name": None}},
        ]
        extracted = extract_from_tool_results(results)
        assert extracted["online_presence"]["website_url"] == "https://ada.dev"
        assert extracted["online_presence"]["linkedin_url"] == "https://linkedin.com/in/ada"
        assert extracted["basic_profile"]["bio"] == "Ada's site"

    def test_tool_confidence(self):
        assert tool_confidence([]) == 0.5
        assert tool_confidence([{}]) == pytest.approx(0.7)
        assert tool_confidence([{}] * 10) == 0.9

    def test_summarize_tool_results(self):
        assert "found 2 projects" in summarize_tool_results([GITHUB_RESULT])
        assert summarize_tool_results([]) == "I've finished analysing the information you shared."


class TestFirstRound:
    def test_first_message_gets_intro(self, agent, llm):
        session = {}
        frames = list(agent.process("hi", session, {"welcome_data": {"user_role": "designer", "use_case": "job hunting"}}))

        assert len(frames) == 1
        frame = frames[0]
        assert frame.system_state.intent == "awaiting_user_input"
        assert frame.system_state.done is False
        assert "designer" in frame.immediate_display.reply
        assert session["metadata"]["info_collection"]["round"] == 1
        llm.send_prompt.assert_not_called()
        llm.run_tool_loop.assert_not_called()


class TestAnalysis:
    def test_text_input_asks_for_more(self, agent, llm):
        session = {"metadata": {"info_collection": {"round": 1, "collected_data": {}}}}
        llm.send_prompt.return_value = 'Thanks!\n{"basic_profile": {"name": "Ada", "title": "Engineer"}}'

        frames = list(agent.process("I'm Ada, an engineer", session))

        assert frames[0].system_state.intent == "thinking"
        last = frames[-1]
        assert last.system_state.intent == "awaiting_supplementary_input"
        assert last.system_state.done is False
        assert "Thanks!" in last.immediate_display.reply
        state = session["metadata"]["info_collection"]
        assert state["round"] == 2
        assert state["collected_data"]["basic_profile"]["name"] == "Ada"
        llm.run_tool_loop.assert_not_called()
        history = session["metadata"]["agent_history"]["info_collection"]
        assert history[0] == {"role": "user", "content": "I'm Ada, an engineer"}

    def test_links_run_tool_loop_and_finalize(self, agent, llm):
        session = {"metadata": {"info_collection": {"round": 1, "collected_data": COMPLETE_PROFILE}}}
        llm.run_tool_loop.return_value = ToolLoopResult(text="", tool_results=[GITHUB_RESULT], steps=2)
        llm.send_prompt.return_value = json.dumps({"basic_profile": {"name": "The Octocat"}})

        frames = list(agent.process("https://github.com/octocat", session))

        intents = [f.system_state.intent for f in frames]
        assert intents == ["thinking", "thinking", "collection_complete"]
        final = frames[-1]
        assert final.done is True
        assert final.system_state.next_agent == "prompt_generation_agent"
        profile = final.system_state.metadata["collected_user_info"]
        assert profile["basic_profile"]["name"] == "The Octocat"
        assert profile["metadata"]["data_sources"] == ["GitHub", "Conversation"]
        assert session["metadata"]["info_collection"]["completed"] is True

        messages, tools, max_steps = llm.run_tool_loop.call_args[0]
        assert messages[0]["role"] == "system"
        assert set(tools) == {"analyze_github", "scrape_webpage", "extract_linkedin"}
        assert max_steps == 4

    def test_round_limit_forces_finalize(self, agent, llm):
        session = {"metadata": {"info_collection": {"round": 2, "collected_data": {}}}}
        llm.send_prompt.side_effect = ["Not much to go on.", "still not json"]

        frames = list(agent.process("hello", session))

        final = frames[-1]
        assert final.system_state.intent == "collection_complete"
        profile = final.system_state.metadata["collected_user_info"]
        assert profile["basic_profile"] == {"bio": "Not much to go on."}
        assert profile["metadata"]["collection_rounds"] == 2

    def test_failure_yields_recovery(self, agent, llm):
        session = {"metadata": {"info_collection": {"round": 1, "collected_data": {}}}}
        llm.send_prompt.side_effect = Exception("provider down")

        frames = list(agent.process("hello", session))

        last = frames[-1]
        assert last.system_state.intent == "error_recovery"
        assert last.system_state.metadata["error"] == "provider down"
        assert last.done is False


class TestToolFallbacks:
    def test_github_failure_falls_back(self, agent, github):
        github.analyze_user.side_effect = Exception("rate limited")
        result = agent.get_tools()["analyze_github"].execute(username_or_url="https://github.com/octocat")
        assert result["fallback"] is True
        assert result["username"] == "octocat"

    @patch("agents.info_collection.web.scrape_webpage")
    def test_scrape_failure_falls_back(self, mock_scrape, agent):
        mock_scrape.side_effect = Exception("timeout")
        result = agent.get_tools()["scrape_webpage"].execute(url="https://ada.dev")
        assert result == {"url": "https://ada.dev", "title": "https://ada.dev", "description": None, "fallback": True, "error": "timeout"}

    @patch("agents.info_collection.web.scrape_webpage")
    def test_scrape_defaults_to_all_sections(self, mock_scrape, agent):
        mock_scrape.return_value = {"url": "https://ada.dev"}
        agent.get_tools()["scrape_webpage"].execute(url="https://ada.dev")
        mock_scrape.assert_called_once_with("https://ada.dev", ["all"])
