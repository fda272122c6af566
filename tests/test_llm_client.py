"""Tests for the multi-provider LLM client and its tool loop."""

import json
import pytest
from unittest.mock import Mock, patch

from agents.llm_client import LLMClient, Tool


def make_message(content=None, tool_calls=None):
    return Mock(content=content, tool_calls=tool_calls)


def make_tool_call(call_id, name, arguments):
    call = Mock(id=call_id)
    # Mock(name=...) names the mock itself, so set the attribute afterwards
    call.function = Mock(arguments=arguments)
    call.function.name = name
    return call


def make_completion(message):
    response = Mock()
    response.choices = [Mock(message=message)]
    response.usage = Mock(prompt_tokens=10, completion_tokens=5, total_tokens=15)
    return response


class TestLLMClientInit:
    def test_invalid_provider(self):
        with pytest.raises(ValueError, match="Unsupported provider"):
            LLMClient(provider="invalid", model="test", api_key="test")

    def test_missing_api_key(self):
        with pytest.raises(ValueError, match="API key is required"):
            LLMClient(provider="anthropic", model="test", api_key="")

    @pytest.mark.parametrize("provider,base_url", [
        ("anthropic", "https://api.anthropic.com/v1/"),
        ("groq", "https://api.groq.com/openai/v1"),
    ])
    @patch("agents.llm_client.OpenAI")
    def test_compatible_base_urls(self, mock_openai_class, provider, base_url):
        LLMClient(provider=provider, model="m", api_key="key")
        mock_openai_class.assert_called_once_with(api_key="key", base_url=base_url)

    @patch("agents.llm_client.OpenAI")
    def test_openai_uses_default_url(self, mock_openai_class):
        LLMClient(provider="OpenAI", model="gpt-4o", api_key="key")
        mock_openai_class.assert_called_once_with(api_key="key")


class TestSendPrompt:
    @patch("agents.llm_client.OpenAI")
    def test_send_prompt_with_system(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = make_completion(make_message("Hello"))
        mock_openai_class.return_value = mock_client

        client = LLMClient(provider="anthropic", model="claude-sonnet-4-20250514", api_key="k")
        assert client.send_prompt("Hi", system="Be brief") == "Hello"

        kwargs = mock_client.chat.completions.create.call_args[1]
        assert kwargs["messages"][0] == {"role": "system", "content": "Be brief"}
        assert kwargs["messages"][1] == {"role": "user", "content": "Hi"}
        assert kwargs["max_tokens"] == 8192
        assert "tools" not in kwargs

    @patch("agents.llm_client.OpenAI")
    def test_send_prompt_empty_content(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = make_completion(make_message(None))
        mock_openai_class.return_value = mock_client

        client = LLMClient(provider="openai", model="gpt-4o", api_key="k")
        assert client.send_prompt("Hi") == ""

    @patch("agents.llm_client.OpenAI")
    def test_send_prompt_api_error(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = Exception("API rate limit exceeded")
        mock_openai_class.return_value = mock_client

        client = LLMClient(provider="openai", model="gpt-4o", api_key="k")
        with pytest.raises(Exception, match="API rate limit exceeded"):
            client.send_prompt("Hi")


class TestStreamText:
    @patch("agents.llm_client.OpenAI")
    def test_yields_non_empty_deltas(self, mock_openai_class):
        chunks = [
            Mock(choices=[Mock(delta=Mock(content="Hel"))]),
            Mock(choices=[]),
            Mock(choices=[Mock(delta=Mock(content=None))]),
            Mock(choices=[Mock(delta=Mock(content="lo"))]),
        ]
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = iter(chunks)
        mock_openai_class.return_value = mock_client

        client = LLMClient(provider="groq", model="llama", api_key="k")
        assert list(client.stream_text([{"role": "user", "content": "hi"}])) == ["Hel", "lo"]
        assert mock_client.chat.completions.create.call_args[1]["stream"] is True


class TestToolLoop:
    def _client(self, mock_openai_class, messages):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = [make_completion(m) for m in messages]
        mock_openai_class.return_value = mock_client
        return LLMClient(provider="anthropic", model="m", api_key="k"), mock_client

    @patch("agents.llm_client.OpenAI")
    def test_executes_tools_then_answers(self, mock_openai_class):
        add = Tool(
            name="add",
            description="Add two numbers",
            parameters={"type": "object", "properties": {"a": {"type": "number"}, "b": {"type": "number"}}},
            execute=lambda a, b: {"sum": a + b},
        )
        client, mock_client = self._client(mock_openai_class, [
            make_message(None, [make_tool_call("call_1", "add", json.dumps({"a": 2, "b": 3}))]),
            make_message("The sum is 5"),
        ])

        result = client.run_tool_loop([{"role": "user", "content": "2+3?"}], {"add": add})

        assert result.text == "The sum is 5"
        assert result.steps == 2
        assert result.tool_results == [{"tool_name": "add", "result": {"sum": 5}}]
        assert result.tool_calls[0]["name"] == "add"

        second_messages = mock_client.chat.completions.create.call_args_list[1][1]["messages"]
        assert second_messages[1]["role"] == "assistant"
        assert second_messages[2] == {"role": "tool", "tool_call_id": "call_1", "content": json.dumps({"sum": 5})}
        tools_sent = mock_client.chat.completions.create.call_args_list[0][1]["tools"]
        assert tools_sent[0]["function"]["name"] == "add"

    @patch("agents.llm_client.OpenAI")
    def test_tool_errors_are_fed_back(self, mock_openai_class):
        def explode():
            raise RuntimeError("disk full")

        tools = {"explode": Tool("explode", "fails", {"type": "object", "properties": {}}, explode)}
        client, _ = self._client(mock_openai_class, [
            make_message(None, [
                make_tool_call("c1", "explode", "{}"),
                make_tool_call("c2", "missing", "{}"),
                make_tool_call("c3", "explode", "{not json"),
            ]),
            make_message("Done"),
        ])

        result = client.run_tool_loop([{"role": "user", "content": "go"}], tools)

        assert result.tool_results[0]["result"] == {"error": "disk full"}
        assert result.tool_results[1]["result"] == {"error": "Unknown tool: missing"}
        assert result.tool_results[2]["result"]["error"].startswith("Invalid arguments for explode")
        assert result.text == "Done"

    @patch("agents.llm_client.OpenAI")
    def test_stops_at_max_steps(self, mock_openai_class):
        tools = {"noop": Tool("noop", "does nothing", {"type": "object", "properties": {}}, lambda: "ok")}
        client, mock_client = self._client(mock_openai_class, [
            make_message("step", [make_tool_call(f"c{i}", "noop", "")]) for i in range(5)
        ])

        result = client.run_tool_loop([{"role": "user", "content": "loop"}], tools, max_steps=3)

        assert result.steps == 3
        assert len(result.tool_results) == 3
        assert mock_client.chat.completions.create.call_count == 3
        assert result.text == "step"
