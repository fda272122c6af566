"""
LLM client for Claude, OpenAI and Groq models.

Uses the OpenAI Python SDK for all three providers (Anthropic and Groq
expose OpenAI-compatible endpoints), so agents get one interface for plain
prompts, streaming and tool calling.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional
from openai import OpenAI
from utils.logger import setup_logger

logger = setup_logger(name=__name__)

PROVIDER_BASE_URLS = {
    "anthropic": "https://api.anthropic.com/v1/",
    "groq": "https://api.groq.com/openai/v1",
    "openai": None,
}


@dataclass
class Tool:
    """A function the model may call during a tool loop."""

    name: str
    description: str
    parameters: Dict[str, Any]
    execute: Callable[..., Any]

    def to_openai(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolLoopResult:
    text: str = ""
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    tool_results: List[Dict[str, Any]] = field(default_factory=list)
    steps: int = 0


class LLMClient:
    """
    Client for interacting with LLM providers.

    One OpenAI SDK client, pointed at the provider's OpenAI-compatible
    base URL.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        api_key: str,
        temperature: float = 0.7,
        max_tokens: int = 8192
    ):
        """
        Initialize LLM client.

        Args:
            provider: LLM provider - 'anthropic', 'openai' or 'groq'
            model: Model name (e.g., 'claude-sonnet-4-20250514', 'gpt-4o', 'llama-3.3-70b-versatile')
            api_key: API key for the provider
            temperature: Sampling temperature (0.0 to 1.0)
            max_tokens: Maximum tokens in response
                       Note: max_tokens is required for Anthropic API and cannot be omitted

        Raises:
            ValueError: If provider is not supported or API key is missing
        """
        self.provider = provider.lower()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        if self.provider not in PROVIDER_BASE_URLS:
            raise ValueError(
                f"Unsupported provider: {provider}. Must be one of: {', '.join(PROVIDER_BASE_URLS)}"
            )

        if not api_key:
            raise ValueError(f"{provider} API key is required but not provided")

        base_url = PROVIDER_BASE_URLS[self.provider]
        if base_url:
            self.client = OpenAI(api_key=api_key, base_url=base_url)
        else:
            self.client = OpenAI(api_key=api_key)

        logger.info(f"Initialized LLMClient: provider={provider}, model={model}")

    def _log_usage(self, response, label: str = "LLM usage") -> None:
        if hasattr(response, "usage") and response.usage:
            logger.info(
                f"{label}: {response.usage.prompt_tokens} prompt tokens, "
                f"{response.usage.completion_tokens} completion tokens, "
                f"{response.usage.total_tokens} total"
            )

    def send_prompt(self, prompt: str, system: Optional[str] = None) -> str:
        """
        Send a prompt to the LLM and get a text response.

        Args:
            prompt: The prompt text to send
            system: Optional system message

        Returns:
            Text response from the LLM (empty string if the model returned none)

        Raises:
            Exception: If API call fails (auth, rate limit, etc.)
        """
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})

        try:
            logger.debug(f"Sending prompt to {self.provider} ({len(prompt)} chars)")
            message = self.chat(messages)
            response_text = message.content or ""
            logger.debug(f"Received response from {self.provider} ({len(response_text)} chars)")
            return response_text
        except Exception as e:
            logger.error(f"LLM API call failed: {e}")
            raise

    def chat(self, messages: List[Dict[str, Any]], tools: Optional[List[Tool]] = None):
        """Single chat completion; returns the first choice's message."""
        kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            kwargs["tools"] = [tool.to_openai() for tool in tools]

        response = self.client.chat.completions.create(**kwargs)
        self._log_usage(response)
        return response.choices[0].message

    def stream_text(self, messages: List[Dict[str, Any]]) -> Iterator[str]:
        """Yield content deltas as the model produces them."""
        stream = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=True,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta

    def run_tool_loop(
        self,
        messages: List[Dict[str, Any]],
        tools: Dict[str, Tool],
        max_steps: int = 6,
    ) -> ToolLoopResult:
        """
        Let the model call tools until it answers in plain text.

        Each step is one model call. Tool calls in a step are executed in
        order and their results fed back. Tool failures are returned to the
        model as {"error": ...} results rather than raised.

        Args:
            messages: Conversation so far (system + history + user)
            tools: Available tools keyed by name
            max_steps: Maximum number of model calls

        Returns:
            ToolLoopResult with the final text, every call and result, and
            the number of steps taken
        """
        messages = list(messages)
        result = ToolLoopResult()
        tool_list = list(tools.values())

        while result.steps < max_steps:
            message = self.chat(messages, tools=tool_list or None)
            result.steps += 1
            calls = message.tool_calls or []

            if message.content:
                result.text = message.content
            if not calls:
                break

            messages.append({
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments},
                    }
                    for call in calls
                ],
            })

            for call in calls:
                name = call.function.name
                output = self._execute_tool(tools, name, call.function.arguments)
                result.tool_calls.append({"id": call.id, "name": name, "arguments": call.function.arguments})
                result.tool_results.append({"tool_name": name, "result": output})
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(output, default=str, ensure_ascii=False),
                })

        logger.info(
            f"Tool loop finished: {result.steps} step(s), {len(result.tool_calls)} tool call(s)"
        )
        return result

    @staticmethod
    def _execute_tool(tools: Dict[str, Tool], name: str, raw_arguments: Optional[str]) -> Any:
        tool = tools.get(name)
        if tool is None:
            return {"error": f"Unknown tool: {name}"}
        try:
            arguments = json.loads(raw_arguments) if raw_arguments else {}
        except json.JSONDecodeError as e:
            return {"error": f"Invalid arguments for {name}: {e}"}
        try:
            return tool.execute(**arguments)
        except Exception as e:
            logger.warning(f"Tool {name} failed: {e}")
            return {"error": str(e)}
