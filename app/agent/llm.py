"""
Agent LLM: OpenAI chat completions with function calling.

One ChatModel is built at startup and shared; the AsyncOpenAI client is created
on first use. Every reply is reduced to its text and its tool calls.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from app.core.config import AGENT_MAX_TOKENS, LLM_API_TIMEOUT, OPENAI_API_KEY, OPENAI_LLM_MODEL
from app.core.errors import ConfigurationError, ModelCommunicationError

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    """A function call requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelReply:
    """Text and tool calls from one model turn."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    def to_message(self) -> dict[str, Any]:
        """Assistant turn to append to the transcript before the tool results."""
        msg: dict[str, Any] = {"role": "assistant", "content": self.content}
        if self.tool_calls:
            msg["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments, ensure_ascii=False)},
                }
                for tc in self.tool_calls
            ]
        return msg


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        args = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        logger.warning("[llm] tool call arguments are not valid JSON: %r", raw)
        return {}
    return args if isinstance(args, dict) else {}


class ChatModel:
    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        model: str = OPENAI_LLM_MODEL,
        max_tokens: int = AGENT_MAX_TOKENS,
        timeout: float = LLM_API_TIMEOUT,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client: AsyncOpenAI | None = None

    def ensure_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")

    def _get_client(self) -> AsyncOpenAI:
        self.ensure_configured()
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def complete(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> ModelReply:
        """
        Send the transcript and tool declarations; return the reply's text and tool calls.
        Raises ModelCommunicationError when the API call fails or returns no choices.
        """
        client = self._get_client()
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
        }
        if tools:
            kwargs["tools"] = tools
        logger.info("[llm:complete] IN  messages=%d tools=%d", len(messages), len(tools))
        try:
            response = await client.chat.completions.create(**kwargs)
        except OpenAIError as e:
            raise ModelCommunicationError(f"OpenAI request failed: {e}") from e
        if not response.choices:
            raise ModelCommunicationError("OpenAI returned no choices")

        msg = response.choices[0].message
        content = (getattr(msg, "content", None) or "").strip()
        tool_calls = []
        for tc in getattr(msg, "tool_calls", None) or []:
            fn = getattr(tc, "function", None)
            if not fn:
                continue
            tool_calls.append(
                ToolCall(
                    id=getattr(tc, "id", None) or "",
                    name=getattr(fn, "name", None) or "",
                    arguments=_parse_arguments(getattr(fn, "arguments", None)),
                )
            )
        if tool_calls:
            logger.info("[llm:complete] OUT tool_calls=%s", [t.name for t in tool_calls])
        else:
            logger.info("[llm:complete] OUT content_len=%d", len(content))
        return ModelReply(content=content, tool_calls=tool_calls)
