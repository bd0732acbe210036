"""
Unit tests for ChatModel: reply parsing and error mapping. The OpenAI client is a mock.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from app.agent.llm import ChatModel, ModelReply, ToolCall
from app.core.errors import ConfigurationError, ModelCommunicationError


def _response(content=None, tool_calls=None) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _tool_call(call_id: str, name: str, arguments: str) -> SimpleNamespace:
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


def _model(response=None, error: Exception | None = None) -> ChatModel:
    model = ChatModel(api_key="sk-test", model="test-model", max_tokens=100)
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    model._client = client
    return model


@pytest.mark.asyncio
async def test_text_reply() -> None:
    model = _model(_response(content="  final answer  "))
    reply = await model.complete([{"role": "user", "content": "q"}], [])
    assert reply == ModelReply(content="final answer", tool_calls=[])
    kwargs = model._client.chat.completions.create.await_args.kwargs
    assert "tools" not in kwargs
    assert kwargs["model"] == "test-model"


@pytest.mark.asyncio
async def test_tool_call_reply_parses_arguments() -> None:
    calls = [_tool_call("c1", "search", '{"query": "vast"}'), _tool_call("c2", "search", "not json")]
    model = _model(_response(tool_calls=calls))
    reply = await model.complete([], [{"type": "function", "function": {"name": "search"}}])
    assert reply.content == ""
    assert reply.tool_calls == [
        ToolCall(id="c1", name="search", arguments={"query": "vast"}),
        ToolCall(id="c2", name="search", arguments={}),
    ]
    assert "tools" in model._client.chat.completions.create.await_args.kwargs


@pytest.mark.asyncio
async def test_api_error_becomes_model_communication_error() -> None:
    model = _model(error=OpenAIError("boom"))
    with pytest.raises(ModelCommunicationError):
        await model.complete([], [])


@pytest.mark.asyncio
async def test_no_choices_is_an_error() -> None:
    model = _model(SimpleNamespace(choices=[]))
    with pytest.raises(ModelCommunicationError):
        await model.complete([], [])


@pytest.mark.asyncio
async def test_missing_key_raises_configuration_error() -> None:
    model = ChatModel(api_key="")
    with pytest.raises(ConfigurationError):
        await model.complete([], [])


def test_assistant_message_carries_tool_calls() -> None:
    reply = ModelReply(content="", tool_calls=[ToolCall(id="c1", name="search", arguments={"query": "広告"})])
    msg = reply.to_message()
    assert msg["role"] == "assistant"
    assert msg["tool_calls"][0]["id"] == "c1"
    assert msg["tool_calls"][0]["function"]["arguments"] == '{"query": "広告"}'
