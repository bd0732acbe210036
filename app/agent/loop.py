"""
Agent loop: answer one question with a bounded tool-calling exchange.

system prompt (scope doc) + MCP tool declarations → model → (tool calls → MCP → model)* → answer.
At most MAX_AGENT_ROUNDS tool rounds; after the last round the latest reply's
text is returned as the answer. generate_answer never raises.
"""

import json
import logging
from typing import Any

from app.agent.llm import ChatModel, ModelReply, ToolCall
from app.agent.prompt import build_system_prompt
from app.core.config import MAX_AGENT_ROUNDS
from app.core.errors import ConfigurationError, ToolCatalogUnavailable, ToolInvocationError
from app.mcp.client import ToolCatalogClient
from app.schemas.answer import GenerateAnswerResult
from app.services.scope_context import ScopeContextCache

logger = logging.getLogger(__name__)

CONFIG_ERROR_MESSAGE = "設定エラー: OPENAI_API_KEY が設定されていません"
CATALOG_ERROR_MESSAGE = "ドキュメント検索サービスに接続できませんでした。"
GENERIC_ERROR_MESSAGE = "回答の生成中にエラーが発生しました。"


class AgentLoop:
    def __init__(
        self,
        catalog: ToolCatalogClient,
        scope_cache: ScopeContextCache,
        model: ChatModel,
        max_rounds: int = MAX_AGENT_ROUNDS,
    ) -> None:
        self.catalog = catalog
        self.scope_cache = scope_cache
        self.model = model
        self.max_rounds = max_rounds

    async def _run_tool_call(self, call: ToolCall) -> dict[str, Any]:
        """Execute one requested call; a failure becomes an error payload for the model."""
        try:
            result = await self.catalog.invoke(call.name, call.arguments)
            payload = {"content": result.text_content}
        except ToolInvocationError as e:
            logger.warning("[agent:tool] tool=%s failed: %s", call.name, e.message)
            payload = {"error": e.message}
        return {
            "role": "tool",
            "tool_call_id": call.id,
            "content": json.dumps(payload, ensure_ascii=False),
        }

    async def _exchange(self, question: str, tools: list[dict[str, Any]]) -> str:
        """Drive the model until it stops calling tools or the round limit is hit."""
        scope_document = await self.scope_cache.get_context()
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": build_system_prompt(scope_document)},
            {"role": "user", "content": question},
        ]
        reply: ModelReply = await self.model.complete(messages, tools)

        rounds = 0
        while rounds < self.max_rounds:
            if not reply.tool_calls:
                logger.info("[agent:loop] final answer after rounds=%d", rounds)
                return reply.content
            logger.info("[agent:loop] round=%d tool_calls=%d", rounds + 1, len(reply.tool_calls))
            messages.append(reply.to_message())
            for call in reply.tool_calls:
                messages.append(await self._run_tool_call(call))
            reply = await self.model.complete(messages, tools)
            rounds += 1

        logger.warning("[agent:loop] round limit %d reached; using last reply as answer", self.max_rounds)
        return reply.content

    async def generate_answer(self, question: str) -> GenerateAnswerResult:
        """Answer one question. Every failure is logged and returned as success=False."""
        logger.info("[agent] START question=%r", question)
        try:
            self.model.ensure_configured()
        except ConfigurationError as e:
            logger.error("[agent] configuration error: %s", e.message)
            return GenerateAnswerResult(answer=CONFIG_ERROR_MESSAGE, success=False)

        try:
            tools = await self.catalog.tool_declarations()
        except ToolCatalogUnavailable as e:
            logger.error("[agent] tool catalog unavailable: %s", e.message)
            return GenerateAnswerResult(answer=CATALOG_ERROR_MESSAGE, success=False)
        except Exception:
            logger.exception("[agent] failed to load tool declarations")
            return GenerateAnswerResult(answer=GENERIC_ERROR_MESSAGE, success=False)

        try:
            answer = await self._exchange(question, tools)
        except Exception:
            logger.exception("[agent] answer generation failed")
            return GenerateAnswerResult(answer=GENERIC_ERROR_MESSAGE, success=False)

        logger.info("[agent] END answer_len=%d", len(answer))
        return GenerateAnswerResult(answer=answer, success=True)
