"""
Answer worker: turn a handed-off Slack mention into a threaded reply.

Responsibility: Run the agent for one inbound event and post whatever it
returns into the event's thread. Nothing here raises back to the front door.
"""

import asyncio
import logging

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from app.agent.loop import AgentLoop
from app.schemas.answer import GenerateAnswerResult, InboundEvent

logger = logging.getLogger(__name__)

EMPTY_QUESTION_MESSAGE = "質問内容をメンションと一緒に送ってください。"


class AnswerWorker:
    def __init__(self, agent: AgentLoop, slack: AsyncWebClient) -> None:
        self.agent = agent
        self.slack = slack
        self._pending: set[asyncio.Task] = set()

    def submit(self, event: InboundEvent) -> asyncio.Task:
        """Schedule handle_event in the background and return its task."""
        task = asyncio.create_task(self.handle_event(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def handle_event(self, event: InboundEvent) -> GenerateAnswerResult:
        question = event.question
        logger.info("[worker] IN  event_id=%s channel=%s question=%r", event.correlation_id, event.channel, question)
        if not question:
            result = GenerateAnswerResult(answer=EMPTY_QUESTION_MESSAGE, success=False)
        else:
            result = await self.agent.generate_answer(question)
        await self.post_reply(event, result.answer)
        logger.info("[worker] OUT event_id=%s success=%s", event.correlation_id, result.success)
        return result

    async def post_reply(self, event: InboundEvent, text: str) -> bool:
        """Post text into the event's thread. Returns False (and logs) on Slack errors."""
        try:
            await self.slack.chat_postMessage(channel=event.channel, thread_ts=event.reply_thread_ts, text=text)
        except SlackApiError as e:
            logger.error("[worker] chat.postMessage failed event_id=%s error=%s", event.correlation_id, e.response.get("error"))
            return False
        except Exception:
            logger.exception("[worker] chat.postMessage failed event_id=%s", event.correlation_id)
            return False
        return True
