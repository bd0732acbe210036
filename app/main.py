# Run from project root: uvicorn app.main:app

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slack_sdk.web.async_client import AsyncWebClient

from app.agent.llm import ChatModel
from app.agent.loop import AgentLoop
from app.api.routes import router
from app.core.config import LOG_LEVEL, SLACK_BOT_TOKEN
from app.mcp.client import ToolCatalogClient
from app.services.answer_worker import AnswerWorker
from app.services.scope_context import ScopeContextCache

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

catalog = ToolCatalogClient()
agent = AgentLoop(catalog=catalog, scope_cache=ScopeContextCache(), model=ChatModel())
worker = AnswerWorker(agent=agent, slack=AsyncWebClient(token=SLACK_BOT_TOKEN))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("IAB docs bot starting; MCP server=%s", catalog.url)
    yield
    await catalog.close()


app = FastAPI(title="IAB Docs Bot", lifespan=lifespan)
app.state.worker = worker
app.include_router(router)
