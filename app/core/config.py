"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# OpenAI (agent LLM). Empty key means the agent refuses to run.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)

# Agent loop
MAX_AGENT_ROUNDS: int = 10
AGENT_MAX_TOKENS: int = 1024
ANSWER_LANGUAGE: str = os.getenv("ANSWER_LANGUAGE", "Japanese").strip() or "Japanese"

# MCP tool server (document search)
MCP_URL: str = os.getenv("MCP_URL", "https://iab-docs.apti.jp/mcp").strip()
MCP_CLIENT_NAME: str = "iab-docs-bot"
MCP_CLIENT_VERSION: str = "1.0.0"

# Scope document (skill.md) injected into the system prompt
SCOPE_DOC_URL: str = os.getenv("SCOPE_DOC_URL", "https://iab-docs.apti.jp/skill.md").strip()
SCOPE_CACHE_TTL_SECONDS: float = 60 * 60

# API timeouts (seconds)
LLM_API_TIMEOUT: float = 60.0
SCOPE_HTTP_TIMEOUT: float = 15.0

# Slack app credentials
SLACK_SIGNING_SECRET: str = os.getenv("SLACK_SIGNING_SECRET", "").strip()
SLACK_BOT_TOKEN: str = os.getenv("SLACK_BOT_TOKEN", "").strip()
