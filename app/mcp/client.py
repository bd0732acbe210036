"""
MCP tool catalog client: discover and call document-search tools on a remote MCP server.

The connection is opened lazily on first use and kept for the life of the
process. A failed connect leaves no handle behind, so the next call retries.
Tool descriptors are normalized into OpenAI function-calling declarations.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import Implementation

from app.core.config import MCP_CLIENT_NAME, MCP_CLIENT_VERSION, MCP_URL
from app.core.errors import ToolCatalogUnavailable, ToolInvocationError

logger = logging.getLogger(__name__)

# Markdown link whose target is an http(s) URL: [label](https://...)
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^)]+)\)")

# Used by select_tool when no exact tool name is known
SEARCH_TOOL_KEYWORDS: tuple[str, ...] = ("search", "query")

# Longest error detail passed on from a failed tool call
MAX_ERROR_DETAIL: int = 500


@dataclass(frozen=True)
class ToolDescriptor:
    """One tool advertised by the MCP server."""

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)

    def to_declaration(self) -> dict[str, Any]:
        """OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": normalize_schema(self.input_schema),
            },
        }


@dataclass
class ToolInvocationResult:
    """Text returned by a tool call plus the markdown source links found in it."""

    text_content: str
    sources: list[str] = field(default_factory=list)


def normalize_schema(schema: dict[str, Any] | None) -> dict[str, Any]:
    """Make an MCP inputSchema acceptable as OpenAI function parameters (object with properties)."""
    out = {k: v for k, v in (schema or {}).items() if k != "$schema"}
    out["type"] = "object"
    out.setdefault("properties", {})
    return out


def extract_sources(text: str) -> list[str]:
    """Return the distinct markdown http(s) links in text, first occurrence first."""
    links = [m.group(0) for m in MARKDOWN_LINK_RE.finditer(text or "")]
    return list(dict.fromkeys(links))


def _error_detail(exc: BaseException) -> str:
    """Short, single-line description of an exception (no traceback)."""
    detail = str(exc).strip() or type(exc).__name__
    detail = " ".join(detail.split())
    return detail[:MAX_ERROR_DETAIL]


def parse_call_result(content: list[Any]) -> ToolInvocationResult:
    """
    Concatenate the text items of an MCP content array and collect their links.
    Each text item is followed by a blank line; the joined text is trimmed.
    Non-text items (images, resources) are ignored.
    """
    text = ""
    sources: list[str] = []
    for item in content or []:
        if getattr(item, "type", None) != "text":
            continue
        segment = getattr(item, "text", None)
        if not isinstance(segment, str):
            continue
        text += segment + "\n\n"
        sources.extend(extract_sources(segment))
    return ToolInvocationResult(text_content=text.strip(), sources=list(dict.fromkeys(sources)))


class ToolCatalogClient:
    """
    Holds one MCP session and the last tool catalog fetched through it.

    The transport and session live in a single owner task for their whole
    lifetime, so any task may use the session or close it.
    Construct once at process start and share.
    """

    def __init__(
        self,
        url: str = MCP_URL,
        client_name: str = MCP_CLIENT_NAME,
        client_version: str = MCP_CLIENT_VERSION,
    ) -> None:
        self.url = url
        self._client_info = Implementation(name=client_name, version=client_version)
        self._session: ClientSession | None = None
        self._connecting: asyncio.Future | None = None
        self._owner: asyncio.Task | None = None
        self._closing: asyncio.Event | None = None
        self._catalog: dict[str, ToolDescriptor] = {}

    @property
    def is_connected(self) -> bool:
        return self._session is not None

    async def _serve_session(self, ready: asyncio.Future, closing: asyncio.Event) -> None:
        """
        Owner task: enters the transport and session contexts, hands the session
        out through `ready`, and exits both contexts here once `closing` is set.
        anyio cancel scopes must be exited by the task that entered them.
        """
        session: ClientSession | None = None
        try:
            async with streamablehttp_client(self.url) as (read, write, _):
                async with ClientSession(read, write, client_info=self._client_info) as session:
                    await session.initialize()
                    ready.set_result(session)
                    await closing.wait()
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            else:
                logger.warning("[mcp:session] session ended with error: %s", e)
        finally:
            if not ready.done():
                ready.cancel()
            if session is not None and self._session is session:
                self._session = None
            logger.info("[mcp:session] closed url=%s", self.url)

    async def _connect(self) -> ClientSession:
        """Start the owner task and wait until its session is initialized."""
        ready: asyncio.Future = asyncio.get_running_loop().create_future()
        closing = asyncio.Event()
        owner = asyncio.create_task(self._serve_session(ready, closing))
        try:
            session = await ready
        except BaseException:
            closing.set()
            await asyncio.gather(owner, return_exceptions=True)
            raise
        self._owner, self._closing = owner, closing
        return session

    async def _get_session(self) -> ClientSession:
        """
        Return the shared session, connecting on first use. Concurrent first
        callers wait on the same connect attempt; a failed attempt is forgotten
        so the next call retries.
        """
        if self._session is not None:
            return self._session
        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        connecting = self._connecting
        try:
            session = await asyncio.shield(connecting)
        except Exception as e:
            logger.warning("[mcp:connect] failed url=%s error=%s", self.url, e)
            raise ToolCatalogUnavailable(f"Could not connect to MCP server at {self.url}: {_error_detail(e)}") from e
        finally:
            if self._connecting is connecting and connecting.done():
                self._connecting = None
        if self._session is None:
            self._session = session
            logger.info("[mcp:connect] connected url=%s", self.url)
        return self._session

    async def list_tools(self) -> list[ToolDescriptor]:
        """
        Fetch the tool catalog from the server (connecting first if needed).
        Raises ToolCatalogUnavailable on any transport or protocol failure;
        the session is dropped so the next call reconnects.
        """
        session = await self._get_session()
        try:
            result = await session.list_tools()
        except Exception as e:
            logger.warning("[mcp:list_tools] failed: %s", e)
            await self.close()
            raise ToolCatalogUnavailable(f"Could not list MCP tools: {_error_detail(e)}") from e
        tools = [
            ToolDescriptor(
                name=t.name,
                description=t.description or "",
                input_schema=dict(t.inputSchema or {}),
            )
            for t in result.tools
        ]
        self._catalog = {t.name: t for t in tools}
        logger.info("[mcp:list_tools] OUT tools=%s", [t.name for t in tools])
        return tools

    async def tool_declarations(self) -> list[dict[str, Any]]:
        """Refresh the catalog and return it as OpenAI tool declarations."""
        tools = await self.list_tools()
        return [t.to_declaration() for t in tools]

    def select_tool(self, keywords: tuple[str, ...] = SEARCH_TOOL_KEYWORDS) -> ToolDescriptor | None:
        """
        Best guess by keyword, for callers that have no exact tool name.
        Returns the first catalog tool whose lower-cased name contains any keyword,
        or None. Never falls back to an arbitrary tool.
        """
        for tool in self._catalog.values():
            name = tool.name.lower()
            if any(k.lower() in name for k in keywords):
                return tool
        return None

    async def invoke(self, name: str, arguments: dict[str, Any] | None) -> ToolInvocationResult:
        """
        Call the tool with exactly this name. Raises ToolInvocationError when the
        name is not in the catalog, the transport fails, or the tool reports an error.
        """
        args = arguments or {}
        if not self._catalog:
            try:
                await self.list_tools()
            except ToolCatalogUnavailable as e:
                raise ToolInvocationError(name, e.message) from e
        if name not in self._catalog:
            logger.warning("[mcp:invoke] unknown tool=%r available=%s", name, list(self._catalog))
            raise ToolInvocationError(name, f"Unknown tool: {name}")

        logger.info("[mcp:invoke] IN  tool=%s arguments=%r", name, args)
        try:
            session = await self._get_session()
            result = await session.call_tool(name, arguments=args)
        except ToolCatalogUnavailable as e:
            raise ToolInvocationError(name, e.message) from e
        except Exception as e:
            logger.warning("[mcp:invoke] tool=%s failed: %s", name, e)
            raise ToolInvocationError(name, _error_detail(e)) from e

        parsed = parse_call_result(result.content)
        if result.isError:
            message = parsed.text_content or "Tool returned an error"
            logger.warning("[mcp:invoke] tool=%s reported error: %s", name, message[:200])
            raise ToolInvocationError(name, message[:MAX_ERROR_DETAIL])
        logger.info(
            "[mcp:invoke] OUT tool=%s content_len=%d sources=%d",
            name,
            len(parsed.text_content),
            len(parsed.sources),
        )
        return parsed

    async def search_documents(self, query: str) -> ToolInvocationResult:
        """
        Single-shot search without the agent: pick a search-like tool by keyword
        and call it with {"query": query}. Empty result when no such tool exists.
        """
        if not self._catalog:
            await self.list_tools()
        tool = self.select_tool()
        if tool is None:
            logger.error("[mcp:search_documents] no search tool found, available=%s", list(self._catalog))
            return ToolInvocationResult(text_content="")
        logger.info("[mcp:search_documents] using tool=%s query=%r", tool.name, query)
        return await self.invoke(tool.name, {"query": query})

    async def close(self) -> None:
        """
        Close the session and transport. Safe to call from any task: the owner
        task is signalled and awaited, and it exits its own contexts.
        The next call reconnects.
        """
        owner, self._owner = self._owner, None
        closing, self._closing = self._closing, None
        self._session = None
        if owner is None:
            return
        if closing is not None:
            closing.set()
        try:
            await owner
        except Exception as e:
            logger.warning("[mcp:close] error while closing session: %s", e)
