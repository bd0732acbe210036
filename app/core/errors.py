"""
Application errors for the answering pipeline.

Pre-flight errors (ConfigurationError, ToolCatalogUnavailable) stop an answer
before the model is contacted. ToolInvocationError is recovered by the agent
loop and shown to the model. ModelCommunicationError ends the attempt.
"""


class BotError(Exception):
    """Base class for errors raised by the answering pipeline."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(BotError):
    """Raised when a required credential or setting is missing."""


class ToolCatalogUnavailable(BotError):
    """Raised when the MCP tool server cannot be reached or cannot list its tools."""


class ToolInvocationError(BotError):
    """Raised when a single tool call fails (unknown tool, transport or tool-side error)."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.tool_name}: {self.message}"


class ModelCommunicationError(BotError):
    """Raised when the LLM endpoint returns an error or an unusable response."""
