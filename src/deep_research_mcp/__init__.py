"""Deep research orchestration over the OpenAI Responses API, served as MCP tools."""

__version__ = "0.1.0"
