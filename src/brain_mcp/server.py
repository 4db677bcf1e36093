"""MCP server entry point: stdio transport, tools collected from tool modules."""

import json
import traceback

import structlog
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

logger = structlog.get_logger()

app = Server("rho-brain")

# Populated on first list_tools/call_tool
_tool_defs: list[Tool] | None = None
_handlers: dict | None = None


def _load_tools() -> tuple[list[Tool], dict]:
    """Load tool definitions and handlers from all tool modules."""
    from brain_mcp.tools import brain, tasks

    tools = []
    handlers = {}
    for mod in (brain, tasks):
        for name, schema, handler in mod.TOOLS:
            tools.append(Tool(name=name, description=schema["description"], inputSchema=schema))
            handlers[name] = handler
    return tools, handlers


@app.list_tools()
async def list_tools() -> list[Tool]:
    global _tool_defs, _handlers
    if _tool_defs is None:
        _tool_defs, _handlers = _load_tools()
    return _tool_defs


def call_tool_sync(name: str, arguments: dict | None) -> dict:
    """Run one tool handler; unexpected failures become an error payload."""
    global _tool_defs, _handlers
    if _handlers is None:
        _tool_defs, _handlers = _load_tools()

    handler = _handlers.get(name)
    if not handler:
        return {"error": f"Unknown tool: {name}", "type": "ValidationError"}

    try:
        return handler(arguments or {})
    except Exception as e:
        logger.error("tool_error", tool=name, error=str(e))
        return {"error": str(e), "type": type(e).__name__, "traceback": traceback.format_exc()}


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    result = call_tool_sync(name, arguments)
    return [TextContent(type="text", text=json.dumps(result, default=str))]


async def run():
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def main():
    import asyncio

    from cli.config import load_config_model
    from cli.logging_config import setup_logging

    config = load_config_model()
    setup_logging(json_mode=True, level=config.logging.level, log_file=config.paths.log_file)
    asyncio.run(run())


if __name__ == "__main__":
    main()
