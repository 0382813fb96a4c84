"""
MCP protocol wiring for one domain gateway.

The low-level ``Server`` is used instead of FastMCP so that tool input schemas
are the exact JSON schemas the domain declares. Tool-side input validation is
left to the dispatcher, which audits every call including invalid ones.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server

from .gateway import DomainGateway

logger = logging.getLogger("crm_mcp.server")


def build_server(gateway: DomainGateway) -> Server:
    server: Server = Server(gateway.name, version=gateway.settings.version)
    scheme = gateway.domain.scheme

    @server.list_resources()
    async def list_resources() -> List[types.Resource]:
        return [
            types.Resource(uri=r.uri, name=r.name, description=r.description, mimeType=r.mime_type)
            for r in gateway.resources.list_resources()
        ]

    @server.list_resource_templates()
    async def list_resource_templates() -> List[types.ResourceTemplate]:
        return [
            types.ResourceTemplate(uriTemplate=t.uri, name=t.name, description=t.description, mimeType=t.mime_type)
            for t in gateway.resources.list_templates()
        ]

    @server.read_resource()
    async def read_resource(uri: Any) -> Iterable[ReadResourceContents]:
        logger.debug(f"Handling read resource request for {uri}", extra={"domain": scheme})
        document = await gateway.resources.resolve(str(uri))
        return [ReadResourceContents(content=c["text"], mime_type=c["mimeType"]) for c in document["contents"]]

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return [
            types.Tool(name=t.name, description=t.description, inputSchema=t.input_schema())
            for t in gateway.tools.list_tools()
        ]

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
        logger.debug(f"Handling call tool request for {name}", extra={"domain": scheme, "tool": name})
        result = await gateway.call_tool(name, arguments)
        return [types.TextContent(type="text", text=json.dumps(result, indent=2, ensure_ascii=False, default=str))]

    @server.list_prompts()
    async def list_prompts() -> List[types.Prompt]:
        return [
            types.Prompt(
                name=p.name,
                description=p.description,
                arguments=[
                    types.PromptArgument(name=a.name, description=a.description, required=a.required)
                    for a in p.arguments
                ],
            )
            for p in gateway.prompts.list_prompts()
        ]

    @server.get_prompt()
    async def get_prompt(name: str, arguments: Optional[Dict[str, str]]) -> types.GetPromptResult:
        logger.debug(f"Handling get prompt request for {name}", extra={"domain": scheme})
        text = await gateway.prompts.render(name, arguments)
        return types.GetPromptResult(
            messages=[types.PromptMessage(role="user", content=types.TextContent(type="text", text=text))],
        )

    return server


async def run_stdio(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
