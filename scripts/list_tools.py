from __future__ import annotations

import asyncio
import os
import sys

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client


BASE_URL = "http://127.0.0.1:9000"


async def main() -> None:
    domain = sys.argv[1] if len(sys.argv) > 1 else "tasks"
    headers = {}
    token = os.getenv("MCP_SERVER_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    async with streamablehttp_client(f"{BASE_URL}/{domain}/mcp", headers=headers) as (read_stream, write_stream, _):
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()
            tools_result = await session.list_tools()
            print(f"Available tools ({domain}):")
            for tool in tools_result.tools:
                print(f"- {tool.name}: {tool.description}")
            resources_result = await session.list_resources()
            print("Resources:")
            for resource in resources_result.resources:
                print(f"- {resource.uri}: {resource.name}")
            prompts_result = await session.list_prompts()
            print("Prompts:")
            for prompt in prompts_result.prompts:
                print(f"- {prompt.name}: {prompt.description}")


if __name__ == "__main__":
    asyncio.run(main())
