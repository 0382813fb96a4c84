from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Any, Dict

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client


BASE_URL = "http://127.0.0.1:9000"


async def main() -> None:
    if len(sys.argv) < 4:
        print("Usage: python scripts/call_tool.py <tasks|leads|contacts> <tool_name> '<json-args>'")
        raise SystemExit(1)

    domain, tool_name, raw_args = sys.argv[1], sys.argv[2], sys.argv[3]

    try:
        params: Dict[str, Any] = json.loads(raw_args)
    except ValueError as exc:
        print("Failed to parse JSON arguments")
        print(repr(exc))
        raise SystemExit(1)

    headers = {}
    token = os.getenv("MCP_SERVER_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    async with streamablehttp_client(f"{BASE_URL}/{domain}/mcp", headers=headers) as (read_stream, write_stream, _):
        async with ClientSession(read_stream, write_stream) as session:
            await session.initialize()
            result = await session.call_tool(tool_name, params)
            for content in result.content:
                print(getattr(content, "text", content))


if __name__ == "__main__":
    asyncio.run(main())
