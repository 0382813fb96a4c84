"""
Main entry point for the CRM MCP gateway.

    crm-mcp-server [tasks|leads|contacts]

stdio transport serves one domain per process (argument or MCP_DOMAIN).
http transport serves all domains from one FastAPI app under /<domain>/mcp.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

import uvicorn

from .config import load_config, load_settings
from .domains import DOMAINS, get_domain
from .gateway import build_app_context
from .http_app import create_app
from .server import build_server, run_stdio


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="crm-mcp-server", description="CRM MCP gateway")
    parser.add_argument("domain", nargs="?", choices=sorted(DOMAINS), help="Domain to serve over stdio")
    parser.add_argument("--transport", choices=("stdio", "http"), help="Override server.transport")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Start the gateway over the configured transport."""
    args = _parse_args(argv)
    try:
        settings = load_settings(load_config())
        if args.transport:
            settings.transport = args.transport
        if args.domain:
            settings.domain = args.domain

        if settings.transport == "stdio":
            domain = get_domain(settings.domain)
            context = build_app_context(settings, domains=[domain.scheme])
            gateway = context.gateway(domain.scheme)
            context.logger.info(f"Starting {gateway.name} v{settings.version} over stdio")

            async def serve() -> None:
                try:
                    await run_stdio(build_server(gateway))
                finally:
                    await context.aclose()

            asyncio.run(serve())
            return

        context = build_app_context(settings)
        app = create_app(context)
        print(f"Starting MCP gateway on http://{settings.host}:{settings.port}", file=sys.stderr)
        for name in context.gateways:
            print(f"MCP endpoint: http://{settings.host}:{settings.port}/{name}/mcp", file=sys.stderr)
        print(f"Healthcheck: http://{settings.host}:{settings.port}/health", file=sys.stderr)
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
            server_header=False,
        )
    except KeyboardInterrupt:
        print("\nServer shutdown requested...", file=sys.stderr)
        sys.exit(0)
    except Exception as e:
        print(f"Failed to start MCP server: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
