"""
FastAPI/ASGI app for the streamable HTTP transport.

- one MCP endpoint per domain under /<domain>/mcp
- Bearer token auth on the MCP endpoints
- Healthcheck under /health
- Prometheus metrics under /metrics
"""
from __future__ import annotations

import contextlib
import hmac
import logging
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Response, status
from fastapi.responses import JSONResponse
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from .config import is_production_env
from .gateway import AppContext
from .server import build_server

logger = logging.getLogger("crm_mcp.http_app")


def _is_mcp_path(path: str) -> bool:
    return path.rstrip("/").endswith("/mcp")


class BearerTokenAuthMiddleware:
    """
    Bearer token check for the MCP endpoints.

    Plain ASGI rather than ``BaseHTTPMiddleware``: MCP responses are SSE
    streams and pass through unbuffered.
    """

    def __init__(self, app: ASGIApp, expected_token: Optional[str] = None) -> None:
        self.app = app
        self.expected_token = (expected_token or "").strip()

    def _reject(self, scope: Scope) -> Optional[Response]:
        if is_production_env() and not self.expected_token:
            logger.error("[Auth] MCP_SERVER_TOKEN not set in production")
            return JSONResponse(
                {"error": "server_error", "message": "MCP_SERVER_TOKEN not configured"},
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        if not self.expected_token:
            return None

        scheme, _, token = Headers(scope=scope).get("authorization", "").partition(" ")
        if scheme == "Bearer" and token and hmac.compare_digest(token, self.expected_token):
            return None
        message = "Invalid token" if scheme == "Bearer" and token else "Missing or invalid Authorization header"
        logger.warning(f"[Auth] {message} for {scope['method']} {scope['path']}")
        return JSONResponse(
            {"error": "unauthorized", "message": message},
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and _is_mcp_path(scope["path"]):
            rejection = self._reject(scope)
            if rejection is not None:
                await rejection(scope, receive, send)
                return
        await self.app(scope, receive, send)


class MCPEndpoint:
    """ASGI endpoint forwarding to one domain's session manager."""

    def __init__(self, manager: StreamableHTTPSessionManager) -> None:
        self.manager = manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.manager.handle_request(scope, receive, send)


def create_app(context: AppContext) -> FastAPI:
    managers: Dict[str, StreamableHTTPSessionManager] = {
        name: StreamableHTTPSessionManager(
            app=build_server(gateway),
            event_store=None,
            json_response=False,
            stateless=True,
        )
        for name, gateway in context.gateways.items()
    }

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with contextlib.AsyncExitStack() as stack:
            for manager in managers.values():
                await stack.enter_async_context(manager.run())
            logger.info(f"MCP endpoints ready: {', '.join(f'/{name}/mcp' for name in managers)}")
            try:
                yield
            finally:
                await context.aclose()

    app = FastAPI(
        title=context.settings.name,
        description="MCP gateway for CRM tasks, leads and contacts",
        version=context.settings.version,
        lifespan=lifespan,
    )
    app.add_middleware(BearerTokenAuthMiddleware, expected_token=context.settings.token)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"ok": True, "status": "healthy", "domains": sorted(context.gateways)}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus-compatible metrics endpoint."""
        return Response(content=context.metrics.render_prometheus(), media_type="text/plain; version=0.0.4")

    for name, manager in managers.items():
        app.add_route(f"/{name}/mcp", MCPEndpoint(manager), methods=["GET", "POST", "DELETE"])

    return app
