"""Streamable HTTP transport served by FastAPI and uvicorn."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from mcp.server.lowlevel import Server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.datastructures import MutableHeaders
from starlette.routing import Route
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from uapf_mcp.config import GatewayConfig
from uapf_mcp.mcp_gateway.transports.base import GatewayTransport

_transport_log = logging.getLogger("uapf_mcp.transport")

CORS_ALLOW_HEADERS = "content-type, authorization, mcp-session-id"
CORS_ALLOW_METHODS = "GET,POST,OPTIONS,DELETE"


class CorsHeadersMiddleware:
    """Adds CORS headers to every HTTP response and answers preflights with 204."""

    def __init__(self, app: ASGIApp, origin: str = "*") -> None:
        self.app = app
        self.headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
            "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        }

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=204, headers=self.headers)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for key, value in self.headers.items():
                    headers[key] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


class McpEndpoint:
    """ASGI endpoint for the protocol path.

    GET without an event-stream ``Accept`` returns a status document; GET
    with it, POST and DELETE go to the session manager. Anything else is 405.
    """

    def __init__(self, session_manager: StreamableHTTPSessionManager) -> None:
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        method = scope["method"]
        accept = ""
        for key, value in scope.get("headers", []):
            if key.lower() == b"accept":
                accept = value.decode("latin-1")
                break

        if method == "GET" and "text/event-stream" not in accept:
            status = JSONResponse({"status": "ok", "transport": "streamable_http"})
            await status(scope, receive, send)
            return
        if method not in ("GET", "POST", "DELETE"):
            await Response(status_code=405)(scope, receive, send)
            return

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.session_manager.handle_request(scope, receive, tracking_send)
        except Exception as error:
            _transport_log.exception(
                "streamable_http_error method=%s error=%s",
                method,
                str(error),
                extra={"method": method, "error": str(error)},
            )
            if not response_started:
                failure = PlainTextResponse("Internal server error", status_code=500)
                await failure(scope, receive, send)


def create_http_app(
    server: Server[Any, Any],
    config: GatewayConfig,
    session_manager: StreamableHTTPSessionManager | None = None,
) -> FastAPI:
    """Build the FastAPI app; the session manager runs inside its lifespan."""
    manager = session_manager or StreamableHTTPSessionManager(
        app=server,
        json_response=False,
        stateless=False,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        async with manager.run():
            yield

    app = FastAPI(title=config.server_name, lifespan=lifespan)
    app.add_middleware(CorsHeadersMiddleware, origin=config.cors_origin)

    @app.get("/health", response_class=PlainTextResponse)
    async def health_check() -> str:
        """Health check endpoint."""
        return "ok"

    app.router.routes.append(Route(config.path, endpoint=McpEndpoint(manager)))
    return app


class StreamableHttpTransport(GatewayTransport):
    name = "streamable-http"

    def __init__(self, config: GatewayConfig) -> None:
        self.config = config

    async def serve(self, server: Server[Any, Any]) -> None:
        app = create_http_app(server, self.config)
        _transport_log.info(
            "transport_started transport=streamable-http url=http://%s:%d%s",
            self.config.host,
            self.config.port,
            self.config.path,
            extra={"transport": self.name, "port": self.config.port, "path": self.config.path},
        )
        uvicorn_config = uvicorn.Config(
            app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
        await uvicorn.Server(uvicorn_config).serve()
