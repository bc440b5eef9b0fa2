"""Persistent WebSocket transport tracking a single peer."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import anyio
import uvicorn
from anyio.streams.memory import MemoryObjectReceiveStream
from fastapi import FastAPI, WebSocket
from fastapi.responses import PlainTextResponse
from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.message import SessionMessage
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from uapf_mcp.config import GatewayConfig
from uapf_mcp.mcp_gateway.transports.base import GatewayTransport

_transport_log = logging.getLogger("uapf_mcp.transport")

MCP_SUBPROTOCOL = "mcp"

MessageHandler = Callable[[types.JSONRPCMessage], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]
CloseHandler = Callable[[], Awaitable[None]]


class WebSocketServerTransport(GatewayTransport):
    """Serves the MCP session over one WebSocket peer at a time.

    A newer connection replaces the tracked peer. Inbound frames that are not
    valid JSON-RPC messages are reported through ``on_error``; ``send`` fails
    when no peer is connected.
    """

    name = "websocket"

    def __init__(self, config: GatewayConfig) -> None:
        self.config = config
        self.on_message: MessageHandler | None = None
        self.on_error: ErrorHandler | None = None
        self.on_close: CloseHandler | None = None
        self._socket: WebSocket | None = None
        self._server: uvicorn.Server | None = None
        self.app = self._build_app()

    @property
    def connected(self) -> bool:
        return self._socket is not None and self._socket.client_state == WebSocketState.CONNECTED

    def _build_app(self) -> FastAPI:
        app = FastAPI(title=self.config.server_name)

        @app.get("/health", response_class=PlainTextResponse)
        async def health_check() -> str:
            return "ok"

        @app.websocket(self.config.path)
        async def mcp_socket(websocket: WebSocket) -> None:
            await self.handle_connection(websocket)

        return app

    async def handle_connection(self, websocket: WebSocket) -> None:
        offered = websocket.scope.get("subprotocols") or []
        await websocket.accept(subprotocol=MCP_SUBPROTOCOL if MCP_SUBPROTOCOL in offered else None)

        if self._socket is not None:
            _transport_log.info("websocket_peer_replaced", extra={"transport": self.name})
        self._socket = websocket
        _transport_log.info("websocket_connected", extra={"transport": self.name})

        try:
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                text = frame.get("text")
                if text is None:
                    text = (frame.get("bytes") or b"").decode("utf-8", errors="replace")
                await self._dispatch(text)
        except Exception as error:
            _transport_log.warning(
                "websocket_error error=%s", str(error), extra={"error": str(error)}
            )
            if self.on_error is not None:
                await self.on_error(error)
        finally:
            if self._socket is websocket:
                self._socket = None
                _transport_log.info("websocket_closed", extra={"transport": self.name})
                if self.on_close is not None:
                    await self.on_close()

    async def _dispatch(self, data: str) -> None:
        try:
            message = types.JSONRPCMessage.model_validate_json(data)
        except ValidationError as error:
            _transport_log.warning(
                "websocket_parse_error error=%s",
                str(error),
                extra={"error": str(error)},
            )
            if self.on_error is not None:
                await self.on_error(error)
            return
        if self.on_message is not None:
            await self.on_message(message)

    async def start(self) -> None:
        """Listen until :meth:`close` is called or the server is stopped."""
        uvicorn_config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
        self._server = uvicorn.Server(uvicorn_config)
        _transport_log.info(
            "transport_started transport=websocket url=ws://%s:%d%s",
            self.config.host,
            self.config.port,
            self.config.path,
            extra={"transport": self.name, "port": self.config.port, "path": self.config.path},
        )
        await self._server.serve()

    async def send(self, message: types.JSONRPCMessage) -> None:
        if self._socket is None or not self.connected:
            raise RuntimeError("WebSocket is not connected")
        await self._socket.send_text(message.model_dump_json(by_alias=True, exclude_none=True))

    async def close(self) -> None:
        socket = self._socket
        self._socket = None
        if socket is not None and socket.client_state == WebSocketState.CONNECTED:
            await socket.close()
        if self._server is not None:
            self._server.should_exit = True

    async def _pump_outbound(self, outbound: MemoryObjectReceiveStream[SessionMessage]) -> None:
        async with outbound:
            async for session_message in outbound:
                try:
                    await self.send(session_message.message)
                except Exception as error:
                    _transport_log.error(
                        "websocket_send_failed error=%s",
                        str(error),
                        extra={"error": str(error)},
                    )

    async def serve(self, server: Server[Any, Any]) -> None:
        inbound_send, inbound_receive = anyio.create_memory_object_stream[
            SessionMessage | Exception
        ](16)
        outbound_send, outbound_receive = anyio.create_memory_object_stream[SessionMessage](16)

        async def deliver(message: types.JSONRPCMessage) -> None:
            await inbound_send.send(SessionMessage(message))

        async def report(error: Exception) -> None:
            await inbound_send.send(error)

        self.on_message = deliver
        self.on_error = report

        async with anyio.create_task_group() as tg:
            tg.start_soon(self._pump_outbound, outbound_receive)
            tg.start_soon(
                server.run,
                inbound_receive,
                outbound_send,
                server.create_initialization_options(),
            )
            try:
                await self.start()
            finally:
                await inbound_send.aclose()
                tg.cancel_scope.cancel()
