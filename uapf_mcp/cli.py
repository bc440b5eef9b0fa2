"""Command line entry point: ``uapf-mcp``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from uapf_mcp import __version__
from uapf_mcp.config import GatewayConfig, normalize_transport
from uapf_mcp.errors import GatewayError
from uapf_mcp.mcp_gateway.server import run_gateway

_cli_log = logging.getLogger("uapf_mcp.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uapf-mcp",
        description="UAPF MCP Gateway: serve a UAPF engine's packages over MCP",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--transport",
        help="streamable-http (default), websocket or stdio (overrides MCP_TRANSPORT)",
    )
    parser.add_argument("--host", help="Bind address for network transports (MCP_HOST)")
    parser.add_argument("--port", type=int, help="Listening port (MCP_PORT)")
    parser.add_argument("--path", help="Protocol path (MCP_PATH)")
    parser.add_argument("--engine-url", help="UAPF engine base URL (UAPF_ENGINE_URL)")
    parser.add_argument(
        "--mode",
        choices=["package", "workspace", "auto"],
        help="Scope override (UAPF_MODE)",
    )
    parser.add_argument("--log-level", help="Logging level (MCP_LOG_LEVEL)")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = GatewayConfig.from_env().with_overrides(
            transport=normalize_transport(args.transport) if args.transport else None,
            host=args.host,
            port=args.port,
            path=args.path,
            engine_url=args.engine_url,
            mode=args.mode,
            log_level=args.log_level.upper() if args.log_level else None,
        )
    except GatewayError as error:
        logging.basicConfig(stream=sys.stderr, level=logging.INFO)
        _cli_log.error("startup_failed code=%s error=%s", error.code, error.message)
        sys.exit(1)

    # stdout carries the protocol when the stdio transport is selected.
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        asyncio.run(run_gateway(config))
    except GatewayError as error:
        _cli_log.error(
            "startup_failed code=%s error=%s",
            error.code,
            error.message,
            extra={"code": error.code, "status": error.status},
        )
        sys.exit(1)
    except KeyboardInterrupt:
        _cli_log.info("shutdown reason=interrupt")


if __name__ == "__main__":
    main()
