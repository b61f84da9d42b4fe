"""
Command line entry points.

Usage:
    ws-bridge <websocket_port> <in_server_ip> <in_server_port> <out_server_ip> <out_server_port>
    ws-relay [in_port] [out_port]

Examples:
    # Bridge WebSocket port 8080 to the relay's default ports
    ws-bridge 8080 127.0.0.1 9002 127.0.0.1 9001

    # Relay with the default ports (IN 9002, OUT 9001)
    ws-relay
"""

import argparse
import asyncio
import sys

import uvicorn

from wsbridge.config.app_settings import app_config
from wsbridge.models.bridge_types import Endpoint
from wsbridge.servers.bridge_server import BridgeServer
from wsbridge.servers.lifecycle import (
    EXIT_OK,
    EXIT_STARTUP_FAILURE,
    EXIT_USAGE,
    BridgeUvicornServer,
    ShutdownFlag,
    install_signal_handlers,
)
from wsbridge.servers.relay_server import RelayServer
from wsbridge.util.logging_helper import RELAY_LOGGER, SESSION_LOGGER, get_logger, level_from_name, setup_logging

logger = get_logger(__name__)


class UsageArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that prints usage and exits with EXIT_USAGE on bad input."""

    def error(self, message):
        self.print_usage(sys.stderr)
        sys.stderr.write(f"{self.prog}: error: {message}\n")
        sys.exit(EXIT_USAGE)


def port_number(value: str) -> int:
    """argparse type for a positive TCP port."""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port number: {value!r}")
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError(f"port must be between 1 and 65535: {value}")
    return port


def _add_logging_args(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--log-level",
        type=str,
        default=app_config.logging.level,
        help=f"Logging level (default: {app_config.logging.level})",
    )
    parser.add_argument(
        "--hexdump",
        action="store_true",
        help="Log forwarded payloads as hex",
    )


def build_bridge_parser() -> argparse.ArgumentParser:
    parser = UsageArgumentParser(
        prog="ws-bridge",
        description="Dual WebSocket to TCP proxy",
        epilog="Example: ws-bridge 8080 127.0.0.1 9002 127.0.0.1 9001",
    )
    parser.add_argument("websocket_port", type=port_number, help="WebSocket listen port")
    parser.add_argument("in_server_ip", help="IN TCP server address")
    parser.add_argument("in_server_port", type=port_number, help="IN TCP server port")
    parser.add_argument("out_server_ip", help="OUT TCP server address")
    parser.add_argument("out_server_port", type=port_number, help="OUT TCP server port")
    parser.add_argument(
        "--host",
        type=str,
        default=app_config.bridge.host,
        help=f"WebSocket listen host (default: {app_config.bridge.host})",
    )
    _add_logging_args(parser)
    return parser


def build_relay_parser() -> argparse.ArgumentParser:
    relay = app_config.relay
    parser = UsageArgumentParser(
        prog="ws-relay",
        description="Dual-port TCP relay: bytes from the IN client go to the OUT client and back",
    )
    parser.add_argument(
        "in_port",
        nargs="?",
        type=port_number,
        default=relay.in_port,
        help=f"IN listen port (default: {relay.in_port})",
    )
    parser.add_argument(
        "out_port",
        nargs="?",
        type=port_number,
        default=relay.out_port,
        help=f"OUT listen port (default: {relay.out_port})",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=relay.host,
        help=f"Listen host (default: {relay.host})",
    )
    _add_logging_args(parser)
    return parser


def _configure_logging(args):
    debug_modules = [SESSION_LOGGER, RELAY_LOGGER] if args.hexdump else None
    setup_logging(level=level_from_name(args.log_level), debug_modules=debug_modules)


def bridge_main(argv: list[str] | None = None) -> int:
    """Run the WebSocket/TCP bridge until SIGINT/SIGTERM."""
    args = build_bridge_parser().parse_args(argv)
    _configure_logging(args)

    shutdown = ShutdownFlag()
    install_signal_handlers(shutdown)

    bridge = BridgeServer(
        in_endpoint=Endpoint(args.in_server_ip, args.in_server_port),
        out_endpoint=Endpoint(args.out_server_ip, args.out_server_port),
        settings=app_config.bridge,
        shutdown=shutdown,
    )

    # Imported here so the app module is only loaded for the bridge
    from wsbridge.main import create_app

    config = uvicorn.Config(
        create_app(bridge),
        host=args.host,
        port=args.websocket_port,
        log_level=args.log_level.lower(),
        log_config=None,
    )
    server = BridgeUvicornServer(config, shutdown)

    logger.info("Dual WebSocket to TCP proxy running on port %d", args.websocket_port)
    logger.info("IN server: %s", bridge.in_endpoint)
    logger.info("OUT server: %s", bridge.out_endpoint)

    try:
        server.run()
    except KeyboardInterrupt:
        shutdown.trigger()
    except SystemExit:
        # uvicorn exits on bind failure before it reports started
        if server.started:
            raise

    if not server.started:
        logger.error("Failed to start the WebSocket front end on %s:%d", args.host, args.websocket_port)
        return EXIT_STARTUP_FAILURE

    logger.info("Goodbye!")
    return EXIT_OK


def relay_main(argv: list[str] | None = None) -> int:
    """Run the dual-port relay until SIGINT/SIGTERM."""
    args = build_relay_parser().parse_args(argv)
    _configure_logging(args)

    shutdown = ShutdownFlag()
    install_signal_handlers(shutdown)

    settings = app_config.relay
    server = RelayServer(
        host=args.host,
        in_port=args.in_port,
        out_port=args.out_port,
        tick=settings.tick,
        accept_backoff=settings.accept_backoff,
        buffer_size=settings.buffer_size,
        shutdown=shutdown,
    )

    try:
        server.start()
    except OSError as e:
        logger.error("Failed to start relay listeners: %s", e)
        return EXIT_STARTUP_FAILURE

    logger.info("Press Ctrl+C to terminate the relay")
    asyncio.run(server.run())
    logger.info("Server shutdown complete.")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(bridge_main())
