"""Entry point for the debug bridge server."""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from .config import BridgeConfig, load_launch_config, parse_ports, resolve_adapter_command
from .errors import NoPortAvailable
from .host import DapDebugHost
from .lifecycle import EVENT_LOGGER_NAME
from .service import BridgeServer


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def configure_event_log(path: Path) -> None:
    """Mirror the session event log to a file."""
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logging.getLogger(EVENT_LOGGER_NAME).addHandler(handler)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Debug Bridge - expose a live debug session over a local HTTP API"
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Address to bind (default 127.0.0.1). "
        "The API is unauthenticated; keep it on loopback.",
    )
    parser.add_argument(
        "--ports",
        type=str,
        default=None,
        help="Candidate ports tried in order, e.g. '3001-3010' or '3001,4001'.",
    )
    parser.add_argument(
        "--port-file",
        type=str,
        default=None,
        help="Where to publish the port descriptor (default: temp dir).",
    )
    parser.add_argument(
        "--adapter",
        type=str,
        default=None,
        help="Debug adapter command line, e.g. 'python -m debugpy.adapter'.",
    )
    parser.add_argument(
        "--launch",
        type=str,
        default=None,
        help="JSON file with the launch/attach configuration passed to the adapter.",
    )
    parser.add_argument(
        "--no-autostart",
        action="store_true",
        default=False,
        help="Do not start the debug session at startup; wait for a 'start' control command.",
    )
    parser.add_argument(
        "--event-log",
        type=str,
        default=None,
        help="Also write session events to this file.",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> BridgeConfig:
    """Environment configuration overridden by command line flags."""
    config = BridgeConfig.from_env()
    if args.host:
        config.host = args.host
    if args.ports:
        config.ports = parse_ports(args.ports)
    if args.port_file:
        config.descriptor_path = Path(args.port_file)
    if args.adapter:
        config.adapter_command, config.adapter_id = resolve_adapter_command(args.adapter)
    if args.launch:
        config.launch_config = load_launch_config(args.launch)
    if args.event_log:
        config.event_log = Path(args.event_log)
    return config


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            pass  # Windows: KeyboardInterrupt ends the loop instead


async def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(argv)
    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    if config.event_log:
        configure_event_log(config.event_log)

    host = DapDebugHost(
        config.adapter_command, config.launch_config, adapter_id=config.adapter_id
    )
    bridge = BridgeServer(host, config)

    try:
        await bridge.start()
    except NoPortAvailable as e:
        logger.error(f"Cannot start debug bridge: {e}")
        return 1

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    try:
        if config.launch_config and not args.no_autostart:
            try:
                await host.start_session()
            except Exception:
                logger.exception("Failed to start debug session")

        stop_waiter = asyncio.create_task(stop_event.wait())
        closed_waiter = asyncio.create_task(bridge.wait_closed())
        await asyncio.wait({stop_waiter, closed_waiter}, return_when=asyncio.FIRST_COMPLETED)
        for task in (stop_waiter, closed_waiter):
            task.cancel()
    finally:
        await bridge.stop()
        await host.stop_session()
        logger.info("Server stopped")
    return 0


def run() -> None:
    """Run the server."""
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    run()
