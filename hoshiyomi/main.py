"""
HOSHIYOMI Main Entry Point

Command-line front end for the moon engine.

Usage:
    hoshiyomi serve [--host HOST] [--port PORT]
    hoshiyomi calc --date 2022-07-17 [--time 12:00] [--utc-offset +09:00]
                   [--latitude 34.86 --longitude 133.83] [--new-moon]

Global options:
    -c, --config PATH     Config file (default: auto-discovery)
    --log-level LEVEL     Override the configured log level

Exit codes:
    0  success
    1  invalid input
    2  internal error, configuration error or usage error
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Any, Optional

from hoshiyomi.config import HoshiyomiConfig, load_config
from hoshiyomi.constants import (
    EXIT_INTERNAL_ERROR,
    EXIT_INVALID_INPUT,
    EXIT_OK,
    HOSHIYOMI_NAME,
    HOSHIYOMI_VERSION,
)
from hoshiyomi.exceptions import ConfigurationError, InternalError, InvalidInputError
from hoshiyomi.logging_config import get_logger, log_exception, setup_logging
from services.ephemeris.engine import MoonEngine, make_geo, make_local_instant
from services.ephemeris.models import RiseSetResult
from services.moon_api.server import MoonApiServer

logger = get_logger("main")


# =============================================================================
# Argument Parsing
# =============================================================================


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from None
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog=HOSHIYOMI_NAME,
        description="Moon rise/set and moon age calculator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hoshiyomi serve --port 50051
  hoshiyomi calc --date 2022-07-17
  hoshiyomi calc --date 2022-07-17 --latitude 34.861972 --longitude 133.833990
        """,
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to configuration file (default: auto-discover)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {HOSHIYOMI_VERSION}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the Moon API service")
    serve.add_argument("--host", type=str, default=None, help="Listen address (overrides config)")
    serve.add_argument("--port", type=_port, default=None, help="Listen port (overrides config)")

    calc = subparsers.add_parser("calc", help="Print the moon age for a date")
    calc.add_argument("--date", type=str, required=True, help="Calendar date, YYYY-MM-DD")
    calc.add_argument("--time", type=str, default=None, help="Local time of day, HH:MM (default from config: 12:00)")
    calc.add_argument("--utc-offset", type=str, default=None, help="UTC offset, ±HH:MM; write negative offsets as --utc-offset=-05:00 (default from config: +09:00)")
    # Coordinates stay strings so malformed values are reported as invalid input
    calc.add_argument("--latitude", type=str, default=None, help="Observer latitude in decimal degrees")
    calc.add_argument("--longitude", type=str, default=None, help="Observer longitude in decimal degrees")
    calc.add_argument("--new-moon", action="store_true", help="Also print the previous new Moon")

    return parser


# =============================================================================
# Signal Handling
# =============================================================================


class GracefulShutdown:
    """Handles graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.shutdown_requested = False
        self._shutdown_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._original_handlers: dict[int, Any] = {}

    def install_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Install signal handlers.

        Args:
            loop: Running event loop to wake when a signal arrives
        """
        self._loop = loop
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle_signal)

    def restore_handlers(self) -> None:
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def _handle_signal(self, signum: int, frame: Any) -> None:
        """Handle shutdown signal."""
        self.shutdown_requested = True
        if self._shutdown_event is None:
            return
        if self._loop is not None and self._loop.is_running():
            # Wakes the loop even while it is blocked in select()
            self._loop.call_soon_threadsafe(self._shutdown_event.set)
        else:
            self._shutdown_event.set()

    def get_shutdown_event(self) -> asyncio.Event:
        """Get or create the shutdown event."""
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
            if self.shutdown_requested:
                self._shutdown_event.set()
        return self._shutdown_event


_shutdown_handler: Optional[GracefulShutdown] = None


def get_shutdown_handler() -> GracefulShutdown:
    """Get the global shutdown handler."""
    global _shutdown_handler
    if _shutdown_handler is None:
        _shutdown_handler = GracefulShutdown()
    return _shutdown_handler


# =============================================================================
# Commands
# =============================================================================


def build_engine(config: HoshiyomiConfig) -> MoonEngine:
    """Create the engine from the engine section of the configuration."""
    return MoonEngine(config.engine.to_parameters(), config.engine.synodic_period_days)


def _format_rise_set(result: RiseSetResult) -> list[str]:
    rise = result.rise_time
    set_ = result.set_time
    lines = [
        f"rise: {rise.isoformat() if rise else '-'}",
        f"set: {set_.isoformat() if set_ else '-'}",
    ]
    if result.circumpolar:
        lines.append("day: circumpolar")
    elif result.never_rises:
        lines.append("day: never rises")
    return lines


def run_calc(args: argparse.Namespace, config: HoshiyomiConfig) -> int:
    """Compute and print the moon age (and optionally rise/set) for a date.

    Returns:
        Exit code
    """
    engine = build_engine(config)

    try:
        instant = make_local_instant(
            args.date,
            args.time or config.calc.time_of_day,
            args.utc_offset or config.calc.utc_offset,
        )

        geo = None
        if args.latitude is not None or args.longitude is not None:
            if args.latitude is None or args.longitude is None:
                raise InvalidInputError("--latitude and --longitude must be given together")
            geo = make_geo(args.latitude, args.longitude)

        lines = [f"{engine.compute_age(instant).age_days:.2f}"]
        if geo is not None:
            lines.extend(_format_rise_set(engine.compute_rise_set(instant, geo)))
        if args.new_moon:
            lines.append(f"new moon: {engine.compute_previous_new_moon(instant).isoformat()}")

    except InvalidInputError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except InternalError as e:
        log_exception(logger, "Calculation failed", e)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR

    print("\n".join(lines))
    return EXIT_OK


async def run_server(config: HoshiyomiConfig, shutdown: GracefulShutdown) -> int:
    """Serve the Moon API until a shutdown signal arrives.

    Returns:
        Exit code
    """
    server = MoonApiServer(config.server, build_engine(config))
    try:
        await server.start()
    except OSError as e:
        log_exception(logger, f"Cannot listen on {config.server.host}:{config.server.port}", e)
        return EXIT_INTERNAL_ERROR

    try:
        await shutdown.get_shutdown_event().wait()
        logger.info("Shutdown requested")
    finally:
        await server.stop()
    return EXIT_OK


async def async_main(args: argparse.Namespace, config: HoshiyomiConfig) -> int:
    """Async entry point.

    Args:
        args: Parsed command-line arguments
        config: Loaded configuration

    Returns:
        Exit code
    """
    if args.command == "calc":
        return run_calc(args, config)

    if args.host is not None:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port

    logger.info(f"Starting {HOSHIYOMI_NAME} {HOSHIYOMI_VERSION}")
    shutdown = get_shutdown_handler()
    shutdown.install_handlers(asyncio.get_running_loop())
    try:
        return await run_server(config, shutdown)
    finally:
        shutdown.restore_handlers()


def main(argv: Optional[list[str]] = None) -> int:
    """Synchronous entry point (console script)."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR

    if args.log_level:
        config.log_level = args.log_level

    setup_logging(
        log_level=config.log_level,
        log_file=config.log_file,
        json_format=config.log_json,
        stream=sys.stderr if args.command == "calc" else sys.stdout,
    )

    try:
        return asyncio.run(async_main(args, config))
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
