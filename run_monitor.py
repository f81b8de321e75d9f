"""Entry point for the connwatch connectivity monitor."""
import argparse
import asyncio
import signal
import sys

from connwatch.runtime import build_runtime
from connwatch.monitoring.state import ConnectivityState
from connwatch.utils.logger import configure_logging, logger
from connwatch.utils.settings_loader import load_settings


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="connwatch Connectivity Monitor")
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML config file (default: built-in defaults)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override log level (DEBUG, INFO, WARNING, ERROR)"
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write logs to this file"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single check, print the result and exit (status 0 when online)"
    )
    parser.add_argument(
        "--bypass",
        action="store_true",
        help="Skip network probes and always report online"
    )
    return parser.parse_args(argv)


async def run_once(runtime) -> int:
    await runtime.start()
    try:
        view = await runtime.surface.check_now()
    finally:
        await runtime.close()
    print(f"[{view.level.upper()}] {view.headline}: {view.detail}")
    return 0 if view.state is ConnectivityState.ONLINE else 1


async def run_forever(runtime) -> int:
    stop_event = asyncio.Event()

    def handle_signal(*_):
        logger.info("🛑 Shutdown signal received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_signal)
        except (NotImplementedError, RuntimeError):
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(handle_signal))

    await runtime.start()
    try:
        await stop_event.wait()
    finally:
        await runtime.close()
    return 0


async def main(argv=None) -> int:
    args = parse_args(argv)
    settings = load_settings(args.config)

    if args.log_level:
        settings.logging.level = args.log_level.upper()
    if args.log_file:
        settings.logging.log_file = args.log_file
    if args.bypass:
        settings.monitor.bypass_checks = True

    configure_logging(
        log_file=settings.logging.log_file,
        level=settings.logging.level,
        serialize=settings.logging.serialize,
        timezone=settings.logging.timezone,
    )

    if args.once:
        # A single manual check; no timers or interface polling
        settings.monitor.startup_check = False
        settings.monitor.watch_interfaces = False
        return await run_once(build_runtime(settings))

    logger.info("🚀 Starting connwatch connectivity monitor")
    if settings.monitor.bypass_checks:
        logger.warning("🔶 Connection checks bypassed - connectivity will always read online")
    return await run_forever(build_runtime(settings))


def cli():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(2)


if __name__ == "__main__":
    cli()
