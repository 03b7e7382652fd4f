"""
Hot reload server entry point.
Watches the configured directory and broadcasts reload signals until interrupted.
"""

import asyncio
import signal
import sys

from hot_reload.core.config import ApplicationConfig, get_config
from hot_reload.core.exceptions import ApplicationError, StartupError
from hot_reload.notifier import Notifier
from hot_reload.utils.logging_config import StructuredLogger, setup_logging

logger = StructuredLogger("main")


async def run_notifier(config: ApplicationConfig) -> None:
    """Run a notifier until SIGINT/SIGTERM, then stop it."""
    notifier = Notifier(config.notifier, config.listener)
    await notifier.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    if sys.platform != 'win32':
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
        logger.info("Application stopped by user")
    finally:
        await notifier.stop()


def main() -> None:
    try:
        config = get_config()
    except (ValueError, ApplicationError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        raise SystemExit(1)

    setup_logging(config.logging)
    config.validate()

    try:
        asyncio.run(run_notifier(config))
    except StartupError as e:
        logger.error(f"Application startup failed: {e.message}", **e.details)
        raise SystemExit(1)
    except KeyboardInterrupt:
        logger.info("Application stopped by user")


if __name__ == "__main__":
    main()
