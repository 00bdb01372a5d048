"""Entry point for running the daemon directly.

Usage:
    python -m passthru.daemon
    python -m passthru.daemon --system  # Use system bus (requires root/polkit)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys


async def main(bus_type: str = "session", config_path: str | None = None) -> None:
    """Run the passthru D-Bus daemon."""
    from .config import load_config
    from .service import PassthruService

    service = PassthruService(load_config(config_path), bus_type=bus_type)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_signal() -> None:
        logging.getLogger(__name__).info("Shutting down...")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    try:
        await service.start()

        # Wait for either disconnect or shutdown signal
        done, pending = await asyncio.wait(
            [
                asyncio.create_task(service.run()),
                asyncio.create_task(shutdown_event.wait()),
            ],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()

    finally:
        await service.stop()


def run() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="passthru D-Bus daemon")
    parser.add_argument(
        "--system",
        action="store_true",
        help="Use system bus instead of session bus",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to passthru.conf",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug messages",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    bus_type = "system" if args.system else "session"

    from .config import ConfigError

    try:
        asyncio.run(main(bus_type, args.config))
    except ConfigError as e:
        logging.getLogger(__name__).error("%s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
