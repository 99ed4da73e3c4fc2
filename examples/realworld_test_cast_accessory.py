#!/usr/bin/env python3
"""Real-world demo: follow a Chromecast on the local network.

This script runs one :class:`CastAccessory` against a real cast device:

  1. Load the accessory configuration (YAML file or command line).
  2. Browse for ``_googlecast._tcp`` and wait for the named device.
  3. Connect, follow its application / media sessions and print every
     switch and motion change.
  4. Print a status line every few seconds (connection state, casting,
     volume).
  5. Wait for the user to press Enter, then shut down cleanly.

Start something on the device (e.g. a YouTube video) while the script
runs to watch the switch turn on; pause it to watch it turn off and the
motion sensor follow after the configured delay.

Run from the project root::

    python examples/realworld_test_cast_accessory.py --device "Living Room"
    python examples/realworld_test_cast_accessory.py --config living-room.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure the package is importable when running from the repo root.
# ---------------------------------------------------------------------------
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from pyCastAutomation import (  # noqa: E402
    AccessoryConfig,
    CastAccessory,
    load_config,
)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

#: Seconds between two status lines.
STATUS_INTERVAL = 10

#: Default switch-off delay in milliseconds.
SWITCH_OFF_DELAY = 5000

# ---------------------------------------------------------------------------
# Logging: colourful, timestamped, to stdout
# ---------------------------------------------------------------------------

BOLD = "\033[1m"
GREEN = "\033[32m"
CYAN = "\033[36m"
YELLOW = "\033[33m"
RED = "\033[31m"
RESET = "\033[0m"


class ColourFormatter(logging.Formatter):
    LEVEL_COLOURS = {
        logging.DEBUG: CYAN,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED + BOLD,
    }

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLOURS.get(record.levelno, "")
        ts = self.formatTime(record, "%H:%M:%S")
        return (
            f"{BOLD}{ts}{RESET} "
            f"{colour}{record.levelname:<8s}{RESET} "
            f"{record.name}: {record.getMessage()}"
        )


def setup_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColourFormatter())
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    root.addHandler(handler)
    # Suppress noisy zeroconf / pychromecast internals.
    logging.getLogger("zeroconf").setLevel(logging.WARNING)
    logging.getLogger("pychromecast").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--config", type=Path, help="YAML accessory config")
    source.add_argument("--device", help="advertised Chromecast name")
    parser.add_argument(
        "--delay",
        type=int,
        default=SWITCH_OFF_DELAY,
        help="switch-off delay in milliseconds (with --device)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args()


async def wait_for_user(prompt: str) -> None:
    """Wait for the user to press Enter without blocking the event loop."""
    loop = asyncio.get_running_loop()
    print()
    print(f"{BOLD}{YELLOW}{prompt}{RESET}")
    await loop.run_in_executor(None, sys.stdin.readline)


async def report_status(accessory: CastAccessory) -> None:
    logger = logging.getLogger("demo.status")
    while True:
        await asyncio.sleep(STATUS_INTERVAL)
        logger.info(
            "%s: %s | casting=%s motion=%s volume=%d",
            accessory.device_address or "<not found>",
            accessory.connection_state.name,
            accessory.is_casting,
            accessory.motion_detected,
            accessory.volume,
        )


def banner(text: str) -> None:
    """Print a prominent banner to the console."""
    width = 60
    print()
    print(f"{BOLD}{CYAN}{'=' * width}{RESET}")
    print(f"{BOLD}{CYAN} {text.center(width - 2)} {RESET}")
    print(f"{BOLD}{CYAN}{'=' * width}{RESET}")
    print()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

async def main() -> None:
    args = parse_args()
    setup_logging(args.verbose)
    logger = logging.getLogger("demo")

    if args.config is not None:
        config = load_config(args.config)
    else:
        config = AccessoryConfig(
            name=f"{args.device} Accessory",
            device_name=args.device,
            switch_off_delay=args.delay,
        )

    banner(f"Following Chromecast \"{config.device_name}\"")
    logger.info("Configuration: %s", config.to_dict())

    accessory = CastAccessory(config)
    accessory.subscribe(
        on_switch=lambda on: logger.info(
            "%sSWITCH -> %s%s", BOLD, "ON" if on else "OFF", RESET
        ),
        on_motion=lambda on: logger.info(
            "%sMOTION -> %s%s", BOLD, "DETECTED" if on else "CLEAR", RESET
        ),
    )

    async with accessory:
        info = accessory.information
        logger.info("Accessory: %s (%s %s)", info.name, info.manufacturer, info.firmware_revision)

        reporter = asyncio.create_task(report_status(accessory))
        try:
            await wait_for_user(">>> Accessory running. Press Enter to shut down...")
        finally:
            reporter.cancel()

        banner("Shutting down")
        logger.info("Last device type: %s", accessory.device_type or "unknown")
        logger.info("Last device id:   %s", accessory.device_id or "unknown")

    logger.info("Accessory stopped.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
