"""Command-line entry point: the desktop widget, or one-shot fetch and login."""

import argparse
import asyncio
import json
import logging
import sys

from . import __version__
from .bridge import MonitorBridge
from .config import ConfigStore, WindowStateStore
from .controller import MonitorController
from .page_loader import PageLoader

logger = logging.getLogger(__name__)


def build_bridge() -> MonitorBridge:
    controller = MonitorController(PageLoader())
    return MonitorBridge(controller, ConfigStore(), WindowStateStore())


async def _fetch_once(bridge: MonitorBridge) -> dict:
    return {
        "usage": await bridge.invoke("get-usage-data"),
        "activeDays": await bridge.invoke("get-active-days"),
    }


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="trae-monitor",
        description="Show Trae usage quotas and the activity calendar.",
    )
    parser.add_argument("--once", action="store_true",
                        help="fetch usage and activity once, print JSON and exit")
    parser.add_argument("--login", action="store_true",
                        help="open a browser window to sign in, then exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    bridge = build_bridge()

    if args.login:
        ok = asyncio.run(bridge.invoke("reset-login"))
        print("signed in" if ok else "no usage found before the login window closed")
        return 0 if ok else 1

    if args.once:
        result = asyncio.run(_fetch_once(bridge))
        print(json.dumps(result, ensure_ascii=False, indent=2))
        return 0 if result["usage"] else 1

    from .runner import AsyncRunner
    from .widget import run_widget

    runner = AsyncRunner()
    try:
        return run_widget(runner, bridge, sys.argv[:1])
    finally:
        runner.stop()


if __name__ == "__main__":
    sys.exit(main())
