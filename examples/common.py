"""Helpers shared by the gateway examples."""

import argparse
import asyncio
import logging

import zeroconf

from pycastgateway import MediaSink
from pycastgateway.chromecast import ChromecastPlatform


def add_log_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the logging switches to parser."""
    parser.add_argument(
        "--show-debug", help="Enable gateway debug log", action="store_true"
    )
    parser.add_argument(
        "--show-pychromecast-debug",
        help="Enable pychromecast debug log",
        action="store_true",
    )
    parser.add_argument(
        "--show-zeroconf-debug", help="Enable zeroconf debug log", action="store_true"
    )


def configure_logging(args: argparse.Namespace) -> None:
    """Set up logging from the parsed switches."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s (%(threadName)s) [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=logging.INFO,
    )

    # pychromecast is chatty about reconnects at INFO
    logging.getLogger("pychromecast").setLevel(
        logging.DEBUG if args.show_pychromecast_debug else logging.WARNING
    )
    if args.show_debug:
        logging.getLogger("pycastgateway").setLevel(logging.DEBUG)
    if args.show_zeroconf_debug:
        print("Zeroconf version: " + zeroconf.__version__)
        logging.getLogger("zeroconf").setLevel(logging.DEBUG)


async def wait_for_sink(
    platform: ChromecastPlatform, name: str, timeout: float = 10
) -> MediaSink | None:
    """Poll the discovered sinks until one is called name."""
    for _ in range(int(timeout * 2)):
        for sink in platform.sinks:
            if sink.name == name:
                return sink
        await asyncio.sleep(0.5)
    return None
