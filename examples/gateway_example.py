"""
Example that shows how a page joins a cast session through the gateway.

A route is created for a fake page, the page connects as client, pauses the
media and finally stops the session.
"""

# pylint: disable=invalid-name

import argparse
import asyncio
import json
import sys

from pycastgateway import (
    AsyncioDispatcher,
    RouteCreated,
    RouteManagerListener,
    RouteRequestError,
)
from pycastgateway.chromecast import create_gateway
from pycastgateway.config import APP_MEDIA_RECEIVER

from .common import add_log_arguments, configure_logging, wait_for_sink

# Enable deprecation warnings etc.
if not sys.warnoptions:
    import warnings

    warnings.simplefilter("default")

# Change to the friendly name of your Chromecast
CAST_NAME = "Living Room Speaker"

CLIENT_ID = "1234"
SOURCE_ID = (
    f"cast:{APP_MEDIA_RECEIVER}?clientId={CLIENT_ID}&autoJoinPolicy=origin_scoped"
)


class PrintingManager(RouteManagerListener):
    """Prints route events and the messages sent to the page."""

    def __init__(self) -> None:
        self.route_id: str | None = None

    def on_route_created(self, result: RouteCreated) -> None:
        print("Route created:", result.route_id)
        self.route_id = result.route_id

    def on_route_request_error(self, result: RouteRequestError) -> None:
        print("Route request failed:", result.reason)

    def on_route_closed(self, route_id: str, error: str | None) -> None:
        print("Route closed:", route_id, error or "")

    def on_route_terminated(self, route_id: str) -> None:
        print("Route terminated:", route_id)

    def on_message(self, route_id: str, message: str) -> None:
        print("To page:", message)


def client_message(message_type: str, sequence_number: int, message=None) -> str:
    """Builds a message as sent by the web sender SDK."""
    return json.dumps(
        {
            "type": message_type,
            "clientId": CLIENT_ID,
            "sequenceNumber": sequence_number,
            "timeoutMillis": 0,
            "message": message,
        }
    )


parser = argparse.ArgumentParser(
    description="Example on how to use the gateway on a Chromecast."
)
parser.add_argument(
    "--cast", help='Name of cast device (default: "%(default)s")', default=CAST_NAME
)
parser.add_argument(
    "--known-host",
    help="Add known host (IP), can be used multiple times",
    action="append",
)
add_log_arguments(parser)
args = parser.parse_args()

configure_logging(args)


async def main() -> None:
    """Run the example."""
    manager = PrintingManager()
    registry, platform = create_gateway(
        manager,
        AsyncioDispatcher(asyncio.get_running_loop()),
        known_hosts=args.known_host,
    )

    sink = await wait_for_sink(platform, args.cast)
    if sink is None:
        print(f'No chromecast with name "{args.cast}" discovered')
        platform.stop_discovery()
        sys.exit(1)

    registry.create_route(
        SOURCE_ID, sink.sink_id, "presentation-1", "https://example.com", 1, False, 1
    )
    await asyncio.sleep(10)
    if manager.route_id is None:
        platform.stop_discovery()
        sys.exit(1)

    registry.send_string_message(
        manager.route_id, client_message("client_connect", -1)
    )
    await asyncio.sleep(5)

    registry.send_string_message(
        manager.route_id,
        client_message("v2_message", 1, {"type": "PAUSE", "mediaSessionId": 1}),
    )
    await asyncio.sleep(5)

    registry.send_string_message(
        manager.route_id, client_message("v2_message", 2, {"type": "STOP"})
    )
    await asyncio.sleep(5)

    platform.stop_discovery()


asyncio.run(main())
