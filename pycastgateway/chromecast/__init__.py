"""
Cast platform on top of PyChromecast.

Sinks are discovered with zeroconf, selecting a sink connects to the
Chromecast and launches the receiver application.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import pychromecast
from pychromecast import Chromecast
from pychromecast.discovery import CastBrowser, SimpleCastListener
from pychromecast.error import PyChromecastError
from pychromecast.models import CastInfo
from pychromecast.socket_client import (
    CONNECTION_STATUS_CONNECTED,
    CONNECTION_STATUS_FAILED,
    CONNECTION_STATUS_FAILED_RESOLVE,
    ConnectionStatus,
    ConnectionStatusListener,
)
import zeroconf

from ..device import DeviceSession
from ..dispatcher import Dispatcher
from ..models import MediaSink
from ..platform import CastPlatform, RouteSelectionListener, SessionManagerListener
from ..route_registry import RouteManagerListener, RouteRegistry
from .session import ChromecastDeviceSession, NamespaceRelayController

__all__ = (
    "ChromecastDeviceSession",
    "ChromecastPlatform",
    "NamespaceRelayController",
    "create_gateway",
)

# Errors reported to session listeners
ERROR_NONE = 0
ERROR_CONNECTION_FAILED = 1
ERROR_LAUNCH_FAILED = 2

_LOGGER = logging.getLogger(__name__)


# pylint: disable-next=too-many-instance-attributes, too-many-public-methods
class ChromecastPlatform(CastPlatform, ConnectionStatusListener):
    """
    Platform discovering Chromecasts on the network.

    Discovery and socket callbacks run on pychromecast threads and are posted
    to the dispatcher.

    :param dispatcher: Execution context of the gateway.
    :param zconf: Zeroconf instance to browse with, created if not given.
    :param known_hosts: Hosts to poll in addition to mDNS discovery.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        zconf: zeroconf.Zeroconf | None = None,
        known_hosts: list[str] | None = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)

        self._dispatcher = dispatcher
        self._zconf = zconf or zeroconf.Zeroconf()
        self.browser = CastBrowser(
            SimpleCastListener(self._add_cast, self._remove_cast, self._add_cast),
            self._zconf,
            known_hosts,
        )

        self._cast_infos: dict[str, CastInfo] = {}
        self._sinks: dict[str, MediaSink] = {}
        self._app_id: str | None = None
        self._selected_sink_id: str | None = None
        self._cast: Chromecast | None = None
        self._session: ChromecastDeviceSession | None = None
        self._launch_pending = False

        self._session_listeners: list[SessionManagerListener] = []
        self._route_listeners: list[RouteSelectionListener] = []

    def start_discovery(self) -> None:
        """Start browsing for Chromecasts."""
        self.browser.start_discovery()

    def stop_discovery(self) -> None:
        """Stop browsing and disconnect from the selected Chromecast."""
        if self._cast is not None:
            self._cast.disconnect(timeout=0)
        self.browser.stop_discovery()

    @property
    def sinks(self) -> list[MediaSink]:
        """Discovered sinks."""
        return list(self._sinks.values())

    def _add_cast(self, uuid: UUID, _service: str) -> None:
        cast_info = self.browser.devices.get(uuid)
        if cast_info is None:
            return
        self._dispatcher.post(self._update_sink, str(uuid), cast_info)

    def _remove_cast(self, uuid: UUID, _service: str, _cast_info: CastInfo) -> None:
        self._dispatcher.post(self._forget_sink, str(uuid))

    def _update_sink(self, sink_id: str, cast_info: CastInfo) -> None:
        self.logger.debug("Found sink %s (%s)", cast_info.friendly_name, sink_id)
        self._cast_infos[sink_id] = cast_info
        self._sinks[sink_id] = MediaSink(sink_id, cast_info.friendly_name or sink_id)

    def _forget_sink(self, sink_id: str) -> None:
        self.logger.debug("Lost sink %s", sink_id)
        self._cast_infos.pop(sink_id, None)
        self._sinks.pop(sink_id, None)

    def get_sink(self, sink_id: str) -> MediaSink | None:
        return self._sinks.get(sink_id)

    def has_route(self, sink_id: str) -> bool:
        return sink_id in self._cast_infos

    def is_route_selected(self, sink_id: str) -> bool:
        return self._selected_sink_id == sink_id

    def select_route(self, sink_id: str) -> None:
        cast_info = self._cast_infos.get(sink_id)
        if cast_info is None:
            self.logger.error("Can't select unknown sink %s", sink_id)
            return

        if self._selected_sink_id is not None:
            self.unselect_route()

        self.logger.info("Connecting to %s", cast_info.friendly_name)
        cast = pychromecast.get_chromecast_from_cast_info(cast_info, self._zconf)
        self._selected_sink_id = sink_id
        self._cast = cast
        self._session = ChromecastDeviceSession(cast, self._dispatcher)
        self._launch_pending = True
        cast.register_connection_listener(self)
        cast.start()

    def unselect_route(self) -> None:
        sink_id = self._selected_sink_id
        if sink_id is None:
            return

        cast = self._cast
        self._selected_sink_id = None
        self._cast = None
        self._session = None
        self._launch_pending = False
        if cast is not None:
            cast.disconnect(timeout=0)

        self._dispatcher.post(self._notify_route_listeners, sink_id)

    def select_default_route(self) -> None:
        self.unselect_route()

    def set_receiver_application_id(self, app_id: str | None) -> None:
        self._app_id = app_id

    def end_current_session(self) -> None:
        session = self._session
        if session is None or self._cast is None:
            return

        self._dispatcher.post(self._notify_session, "on_session_ending", session)
        try:
            self._cast.quit_app()
        except PyChromecastError as err:
            self.logger.error("Failed to stop the receiver application: %s", err)
        self._dispatcher.post(
            self._notify_session, "on_session_ended", session, ERROR_NONE
        )

    @property
    def current_session(self) -> DeviceSession | None:
        return self._session

    def add_session_listener(self, listener: SessionManagerListener) -> None:
        if listener not in self._session_listeners:
            self._session_listeners.append(listener)

    def remove_session_listener(self, listener: SessionManagerListener) -> None:
        if listener in self._session_listeners:
            self._session_listeners.remove(listener)

    def add_route_listener(self, listener: RouteSelectionListener) -> None:
        if listener not in self._route_listeners:
            self._route_listeners.append(listener)

    def remove_route_listener(self, listener: RouteSelectionListener) -> None:
        if listener in self._route_listeners:
            self._route_listeners.remove(listener)

    def new_connection_status(self, status: ConnectionStatus) -> None:
        """Called on the socket thread when the connection status changed."""
        self._dispatcher.post(self._on_connection_status, status)

    def _on_connection_status(self, status: ConnectionStatus) -> None:
        session = self._session
        if session is None or not self._launch_pending:
            return

        if status.status == CONNECTION_STATUS_CONNECTED:
            self._launch_pending = False
            self._launch_app(session)
        elif status.status in (
            CONNECTION_STATUS_FAILED,
            CONNECTION_STATUS_FAILED_RESOLVE,
        ):
            self._launch_pending = False
            self._notify_session(
                "on_session_start_failed", session, ERROR_CONNECTION_FAILED
            )

    def _launch_app(self, session: ChromecastDeviceSession) -> None:
        if self._cast is None or self._app_id is None:
            self.logger.error("No receiver application to launch")
            self._notify_session(
                "on_session_start_failed", session, ERROR_LAUNCH_FAILED
            )
            return

        self._notify_session("on_session_starting", session)

        def handle_launch_response(msg_sent: bool, _response: dict | None) -> None:
            self._dispatcher.post(self._on_app_launched, session, msg_sent)

        try:
            self._cast.socket_client.receiver_controller.launch_app(
                self._app_id, callback_function=handle_launch_response
            )
        except PyChromecastError as err:
            self.logger.error("Failed to launch %s: %s", self._app_id, err)
            self._notify_session(
                "on_session_start_failed", session, ERROR_LAUNCH_FAILED
            )

    def _on_app_launched(
        self, session: ChromecastDeviceSession, launched: bool
    ) -> None:
        if session is not self._session:
            self.logger.debug("Ignoring launch result of a stale session")
            return

        if not launched:
            self.logger.error("Launching %s failed", self._app_id)
            self._notify_session(
                "on_session_start_failed", session, ERROR_LAUNCH_FAILED
            )
            return

        session.sync_status()
        self._notify_session("on_session_started", session, session.session_id)

    def _notify_route_listeners(self, sink_id: str) -> None:
        for listener in list(self._route_listeners):
            try:
                listener.on_route_unselected(sink_id)
            except Exception:  # pylint: disable=broad-except
                self.logger.exception("Exception thrown when calling route listener")

    def _notify_session(self, event: str, *args: Any) -> None:
        for listener in list(self._session_listeners):
            try:
                getattr(listener, event)(*args)
            except Exception:  # pylint: disable=broad-except
                self.logger.exception(
                    "Exception thrown when calling session listener %s", event
                )


def create_gateway(
    manager: RouteManagerListener,
    dispatcher: Dispatcher,
    *,
    zconf: zeroconf.Zeroconf | None = None,
    known_hosts: list[str] | None = None,
    request_timeout: float | None = None,
) -> tuple[RouteRegistry, ChromecastPlatform]:
    """
    Creates a route registry on a ChromecastPlatform and starts discovery.

    Returns a tuple of the registry and the platform. When the gateway is no
    longer needed, call platform.stop_discovery().
    """
    platform = ChromecastPlatform(dispatcher, zconf, known_hosts)
    registry = RouteRegistry(
        platform, manager, dispatcher=dispatcher, request_timeout=request_timeout
    )
    _LOGGER.debug("Starting discovery")
    platform.start_discovery()
    return registry, platform
