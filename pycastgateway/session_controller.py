"""
Owns the single device session of the gateway and fans out its events.
"""

from __future__ import annotations

import abc
import json
import logging

from .const import (
    CAPABILITIES,
    MEDIA_NAMESPACE,
    MESSAGE_TYPE,
    REQUEST_ID,
    TYPE_GET_STATUS,
)
from .device import DeviceSession, DeviceSessionListener
from .error import DeviceSessionError, NotConnected
from .media_source import CastMediaSource
from .models import CreateRouteRequestInfo, MediaSink
from .platform import CastPlatform, RouteSelectionListener
from .response_handler import RequestIdGenerator


class SessionControllerListener(abc.ABC):
    """Listener for events of the attached device session."""

    @abc.abstractmethod
    def on_session_started(self) -> None:
        """A session was started and attached."""

    @abc.abstractmethod
    def on_session_ended(self) -> None:
        """The attached session is ending, called before it is detached."""

    @abc.abstractmethod
    def on_session_updated(self) -> None:
        """Application status, metadata or namespaces changed."""

    @abc.abstractmethod
    def on_volume_changed(self) -> None:
        """The device volume or mute state changed."""

    @abc.abstractmethod
    def on_message_received(self, namespace: str, message: str) -> None:
        """A message was received on a registered namespace."""


class _ReselectRouteListener(RouteSelectionListener):
    """Selects a route again once the platform has unselected it."""

    def __init__(self, platform: CastPlatform, sink_id: str) -> None:
        self._platform = platform
        self._sink_id = sink_id

    def on_route_unselected(self, sink_id: str) -> None:
        logger = logging.getLogger(__name__)
        logger.debug("Route %s unselected, selecting %s", sink_id, self._sink_id)
        self._platform.remove_route_listener(self)
        self._platform.select_route(self._sink_id)


class SessionController(DeviceSessionListener):
    """
    Single source of truth for the device session of the gateway.

    Other components must not keep a reference to the session across an
    attach/detach cycle and go through the controller instead.

    :param platform: The platform starting and ending sessions.
    """

    def __init__(self, platform: CastPlatform) -> None:
        self.logger = logging.getLogger(__name__)

        self._platform = platform
        self._session: DeviceSession | None = None
        self._route_creation_info: CreateRouteRequestInfo | None = None
        self._namespaces: list[str] = []
        self._listeners: list[SessionControllerListener] = []

        self.request_id_generator = RequestIdGenerator()

    def register_listener(self, listener: SessionControllerListener) -> None:
        """Register a listener for session events."""
        self._listeners.append(listener)

    def unregister_listener(self, listener: SessionControllerListener) -> None:
        """Unregister a listener for session events."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def request_launch(self, request_info: CreateRouteRequestInfo) -> None:
        """Ask the platform to start a session for request_info."""
        self._route_creation_info = request_info
        sink_id = request_info.sink.sink_id
        self._platform.set_receiver_application_id(
            request_info.source.application_id
        )

        if self._platform.is_route_selected(sink_id):
            # The platform only starts a session on selection, so the
            # route is unselected and selected again once that happened.
            self.logger.debug("Route %s already selected, reselecting", sink_id)
            self._platform.add_route_listener(
                _ReselectRouteListener(self._platform, sink_id)
            )
            self._platform.unselect_route()
            return

        self._platform.select_route(sink_id)

    @property
    def route_creation_info(self) -> CreateRouteRequestInfo | None:
        """The create request the current session was launched for."""
        return self._route_creation_info

    @property
    def source(self) -> CastMediaSource | None:
        """Source of the request the session was launched for."""
        info = self._route_creation_info
        return info.source if info else None

    @property
    def sink(self) -> MediaSink | None:
        """Sink of the request the session was launched for."""
        info = self._route_creation_info
        return info.sink if info else None

    @property
    def session(self) -> DeviceSession | None:
        """The attached device session."""
        return self._session

    def is_connected(self) -> bool:
        """True if a device session is attached and connected."""
        return self._session is not None and self._session.is_connected()

    def require_session(self) -> DeviceSession:
        """Returns the attached session, raises NotConnected if there is no
        connected session."""
        if self._session is None or not self._session.is_connected():
            raise NotConnected("No connected device session")
        return self._session

    @property
    def session_id(self) -> str | None:
        """Id of the attached session, None if detached."""
        if self._session is None:
            return None
        return self._session.session_id

    @property
    def application_id(self) -> str | None:
        """Id of the receiver application running in the session."""
        if self.is_connected():
            assert self._session is not None
            if self._session.application_id:
                return self._session.application_id
        source = self.source
        return source.application_id if source else None

    @property
    def namespaces(self) -> list[str]:
        """Namespaces for which message callbacks are registered."""
        return list(self._namespaces)

    @property
    def capabilities(self) -> list[str]:
        """Capabilities of the device, empty if not connected."""
        if not self.is_connected():
            return []
        assert self._session is not None
        device = self._session.device
        return [cap for cap in CAPABILITIES if device.has_capability(cap)]

    def end_session(self) -> None:
        """Stop the receiver application, ending the session."""
        self.logger.info("Ending session %s", self.session_id)
        self._platform.end_current_session()
        self._platform.set_receiver_application_id(None)

    def attach(self, session: DeviceSession) -> None:
        """Attach to session and start receiving its events."""
        if self._session is not None and self._session is not session:
            self.detach()

        self.logger.debug("Attaching to session %s", session.session_id)
        self._session = session
        session.add_listener(self)
        self.update_namespaces()

    def detach(self) -> None:
        """Detach from the attached session, if any."""
        if self._session is None:
            return

        session = self._session
        self.logger.debug("Detaching from session %s", session.session_id)
        session.remove_listener(self)
        for namespace in self._namespaces:
            try:
                session.remove_message_received_callback(namespace)
            except DeviceSessionError:
                self.logger.error(
                    "Failed to remove the namespace listener for %s", namespace
                )
        self._namespaces = []
        self._session = None

    def update_namespaces(self) -> bool:
        """
        Register message callbacks for the namespaces of the running
        application and unregister the ones no longer supported.

        Returns True if the set of namespaces changed.
        """
        if not self.is_connected():
            return False
        assert self._session is not None
        session = self._session

        new_namespaces = list(dict.fromkeys(session.namespaces))
        to_remove = [ns for ns in self._namespaces if ns not in new_namespaces]
        to_add = [ns for ns in new_namespaces if ns not in self._namespaces]

        for namespace in to_remove:
            self._namespaces.remove(namespace)
            try:
                session.remove_message_received_callback(namespace)
            except DeviceSessionError:
                self.logger.error(
                    "Failed to remove the namespace listener for %s", namespace
                )

        for namespace in to_add:
            try:
                session.set_message_received_callback(
                    namespace, self._on_message_received
                )
            except DeviceSessionError:
                self.logger.error(
                    "Failed to register the namespace listener for %s", namespace
                )
                continue
            self._namespaces.append(namespace)

        if to_add or to_remove:
            self.logger.debug(
                "Namespaces updated, added: %s, removed: %s", to_add, to_remove
            )
        return bool(to_add or to_remove)

    def request_media_status(self) -> None:
        """Ask the receiver to send the current media status."""
        if not self.is_connected() or MEDIA_NAMESPACE not in self._namespaces:
            return
        assert self._session is not None

        message = {
            MESSAGE_TYPE: TYPE_GET_STATUS,
            REQUEST_ID: self.request_id_generator.next_request_id(),
        }
        try:
            self._session.send_message(MEDIA_NAMESPACE, json.dumps(message))
        except DeviceSessionError:
            self.logger.error("Failed to request the media status")

    def notify_session_started(self) -> None:
        """Tell listeners a session was started."""
        self._notify("on_session_started")

    def notify_session_ended(self) -> None:
        """Tell listeners the session is ending."""
        self._notify("on_session_ended")

    def on_application_status_changed(self) -> None:
        """Called when the status text of the receiver application changed."""
        self.update_namespaces()
        self._notify("on_session_updated")

    def on_application_metadata_changed(self) -> None:
        """Called when the receiver application or its namespaces changed."""
        self.update_namespaces()
        self._notify("on_session_updated")

    def on_volume_changed(self) -> None:
        """Called when the device volume changed."""
        self._notify("on_volume_changed")

    def _on_message_received(self, namespace: str, message: str) -> None:
        self.logger.debug(
            'Received message from cast device: namespace="%s" message="%s"',
            namespace,
            message,
        )
        self._notify("on_message_received", namespace, message)

    def _notify(self, event: str, *args: str) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, event)(*args)
            except Exception:  # pylint: disable=broad-except
                self.logger.exception(
                    "Exception thrown when calling session listener %s", event
                )
