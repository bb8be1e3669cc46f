"""Fakes and fixtures shared by the tests."""

from __future__ import annotations

import json

import pytest

from pycastgateway.config import APP_MEDIA_RECEIVER
from pycastgateway.const import (
    AUTOJOIN_ORIGIN_SCOPED,
    CAPABILITY_AUDIO_OUT,
    CAPABILITY_VIDEO_OUT,
    MEDIA_NAMESPACE,
)
from pycastgateway.device import DeviceInfo, DeviceSession, DeviceSessionListener
from pycastgateway.dispatcher import QueueDispatcher
from pycastgateway.error import DeviceSessionError
from pycastgateway.models import MediaSink, RouteCreated, RouteRequestError
from pycastgateway.platform import (
    CastPlatform,
    RouteSelectionListener,
    SessionManagerListener,
)
from pycastgateway.route_registry import RouteManagerListener, RouteRegistry

APP_NAMESPACE = "urn:x-cast:com.example.app"
SINK_ID = "sink-1"
SINK_NAME = "Living Room"
ORIGIN = "https://example.com"
TAB_ID = 1


def source_id(
    client_id: str | None = "1",
    policy: str = AUTOJOIN_ORIGIN_SCOPED,
    app_id: str = APP_MEDIA_RECEIVER,
) -> str:
    """Builds a cast source id."""
    if client_id is None:
        return f"cast:{app_id}"
    return f"cast:{app_id}?clientId={client_id}&autoJoinPolicy={policy}"


# pylint: disable-next=too-many-instance-attributes
class FakeDeviceSession(DeviceSession):
    """In memory device session recording what is sent to it."""

    def __init__(
        self,
        session_id: str = "session-1",
        namespaces: list[str] | None = None,
        app_id: str = APP_MEDIA_RECEIVER,
    ) -> None:
        self._session_id = session_id
        self._device = DeviceInfo(
            "device-1",
            SINK_NAME,
            frozenset({CAPABILITY_VIDEO_OUT, CAPABILITY_AUDIO_OUT}),
        )
        self._app_id = app_id
        self.status_text = "Ready to cast"
        self.app_namespaces = (
            [MEDIA_NAMESPACE, APP_NAMESPACE] if namespaces is None else namespaces
        )
        self.level = 0.5
        self.muted = False
        self.connected = True
        self.fail_namespaces: set[str] = set()
        self.fail_send = False

        self.sent: list[tuple[str, str]] = []
        self.send_callbacks: list = []
        self.volume_calls: list[float] = []
        self.mute_calls: list[bool] = []
        self.callbacks: dict = {}
        self.listeners: list[DeviceSessionListener] = []

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def device(self) -> DeviceInfo:
        return self._device

    @property
    def application_id(self) -> str | None:
        return self._app_id

    @property
    def application_status(self) -> str | None:
        return self.status_text

    @property
    def namespaces(self) -> list[str]:
        return list(self.app_namespaces)

    @property
    def volume(self) -> float:
        return self.level

    @property
    def is_mute(self) -> bool:
        return self.muted

    @property
    def active_input_state(self) -> int:
        return -1

    def is_connected(self) -> bool:
        return self.connected

    def set_volume(self, level: float) -> None:
        self.volume_calls.append(level)

    def set_mute(self, muted: bool) -> None:
        self.mute_calls.append(muted)

    def send_message(self, namespace, message, *, callback_function=None) -> None:
        if self.fail_send:
            raise DeviceSessionError("send failed")
        self.sent.append((namespace, message))
        if callback_function is not None:
            self.send_callbacks.append(callback_function)

    def set_message_received_callback(self, namespace, callback) -> None:
        if namespace in self.fail_namespaces:
            raise DeviceSessionError(f"Can't register {namespace}")
        self.callbacks[namespace] = callback

    def remove_message_received_callback(self, namespace) -> None:
        if namespace in self.fail_namespaces:
            raise DeviceSessionError(f"Can't remove {namespace}")
        self.callbacks.pop(namespace, None)

    def add_listener(self, listener: DeviceSessionListener) -> None:
        self.listeners.append(listener)

    def remove_listener(self, listener: DeviceSessionListener) -> None:
        self.listeners.remove(listener)

    def receive(self, namespace: str, message: dict | str) -> None:
        """Deliver a message from the receiver."""
        if isinstance(message, dict):
            message = json.dumps(message)
        self.callbacks[namespace](namespace, message)

    def change_status(self, namespaces: list[str] | None = None) -> None:
        """Change the application status, optionally with new namespaces."""
        if namespaces is not None:
            self.app_namespaces = namespaces
        for listener in list(self.listeners):
            listener.on_application_status_changed()

    def change_volume(self, level: float | None = None, muted: bool | None = None):
        """Report a volume change."""
        if level is not None:
            self.level = level
        if muted is not None:
            self.muted = muted
        for listener in list(self.listeners):
            listener.on_volume_changed()

    def sent_json(self, namespace: str | None = None) -> list[dict]:
        """Messages sent to the receiver, parsed."""
        return [
            json.loads(message)
            for sent_namespace, message in self.sent
            if namespace is None or sent_namespace == namespace
        ]


# pylint: disable-next=too-many-instance-attributes
class FakePlatform(CastPlatform):
    """Platform which only starts sessions when told to."""

    def __init__(self) -> None:
        self.sinks = {SINK_ID: MediaSink(SINK_ID, SINK_NAME)}
        self.selected_sink_id: str | None = None
        self.app_id: str | None = None
        self.session: DeviceSession | None = None
        self.calls: list[str] = []
        self.session_listeners: list[SessionManagerListener] = []
        self.route_listeners: list[RouteSelectionListener] = []

    def get_sink(self, sink_id: str) -> MediaSink | None:
        return self.sinks.get(sink_id)

    def has_route(self, sink_id: str) -> bool:
        return sink_id in self.sinks

    def is_route_selected(self, sink_id: str) -> bool:
        return self.selected_sink_id == sink_id

    def select_route(self, sink_id: str) -> None:
        self.calls.append(f"select {sink_id}")
        self.selected_sink_id = sink_id

    def unselect_route(self) -> None:
        self.calls.append("unselect")
        sink_id = self.selected_sink_id
        self.selected_sink_id = None
        for listener in list(self.route_listeners):
            listener.on_route_unselected(sink_id)

    def select_default_route(self) -> None:
        self.calls.append("select default")

    def set_receiver_application_id(self, app_id: str | None) -> None:
        self.app_id = app_id

    def end_current_session(self) -> None:
        self.calls.append("end session")

    @property
    def current_session(self) -> DeviceSession | None:
        return self.session

    def add_session_listener(self, listener: SessionManagerListener) -> None:
        if listener not in self.session_listeners:
            self.session_listeners.append(listener)

    def remove_session_listener(self, listener: SessionManagerListener) -> None:
        if listener in self.session_listeners:
            self.session_listeners.remove(listener)

    def add_route_listener(self, listener: RouteSelectionListener) -> None:
        self.route_listeners.append(listener)

    def remove_route_listener(self, listener: RouteSelectionListener) -> None:
        self.route_listeners.remove(listener)

    def start_session(self, session: DeviceSession) -> None:
        """Report session as started."""
        self.session = session
        for listener in list(self.session_listeners):
            listener.on_session_started(session, session.session_id)

    def fail_session(self, error: int = 1) -> None:
        """Report that starting the session failed."""
        for listener in list(self.session_listeners):
            listener.on_session_start_failed(None, error)

    def end_session(self, session: DeviceSession) -> None:
        """Report session as ending and ended."""
        for listener in list(self.session_listeners):
            listener.on_session_ending(session)
        for listener in list(self.session_listeners):
            listener.on_session_ended(session, 0)


class RecordingManager(RouteManagerListener):
    """Records everything reported by the registry."""

    def __init__(self) -> None:
        self.created: list[RouteCreated] = []
        self.errors: list[RouteRequestError] = []
        self.closed: list[tuple[str, str | None]] = []
        self.terminated: list[str] = []
        self.messages: list[tuple[str, str]] = []

    def on_route_created(self, result: RouteCreated) -> None:
        self.created.append(result)

    def on_route_request_error(self, result: RouteRequestError) -> None:
        self.errors.append(result)

    def on_route_closed(self, route_id: str, error: str | None) -> None:
        self.closed.append((route_id, error))

    def on_route_terminated(self, route_id: str) -> None:
        self.terminated.append(route_id)

    def on_message(self, route_id: str, message: str) -> None:
        self.messages.append((route_id, message))

    def messages_for(self, route_id: str) -> list[dict]:
        """Messages sent to the client of route_id, parsed."""
        return [
            json.loads(message)
            for message_route_id, message in self.messages
            if message_route_id == route_id
        ]


@pytest.fixture
def dispatcher() -> QueueDispatcher:
    return QueueDispatcher()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def manager() -> RecordingManager:
    return RecordingManager()


@pytest.fixture
def registry(platform, manager, dispatcher) -> RouteRegistry:
    return RouteRegistry(platform, manager, dispatcher=dispatcher)


@pytest.fixture
def session() -> FakeDeviceSession:
    return FakeDeviceSession()


@pytest.fixture
def launch(registry, platform, manager, session):
    """Creates a route and starts the session, returns the route id."""

    def _launch(
        client_id: str | None = "1",
        policy: str = AUTOJOIN_ORIGIN_SCOPED,
        origin: str = ORIGIN,
        tab_id: int = TAB_ID,
        presentation_id: str = "presentation-1",
    ) -> str:
        registry.create_route(
            source_id(client_id, policy),
            SINK_ID,
            presentation_id,
            origin,
            tab_id,
            False,
            1,
        )
        platform.start_session(session)
        return manager.created[-1].route_id

    return _launch


@pytest.fixture
def connect(registry):
    """Sends client_connect for a client."""

    def _connect(route_id: str, client_id: str = "1") -> bool:
        return registry.send_string_message(
            route_id, json.dumps({"type": "client_connect", "clientId": client_id})
        )

    return _connect


