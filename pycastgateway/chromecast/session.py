"""
Device session on top of a pychromecast Chromecast.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
import json
import logging
import math

from pychromecast import Chromecast
from pychromecast.const import CAST_TYPE_CHROMECAST
from pychromecast.controllers import BaseController
from pychromecast.controllers.receiver import CastStatus, CastStatusListener
from pychromecast.error import PyChromecastError

from ..config import is_idle_app
from ..const import (
    CAPABILITY_AUDIO_OUT,
    CAPABILITY_VIDEO_OUT,
    MESSAGE_TYPE,
    TYPE_SET_VOLUME,
)
from ..device import (
    DeviceInfo,
    DeviceSession,
    DeviceSessionListener,
    MessageReceivedCallback,
)
from ..dispatcher import Dispatcher
from ..error import DeviceSessionError
from ..response_handler import CallbackType


class NamespaceRelayController(BaseController):
    """Passes the raw payload of every message on a namespace to a callback."""

    def __init__(self, namespace: str, callback: Callable[[str, str], None]) -> None:
        super().__init__(namespace)
        self._callback = callback

    def receive_message(self, message, _data: dict) -> bool:
        """Called when a message is received on the namespace."""
        self._callback(self.namespace, message.payload_utf8)
        return True


class ChromecastDeviceSession(DeviceSession, CastStatusListener):
    """
    Session with the receiver application running on a Chromecast.

    Status updates arrive on the socket thread of the Chromecast and are
    posted to the dispatcher before listeners are told about them.

    :param cast: The Chromecast, its worker thread is started by the caller.
    :param dispatcher: Execution context of the gateway.
    """

    def __init__(self, cast: Chromecast, dispatcher: Dispatcher) -> None:
        self.logger = logging.getLogger(__name__)

        self._cast = cast
        self._dispatcher = dispatcher
        self._status: CastStatus | None = cast.status
        self._controllers: dict[str, NamespaceRelayController] = {}
        self._listeners: list[DeviceSessionListener] = []

        cast.register_status_listener(self)

    @property
    def session_id(self) -> str | None:
        return self._status.session_id if self._status else None

    @property
    def device(self) -> DeviceInfo:
        capabilities = {CAPABILITY_AUDIO_OUT}
        if self._cast.cast_type == CAST_TYPE_CHROMECAST:
            capabilities.add(CAPABILITY_VIDEO_OUT)
        return DeviceInfo(
            str(self._cast.uuid), self._cast.name or "", frozenset(capabilities)
        )

    @property
    def application_id(self) -> str | None:
        return self._status.app_id if self._status else None

    @property
    def application_status(self) -> str | None:
        return self._status.status_text if self._status else None

    @property
    def namespaces(self) -> list[str]:
        return list(self._status.namespaces) if self._status else []

    @property
    def volume(self) -> float:
        return self._status.volume_level if self._status else math.nan

    @property
    def is_mute(self) -> bool:
        return self._status.volume_muted if self._status else False

    @property
    def active_input_state(self) -> int:
        if self._status is None or self._status.is_active_input is None:
            return -1
        return int(self._status.is_active_input)

    def is_connected(self) -> bool:
        return (
            self._cast.socket_client.is_connected
            and self._status is not None
            and not is_idle_app(self._status.app_id)
        )

    def set_volume(self, level: float) -> None:
        self._send_volume({"level": min(max(0.0, level), 1.0)})

    def set_mute(self, muted: bool) -> None:
        self._send_volume({"muted": muted})

    def _send_volume(self, volume: dict) -> None:
        # The receiver answers with a status update, which is what the
        # gateway waits for.
        try:
            self._cast.socket_client.receiver_controller.send_message(
                {MESSAGE_TYPE: TYPE_SET_VOLUME, "volume": volume}
            )
        except PyChromecastError as err:
            raise DeviceSessionError(f"Failed to set volume: {err}") from err

    def send_message(
        self,
        namespace: str,
        message: str,
        *,
        callback_function: CallbackType | None = None,
    ) -> None:
        try:
            data = json.loads(message)
        except ValueError:
            data = None
        if not isinstance(data, dict):
            if callback_function:
                callback_function(False, None)
            raise DeviceSessionError(
                f"Only JSON objects can be sent on {namespace}: {message}"
            )

        try:
            self._cast.socket_client.send_app_message(
                namespace,
                data,
                callback_function=callback_function,
                no_add_request_id=True,
            )
        except PyChromecastError as err:
            raise DeviceSessionError(f"Failed to send on {namespace}: {err}") from err

    def set_message_received_callback(
        self, namespace: str, callback: MessageReceivedCallback
    ) -> None:
        self.remove_message_received_callback(namespace)

        controller = NamespaceRelayController(
            namespace, partial(self._dispatcher.post, callback)
        )
        try:
            self._cast.register_handler(controller)
        except PyChromecastError as err:
            raise DeviceSessionError(
                f"Failed to register handler for {namespace}: {err}"
            ) from err
        self._controllers[namespace] = controller

    def remove_message_received_callback(self, namespace: str) -> None:
        controller = self._controllers.pop(namespace, None)
        if controller is None:
            return

        try:
            self._cast.unregister_handler(controller)
        except PyChromecastError as err:
            raise DeviceSessionError(
                f"Failed to unregister handler for {namespace}: {err}"
            ) from err

    def add_listener(self, listener: DeviceSessionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: DeviceSessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def new_cast_status(self, status: CastStatus) -> None:
        """Called on the socket thread when a new cast status was received."""
        self._dispatcher.post(self.update_status, status)

    def sync_status(self) -> None:
        """Take over the last status received by the Chromecast."""
        if self._cast.status is not None:
            self.update_status(self._cast.status)

    def update_status(self, status: CastStatus) -> None:
        """Store status and tell listeners what changed."""
        old_status = self._status
        self._status = status
        if old_status is status:
            return

        if old_status is None or (
            old_status.volume_level,
            old_status.volume_muted,
        ) != (status.volume_level, status.volume_muted):
            self._notify("on_volume_changed")

        if old_status is None or (
            old_status.app_id,
            old_status.session_id,
            old_status.namespaces,
        ) != (status.app_id, status.session_id, status.namespaces):
            self._notify("on_application_metadata_changed")

        if old_status is None or old_status.status_text != status.status_text:
            self._notify("on_application_status_changed")

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, event)()
            except Exception:  # pylint: disable=broad-except
                self.logger.exception(
                    "Exception thrown when calling device session listener %s", event
                )
