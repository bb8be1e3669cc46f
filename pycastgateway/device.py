"""
Interface to the physical session with a cast receiver.

The transport is not implemented by the gateway itself, see
pycastgateway.chromecast for an implementation on top of PyChromecast.
"""

from __future__ import annotations

import abc
from collections.abc import Callable
from dataclasses import dataclass, field

from .response_handler import CallbackType

MessageReceivedCallback = Callable[[str, str], None]
"""Called with the namespace and the raw payload of a received message."""


@dataclass(frozen=True)
class DeviceInfo:
    """Receiver device container."""

    device_id: str
    friendly_name: str
    capabilities: frozenset[str] = field(default_factory=frozenset)

    def has_capability(self, capability: str) -> bool:
        """True if the device advertises capability."""
        return capability in self.capabilities


class DeviceSessionListener(abc.ABC):
    """Listener for events of a device session."""

    @abc.abstractmethod
    def on_application_status_changed(self) -> None:
        """The status text of the receiver application changed."""

    @abc.abstractmethod
    def on_application_metadata_changed(self) -> None:
        """The receiver application or its namespaces changed."""

    @abc.abstractmethod
    def on_volume_changed(self) -> None:
        """The device volume or mute state changed."""


class DeviceSession(abc.ABC):
    """One physical connection to a cast receiver running an application."""

    @property
    @abc.abstractmethod
    def session_id(self) -> str | None:
        """Id of the receiver application session."""

    @property
    @abc.abstractmethod
    def device(self) -> DeviceInfo:
        """The receiver device."""

    @property
    @abc.abstractmethod
    def application_id(self) -> str | None:
        """Id of the running receiver application, None if unknown."""

    @property
    @abc.abstractmethod
    def application_status(self) -> str | None:
        """Status text of the running receiver application."""

    @property
    @abc.abstractmethod
    def namespaces(self) -> list[str]:
        """Namespaces advertised by the running receiver application."""

    @property
    @abc.abstractmethod
    def volume(self) -> float:
        """Volume level between 0 and 1, NaN if unknown."""

    @property
    @abc.abstractmethod
    def is_mute(self) -> bool:
        """True if the device is muted."""

    @property
    @abc.abstractmethod
    def active_input_state(self) -> int:
        """1 if the device is the active input, 0 if not, -1 if unknown."""

    @abc.abstractmethod
    def is_connected(self) -> bool:
        """True if the session is connected."""

    @abc.abstractmethod
    def set_volume(self, level: float) -> None:
        """Set the device volume. Raises DeviceSessionError on failure."""

    @abc.abstractmethod
    def set_mute(self, muted: bool) -> None:
        """Mute or unmute the device. Raises DeviceSessionError on failure."""

    @abc.abstractmethod
    def send_message(
        self,
        namespace: str,
        message: str,
        *,
        callback_function: CallbackType | None = None,
    ) -> None:
        """Send a raw message on namespace.

        callback_function is called with the result of the send."""

    @abc.abstractmethod
    def set_message_received_callback(
        self, namespace: str, callback: MessageReceivedCallback
    ) -> None:
        """Start receiving messages on namespace.

        Raises DeviceSessionError on failure."""

    @abc.abstractmethod
    def remove_message_received_callback(self, namespace: str) -> None:
        """Stop receiving messages on namespace.

        Raises DeviceSessionError on failure."""

    @abc.abstractmethod
    def add_listener(self, listener: DeviceSessionListener) -> None:
        """Register a listener for session events."""

    @abc.abstractmethod
    def remove_listener(self, listener: DeviceSessionListener) -> None:
        """Unregister a listener for session events."""
