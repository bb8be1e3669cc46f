"""
Interface to the platform which discovers sinks and starts sessions.
"""

from __future__ import annotations

import abc

from .device import DeviceSession
from .models import MediaSink


class SessionManagerListener(abc.ABC):
    """Listener for session lifecycle events raised by the platform."""

    def on_session_starting(self, session: DeviceSession) -> None:
        """A session is being started."""

    @abc.abstractmethod
    def on_session_started(self, session: DeviceSession, session_id: str) -> None:
        """A session has been started."""

    @abc.abstractmethod
    def on_session_start_failed(
        self, session: DeviceSession | None, error: int
    ) -> None:
        """Starting a session failed."""

    @abc.abstractmethod
    def on_session_ending(self, session: DeviceSession) -> None:
        """The session is about to end."""

    @abc.abstractmethod
    def on_session_ended(self, session: DeviceSession, error: int) -> None:
        """The session has ended."""

    @abc.abstractmethod
    def on_session_resumed(self, session: DeviceSession, was_suspended: bool) -> None:
        """A suspended session has been resumed."""

    @abc.abstractmethod
    def on_session_suspended(self, session: DeviceSession, reason: int) -> None:
        """The session has been suspended."""


class RouteSelectionListener(abc.ABC):
    """Listener for platform route selection changes."""

    @abc.abstractmethod
    def on_route_unselected(self, sink_id: str) -> None:
        """The route to sink_id is no longer selected."""


class CastPlatform(abc.ABC):
    """Sink discovery, route selection and session management."""

    @abc.abstractmethod
    def get_sink(self, sink_id: str) -> MediaSink | None:
        """Returns the sink with sink_id, None if it is unknown."""

    @abc.abstractmethod
    def has_route(self, sink_id: str) -> bool:
        """True if the platform can select a route to sink_id."""

    @abc.abstractmethod
    def is_route_selected(self, sink_id: str) -> bool:
        """True if the route to sink_id is currently selected."""

    @abc.abstractmethod
    def select_route(self, sink_id: str) -> None:
        """Select the route to sink_id.

        Selecting a route starts a session running the receiver
        application id set with set_receiver_application_id."""

    @abc.abstractmethod
    def unselect_route(self) -> None:
        """Unselect the selected route, if any."""

    @abc.abstractmethod
    def select_default_route(self) -> None:
        """Select the local playback route."""

    @abc.abstractmethod
    def set_receiver_application_id(self, app_id: str | None) -> None:
        """Set the receiver application to launch when a route is selected."""

    @abc.abstractmethod
    def end_current_session(self) -> None:
        """Stop the receiver application and end the current session."""

    @property
    @abc.abstractmethod
    def current_session(self) -> DeviceSession | None:
        """The session the platform considers current."""

    @abc.abstractmethod
    def add_session_listener(self, listener: SessionManagerListener) -> None:
        """Register a session lifecycle listener. No-op if registered."""

    @abc.abstractmethod
    def remove_session_listener(self, listener: SessionManagerListener) -> None:
        """Unregister a session lifecycle listener."""

    @abc.abstractmethod
    def add_route_listener(self, listener: RouteSelectionListener) -> None:
        """Register a route selection listener."""

    @abc.abstractmethod
    def remove_route_listener(self, listener: RouteSelectionListener) -> None:
        """Unregister a route selection listener."""
