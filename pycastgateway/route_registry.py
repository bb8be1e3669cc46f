"""
Bookkeeping of the routes sharing the single device session.

One route exists per page presentation. Routes whose source carries a client
id get a client record which the message router uses to talk to the page.
"""

from __future__ import annotations

import abc
import logging

from .const import (
    AUTO_JOIN_PRESENTATION_ID,
    AUTOJOIN_ORIGIN_SCOPED,
    AUTOJOIN_PAGE_SCOPED,
    AUTOJOIN_TAB_AND_ORIGIN_SCOPED,
    PRESENTATION_ID_SESSION_ID_PREFIX,
    RECEIVER_ACTION_CAST,
    RECEIVER_ACTION_STOP,
)
from .device import DeviceSession
from .dispatcher import Dispatcher, QueueDispatcher
from .error import UnsupportedSource
from .media_source import CastMediaSource
from .message_router import MessageRouter
from .models import (
    ClientRecord,
    CreateRouteRequestInfo,
    MediaRoute,
    RouteCreated,
    RouteRequestError,
    RouteRequestPending,
    RouteRequestResult,
    is_same_origin,
)
from .platform import CastPlatform, SessionManagerListener
from .session_controller import SessionController

ERROR_NO_SINK = "No sink"
ERROR_UNSUPPORTED_SOURCE = "Unsupported source URL"
ERROR_UNKNOWN_SINK = "The sink does not exist"
ERROR_UNSUPPORTED_PRESENTATION = "Unsupported presentation URL"
ERROR_NO_PRESENTATION = "No presentation"
ERROR_NO_MATCHING_ROUTE = "No matching route"
ERROR_REQUEST_REPLACED = "Request replaced"
ERROR_LAUNCH = "Launch error"


class RouteManagerListener(abc.ABC):
    """The host of the routes, told about route changes and client messages."""

    @abc.abstractmethod
    def on_route_created(self, result: RouteCreated) -> None:
        """A route was created."""

    @abc.abstractmethod
    def on_route_request_error(self, result: RouteRequestError) -> None:
        """A create or join request failed."""

    @abc.abstractmethod
    def on_route_closed(self, route_id: str, error: str | None) -> None:
        """A route was closed, error is set if it closed abnormally."""

    @abc.abstractmethod
    def on_route_terminated(self, route_id: str) -> None:
        """A route was terminated because its session ended."""

    @abc.abstractmethod
    def on_message(self, route_id: str, message: str) -> None:
        """A message for the client of route_id."""


def parse_source(source_id: str | None) -> CastMediaSource:
    """Returns the cast source for source_id, raises UnsupportedSource if it
    is not a cast source."""
    source = CastMediaSource.from_source_id(source_id)
    if source is None:
        raise UnsupportedSource(f"Unsupported source: {source_id}")
    return source


# pylint: disable-next=too-many-instance-attributes, too-many-public-methods
class RouteRegistry(SessionManagerListener):
    """
    Creates, joins and closes routes on the single device session.

    :param platform: The platform starting and ending sessions.
    :param manager: Host of the routes.
    :param dispatcher: Execution context for deferred work, a QueueDispatcher
                       if not given.
    :param request_timeout: Seconds to wait for a device response before an
                            open request is dropped.
    """

    def __init__(
        self,
        platform: CastPlatform,
        manager: RouteManagerListener,
        *,
        dispatcher: Dispatcher | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)

        self._platform = platform
        self._manager = manager
        self.dispatcher = dispatcher if dispatcher is not None else QueueDispatcher()

        self.routes: dict[str, MediaRoute] = {}
        self.client_records: dict[str, ClientRecord] = {}
        self.last_removed_client: ClientRecord | None = None
        self.pending_create_request: CreateRouteRequestInfo | None = None

        self.session_controller = SessionController(platform)
        self.message_router = MessageRouter(
            self,
            self.session_controller,
            self.dispatcher,
            request_timeout=request_timeout,
        )

    @staticmethod
    def supports_source(source_id: str) -> bool:
        """True if source_id is a cast source."""
        return CastMediaSource.from_source_id(source_id) is not None

    # pylint: disable-next=too-many-arguments
    def create_route(
        self,
        source_id: str,
        sink_id: str,
        presentation_id: str,
        origin: str,
        tab_id: int,
        is_incognito: bool,
        request_id: int,
    ) -> RouteRequestResult:
        """
        Start a session on sink_id for source_id.

        The route is created once the platform has started the session, until
        then RouteRequestPending is returned.
        """
        if self.session_controller.is_connected():
            # A new session replaces the running one and all of its routes.
            self.session_controller.end_session()
            self.handle_session_end()

        if self.pending_create_request is not None:
            self.logger.warning(
                "Replacing pending create request %d",
                self.pending_create_request.request_id,
            )
            self._report(
                RouteRequestError(
                    ERROR_REQUEST_REPLACED, self.pending_create_request.request_id
                )
            )
            self.pending_create_request = None

        sink = self._platform.get_sink(sink_id)
        if sink is None:
            return self._report(RouteRequestError(ERROR_NO_SINK, request_id))

        try:
            source = parse_source(source_id)
        except UnsupportedSource:
            return self._report(
                RouteRequestError(ERROR_UNSUPPORTED_SOURCE, request_id)
            )

        if not self._platform.has_route(sink_id):
            return self._report(RouteRequestError(ERROR_UNKNOWN_SINK, request_id))

        self.logger.info(
            "Launching %s on %s for request %d",
            source.application_id,
            sink.name,
            request_id,
        )
        self._platform.add_session_listener(self)
        self.pending_create_request = CreateRouteRequestInfo(
            source, sink, presentation_id, origin, tab_id, is_incognito, request_id
        )
        self.session_controller.request_launch(self.pending_create_request)

        return RouteRequestPending(request_id)

    # pylint: disable-next=too-many-arguments
    def join_route(
        self,
        source_id: str,
        presentation_id: str,
        origin: str,
        tab_id: int,
        request_id: int,
    ) -> RouteRequestResult:
        """Add a route for source_id to the running session."""
        source = CastMediaSource.from_source_id(source_id)
        if source is None or source.client_id is None:
            return self._report(
                RouteRequestError(ERROR_UNSUPPORTED_PRESENTATION, request_id)
            )

        sink = self.session_controller.sink
        if not self.session_controller.is_connected() or sink is None:
            return self._report(RouteRequestError(ERROR_NO_PRESENTATION, request_id))

        if not self.can_join_existing_session(presentation_id, origin, tab_id, source):
            return self._report(
                RouteRequestError(ERROR_NO_MATCHING_ROUTE, request_id)
            )

        return self._report(
            self.add_route(
                MediaRoute.create(sink.sink_id, source_id, presentation_id),
                source,
                origin,
                tab_id,
                request_id,
                was_launched=False,
            )
        )

    def can_join_existing_session(
        self,
        presentation_id: str,
        origin: str,
        tab_id: int,
        source: CastMediaSource,
    ) -> bool:
        """True if a page may join the running session."""
        if presentation_id == AUTO_JOIN_PRESENTATION_ID:
            return self.can_auto_join(source, origin, tab_id)

        if presentation_id.startswith(PRESENTATION_ID_SESSION_ID_PREFIX):
            session_id = presentation_id[len(PRESENTATION_ID_SESSION_ID_PREFIX) :]
            return (
                self.session_controller.is_connected()
                and session_id == self.session_controller.session_id
            )

        return any(
            route.presentation_id == presentation_id for route in self.routes.values()
        )

    def can_auto_join(self, source: CastMediaSource, origin: str, tab_id: int) -> bool:
        """True if the autojoin policy of source allows joining the running
        session."""
        if source.auto_join_policy == AUTOJOIN_PAGE_SCOPED:
            return False

        if source.application_id != self.session_controller.application_id:
            return False

        if not self.client_records:
            # Lets a page reload rejoin the session it just left.
            client = self.last_removed_client
            return (
                client is not None
                and is_same_origin(client.origin, origin)
                and client.tab_id == tab_id
            )

        client = next(iter(self.client_records.values()))
        same_origin = is_same_origin(client.origin, origin)
        if source.auto_join_policy == AUTOJOIN_ORIGIN_SCOPED:
            return same_origin
        if source.auto_join_policy == AUTOJOIN_TAB_AND_ORIGIN_SCOPED:
            return same_origin and client.tab_id == tab_id
        return False

    # pylint: disable-next=too-many-arguments
    def add_route(
        self,
        route: MediaRoute,
        source: CastMediaSource,
        origin: str,
        tab_id: int,
        request_id: int,
        *,
        was_launched: bool,
    ) -> RouteCreated:
        """Record route and the client of its source."""
        self.routes[route.route_id] = route
        if source.client_id is not None and source.client_id not in self.client_records:
            self.client_records[source.client_id] = ClientRecord(
                route.route_id,
                source.client_id,
                source.application_id,
                source.auto_join_policy,
                origin,
                tab_id,
            )
        self.logger.debug("Added route %s", route.route_id)
        return RouteCreated(route.route_id, route.sink_id, request_id, was_launched)

    def close_route(self, route_id: str) -> None:
        """Close a route, ending the session if there is one."""
        if route_id not in self.routes:
            return

        if not self.session_controller.is_connected():
            self.remove_route(route_id, None)
            return

        client = self._get_client_for_route(route_id)
        sink = self.session_controller.sink
        if client is not None and sink is not None:
            self.message_router.send_receiver_action_to_client(
                route_id, sink, client.client_id, RECEIVER_ACTION_STOP
            )

        self.session_controller.end_session()

    def detach_route(self, route_id: str) -> None:
        """Remove a route without ending the session."""
        self.remove_route(route_id, None)

    def send_string_message(self, route_id: str, message: str) -> bool:
        """Handle a message sent by the client of route_id."""
        if route_id not in self.routes:
            self.logger.error("Message for unknown route %s dropped", route_id)
            return False

        return self.message_router.handle_message_from_client(message)

    def remove_route(self, route_id: str, error: str | None) -> None:
        """Remove a route and tell the manager it was closed."""
        if route_id not in self.routes:
            return

        self.remove_route_from_record(route_id)
        self._manager.on_route_closed(route_id, error)

    def remove_route_from_record(self, route_id: str) -> None:
        """Forget a route and its client."""
        self.routes.pop(route_id, None)

        client = self._get_client_for_route(route_id)
        if client is not None:
            self.last_removed_client = self.client_records.pop(client.client_id)

    def remove_all_routes(self, error: str | None) -> None:
        """Remove all routes, telling the manager they were closed."""
        for route_id in list(self.routes):
            self.remove_route(route_id, error)

    def terminate_all_routes(self) -> None:
        """Remove all routes, telling the manager they were terminated."""
        for route_id in list(self.routes):
            self.remove_route_from_record(route_id)
            self._manager.on_route_terminated(route_id)

    def send_message_to_client(self, client_id: str, message: str) -> None:
        """Send a message to a client, queueing it until the client has
        connected."""
        client = self.client_records.get(client_id)
        if client is None:
            self.logger.debug("Message for unknown client %s dropped", client_id)
            return

        if not client.is_connected:
            self.logger.debug("Queueing message to client %s: %s", client_id, message)
            client.pending_messages.append(message)
            return

        self.logger.debug("Sending message to client %s: %s", client_id, message)
        self._manager.on_message(client.route_id, message)

    def flush_pending_messages_to_client(self, client: ClientRecord) -> None:
        """Send all queued messages of client in order."""
        while client.pending_messages:
            message = client.pending_messages.popleft()
            self.logger.debug(
                "Dequeueing message for client %s: %s", client.client_id, message
            )
            self._manager.on_message(client.route_id, message)

    # SessionManagerListener

    def on_session_starting(self, session: DeviceSession) -> None:
        self.logger.debug("Session starting")

    def on_session_started(self, session: DeviceSession, session_id: str) -> None:
        self.logger.info("Session %s started", session_id)
        if session is not self._platform.current_session:
            self.logger.debug("Ignoring start of session %s, not current", session_id)
            return
        if (
            session is self.session_controller.session
            or self.pending_create_request is None
        ):
            return

        self.session_controller.attach(session)

        info = self.pending_create_request
        self.pending_create_request = None
        if info is not None:
            self._report(
                self.add_route(
                    MediaRoute.create(
                        info.sink.sink_id, info.source.source_id, info.presentation_id
                    ),
                    info.source,
                    info.origin,
                    info.tab_id,
                    info.request_id,
                    was_launched=True,
                )
            )

            for client in list(self.client_records.values()):
                self.message_router.send_receiver_action_to_client(
                    client.route_id, info.sink, client.client_id, RECEIVER_ACTION_CAST
                )

        self.session_controller.notify_session_started()
        self.session_controller.request_media_status()

    def on_session_start_failed(
        self, session: DeviceSession | None, error: int
    ) -> None:
        self.logger.error("Failed to start the session, error %d", error)
        info = self.pending_create_request
        self.pending_create_request = None
        if info is not None:
            self._report(RouteRequestError(ERROR_LAUNCH, info.request_id))

        self.remove_all_routes(ERROR_LAUNCH)
        self._platform.remove_session_listener(self)

    def on_session_ending(self, session: DeviceSession) -> None:
        self.handle_session_end()

    def on_session_ended(self, session: DeviceSession, error: int) -> None:
        self.logger.info("Session ended, error %d", error)
        self.handle_session_end()

    def on_session_resumed(self, session: DeviceSession, was_suspended: bool) -> None:
        self.logger.info("Session %s resumed", session.session_id)
        self.session_controller.attach(session)

    def on_session_suspended(self, session: DeviceSession, reason: int) -> None:
        self.logger.info("Session %s suspended, reason %d", session.session_id, reason)
        self.session_controller.detach()

    def handle_session_end(self) -> None:
        """Tear down the routes of the attached session."""
        if self.pending_create_request is not None:
            # The session ends because a new one is being launched.
            self.logger.debug("Ignoring session end, launch pending")
            return
        if self.session_controller.session is None:
            return

        self.session_controller.notify_session_ended()
        self.session_controller.detach()
        self.message_router.reset()
        self._platform.select_default_route()
        self.terminate_all_routes()
        self._platform.remove_session_listener(self)

    def _get_client_for_route(self, route_id: str) -> ClientRecord | None:
        for client in self.client_records.values():
            if client.route_id == route_id:
                return client
        return None

    def _report(self, result: RouteRequestResult) -> RouteRequestResult:
        if isinstance(result, RouteCreated):
            self._manager.on_route_created(result)
        elif isinstance(result, RouteRequestError):
            self.logger.error(
                "Route request %d failed: %s", result.request_id, result.reason
            )
            self._manager.on_route_request_error(result)
        return result
