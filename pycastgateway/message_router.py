"""
Translates between the client JSON protocol spoken by pages and the
namespace protocol spoken by the cast device.

Client messages are wrapped in an envelope::

    {
        "type": "v2_message",
        "message": {"type": "PAUSE", ...},
        "sequenceNumber": 0,
        "timeoutMillis": 0,
        "clientId": "144042901280235697"
    }

Requests forwarded to the device get a requestId which is used to match the
device response back to the client and its sequence number.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
import json
import logging
import math
from typing import TYPE_CHECKING, Any

from .const import (
    AUTOJOIN_ORIGIN_SCOPED,
    AUTOJOIN_TAB_AND_ORIGIN_SCOPED,
    MEDIA_MESSAGE_TYPES,
    MEDIA_NAMESPACE,
    MEDIA_OVERLOADED_MESSAGE_TYPES,
    MEDIA_SUPPORTED_COMMANDS,
    MESSAGE_TYPE,
    MIN_VOLUME_LEVEL_DELTA,
    RECEIVER_TYPE,
    REQUEST_ID,
    SESSION_ID,
    TIMEOUT_IMMEDIATE,
    TRANSPORT_ID,
    TYPE_APP_MESSAGE,
    TYPE_CLIENT_CONNECT,
    TYPE_CLIENT_DISCONNECT,
    TYPE_DISCONNECT_SESSION,
    TYPE_LEAVE_SESSION,
    TYPE_MEDIA_STATUS,
    TYPE_NEW_SESSION,
    TYPE_RECEIVER_ACTION,
    TYPE_REMOVE_SESSION,
    TYPE_SET_VOLUME,
    TYPE_STOP,
    TYPE_UPDATE_SESSION,
    TYPE_V2_MESSAGE,
    VOID_SEQUENCE_NUMBER,
)
from .dispatcher import Dispatcher
from .error import DeviceSessionError, InvalidClientMessage, NotConnected
from .models import MediaSink, RequestRecord, is_same_origin
from .response_handler import RequestTable
from .session_controller import SessionController, SessionControllerListener

if TYPE_CHECKING:
    from .route_registry import RouteRegistry


@dataclass(frozen=True)
class ClientMessage:
    """Envelope of a message sent by a client."""

    type: str
    client_id: str | None
    sequence_number: int
    message: Any

    @classmethod
    def from_json(cls, message: str) -> ClientMessage:
        """Parses a client message, raises InvalidClientMessage if malformed."""
        try:
            data = json.loads(message)
        except ValueError as err:
            raise InvalidClientMessage("not JSON") from err

        if not isinstance(data, dict):
            raise InvalidClientMessage("not a JSON object")

        message_type = data.get(MESSAGE_TYPE)
        if not isinstance(message_type, str):
            raise InvalidClientMessage("missing type")

        client_id = data.get("clientId")
        if client_id is not None:
            client_id = str(client_id)

        sequence_number = data.get("sequenceNumber", VOID_SEQUENCE_NUMBER)
        if isinstance(sequence_number, bool) or not isinstance(sequence_number, int):
            sequence_number = VOID_SEQUENCE_NUMBER

        return cls(message_type, client_id, sequence_number, data.get("message"))

    def require_client_id(self) -> str:
        """Returns the client id, raises InvalidClientMessage if missing."""
        if self.client_id is None:
            raise InvalidClientMessage(f"{self.type} without clientId")
        return self.client_id

    def require_object(self) -> dict:
        """Returns the embedded message object, raises InvalidClientMessage if
        it is not an object."""
        if not isinstance(self.message, dict):
            raise InvalidClientMessage(f"{self.type} without message object")
        return self.message


def remove_null_fields(value: Any) -> Any:
    """Returns a copy of value with all null fields of objects removed."""
    if isinstance(value, dict):
        return {
            key: remove_null_fields(item)
            for key, item in value.items()
            if item is not None
        }
    if isinstance(value, list):
        return [remove_null_fields(item) for item in value]
    return value


def _get_request_id(data: dict) -> int | None:
    request_id = data.get(REQUEST_ID)
    if isinstance(request_id, bool) or not isinstance(request_id, int):
        return None
    return request_id


# pylint: disable-next=too-many-instance-attributes, too-many-public-methods
class MessageRouter(SessionControllerListener):
    """
    Handles messages between the clients and the cast device.

    :param registry: Registry owning the routes and client records.
    :param session_controller: Controller owning the device session.
    :param dispatcher: Execution context for deferred replies.
    :param request_timeout: Seconds to wait for a device response before an
                            open request is dropped.
    """

    def __init__(
        self,
        registry: RouteRegistry,
        session_controller: SessionController,
        dispatcher: Dispatcher,
        *,
        request_timeout: float | None = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)

        self._registry = registry
        self._session_controller = session_controller
        self._dispatcher = dispatcher

        self.requests = RequestTable(request_timeout)
        self.stop_requests: dict[str, deque[int]] = {}
        self.volume_requests: deque[RequestRecord] = deque()

        self._handlers: dict[str, Callable[[ClientMessage], bool]] = {
            TYPE_CLIENT_CONNECT: self._handle_client_connect,
            TYPE_CLIENT_DISCONNECT: self._handle_client_disconnect,
            TYPE_LEAVE_SESSION: self._handle_leave_session,
            TYPE_V2_MESSAGE: self._handle_cast_v2_message,
            TYPE_APP_MESSAGE: self._handle_app_message,
        }

        session_controller.register_listener(self)

    def handle_message_from_client(self, message: str) -> bool:
        """
        Handle a message sent from a client.

        Returns True if the message was handled.
        """
        try:
            client_message = ClientMessage.from_json(message)
            handler = self._handlers.get(client_message.type)
            if handler is None:
                self.logger.error("Unsupported message: %s", message)
                return False
            return handler(client_message)
        except InvalidClientMessage as err:
            self.logger.error("%s Dropping: %s", err, message)
        return False

    def _handle_client_connect(self, client_message: ClientMessage) -> bool:
        client_id = client_message.require_client_id()

        client = self._registry.client_records.get(client_id)
        if client is None:
            return False

        client.is_connected = True
        self._registry.flush_pending_messages_to_client(client)
        if self._session_controller.is_connected():
            self._notify_session_connected_to_client(client_id)

        return True

    def _handle_client_disconnect(self, client_message: ClientMessage) -> bool:
        client_id = client_message.require_client_id()

        client = self._registry.client_records.get(client_id)
        if client is None:
            return False

        self._registry.remove_route(client.route_id, None)

        return True

    def _handle_leave_session(self, client_message: ClientMessage) -> bool:
        client_id = client_message.require_client_id()
        if not self._session_controller.is_connected():
            return False

        if client_message.message != self._session_controller.session_id:
            return False

        current_client = self._registry.client_records.get(client_id)
        if current_client is None:
            return False

        # The web sender SDK ignores the reply, it only acknowledges the request.
        self._registry.send_message_to_client(
            client_id,
            self._build_simple_session_message(
                TYPE_LEAVE_SESSION, client_message.sequence_number, client_id
            ),
        )

        leaving_clients = []
        for client in self._registry.client_records.values():
            same_origin = is_same_origin(client.origin, current_client.origin)
            if current_client.auto_join_policy == AUTOJOIN_TAB_AND_ORIGIN_SCOPED:
                leaving = same_origin and client.tab_id == current_client.tab_id
            elif current_client.auto_join_policy == AUTOJOIN_ORIGIN_SCOPED:
                leaving = same_origin
            else:
                leaving = False

            if leaving:
                leaving_clients.append(client)

        for client in leaving_clients:
            self._registry.remove_route(client.route_id, None)

        return True

    def _handle_cast_v2_message(self, client_message: ClientMessage) -> bool:
        client_id = client_message.require_client_id()
        if client_id not in self._registry.client_records:
            return False

        cast_message = dict(client_message.require_object())
        message_type = cast_message.get(MESSAGE_TYPE)
        if not isinstance(message_type, str):
            raise InvalidClientMessage("v2_message without type")
        sequence_number = client_message.sequence_number

        if message_type == TYPE_STOP:
            self.handle_stop_message(client_id, sequence_number)
            return True

        if message_type == TYPE_SET_VOLUME:
            volume = cast_message.get("volume")
            if not isinstance(volume, dict):
                raise InvalidClientMessage("SET_VOLUME without volume")
            return self.handle_volume_message(volume, client_id, sequence_number)

        if message_type in MEDIA_MESSAGE_TYPES:
            if message_type in MEDIA_OVERLOADED_MESSAGE_TYPES:
                cast_message[MESSAGE_TYPE] = MEDIA_OVERLOADED_MESSAGE_TYPES[
                    message_type
                ]
            return self.send_json_cast_message(
                cast_message, MEDIA_NAMESPACE, client_id, sequence_number
            )

        self.logger.debug("Ignoring v2_message of type %s", message_type)
        return True

    def handle_volume_message(
        self, volume: dict, client_id: str, sequence_number: int
    ) -> bool:
        """Apply a volume change to the device if it differs from the
        current volume."""
        try:
            session = self._session_controller.require_session()
        except NotConnected:
            return False

        should_wait_for_volume_change = False
        try:
            muted = volume.get("muted")
            if muted is not None and session.is_mute != bool(muted):
                session.set_mute(bool(muted))
                should_wait_for_volume_change = True

            level = volume.get("level")
            if level is not None:
                new_level = float(level)
                current_level = session.volume
                if (
                    not math.isnan(current_level)
                    and abs(current_level - new_level) > MIN_VOLUME_LEVEL_DELTA
                ):
                    session.set_volume(new_level)
                    should_wait_for_volume_change = True
        except (DeviceSessionError, TypeError, ValueError) as err:
            self.logger.error("Failed to send volume command: %s", err)
            return False

        # Every volume request is answered with an empty v2_message. When the
        # volume is expected to change, the answer is sent once the device
        # reports the change, otherwise it is posted right away.
        if should_wait_for_volume_change:
            self.volume_requests.append(RequestRecord(client_id, sequence_number))
        else:
            self._dispatcher.post(
                self.send_volume_changed_to_client, client_id, sequence_number
            )
        return True

    def handle_stop_message(self, client_id: str, sequence_number: int) -> None:
        """Queue the sequence number and end the session. The client is
        answered when the session has ended."""
        self.stop_requests.setdefault(client_id, deque()).append(sequence_number)

        self._session_controller.end_session()

    def reset(self) -> None:
        """Drop all requests still waiting for the device."""
        self.requests.clear()
        self.stop_requests.clear()
        self.volume_requests.clear()

    def _handle_app_message(self, client_message: ClientMessage) -> bool:
        client_id = client_message.require_client_id()
        if client_id not in self._registry.client_records:
            return False

        wrapper = client_message.require_object()

        if (
            self._session_controller.session_id is None
            or wrapper.get(SESSION_ID) != self._session_controller.session_id
        ):
            return False

        namespace = wrapper.get("namespaceName")
        if not namespace or not isinstance(namespace, str):
            return False

        if namespace not in self._session_controller.namespaces:
            return False

        actual_message = wrapper.get("message")
        if actual_message is None:
            return False

        sequence_number = client_message.sequence_number
        if isinstance(actual_message, str):
            return self.send_string_cast_message(
                actual_message, namespace, client_id, sequence_number
            )

        if not isinstance(actual_message, dict):
            raise InvalidClientMessage("app_message with invalid message")

        return self.send_json_cast_message(
            dict(actual_message), namespace, client_id, sequence_number
        )

    def send_json_cast_message(
        self, message: dict, namespace: str, client_id: str, sequence_number: int
    ) -> bool:
        """Send a JSON message to the device, opening a request record if the
        client expects a reply."""
        if not self._session_controller.is_connected():
            return False

        message = remove_null_fields(message)

        if sequence_number != VOID_SEQUENCE_NUMBER:
            # A request id set by the client is kept, otherwise one is
            # generated. Either way it is mapped to the sequence number.
            request_id = _get_request_id(message)
            if not request_id:
                request_id = (
                    self._session_controller.request_id_generator.next_request_id()
                )
                message[REQUEST_ID] = request_id
            self.requests.add(request_id, RequestRecord(client_id, sequence_number))

        return self.send_string_cast_message(
            json.dumps(message), namespace, client_id, sequence_number
        )

    def send_string_cast_message(
        self, message: str, namespace: str, client_id: str, sequence_number: int
    ) -> bool:
        """Send a raw message to the device."""
        try:
            session = self._session_controller.require_session()
        except NotConnected:
            return False

        callback_function = None
        if namespace != MEDIA_NAMESPACE:
            # Media commands are answered by the resulting media status.
            def callback_function(msg_sent: bool, _response: dict | None) -> None:
                self._dispatcher.post(
                    self._on_send_app_message_result,
                    msg_sent,
                    client_id,
                    sequence_number,
                )

        try:
            session.send_message(
                namespace, message, callback_function=callback_function
            )
        except DeviceSessionError as err:
            self.logger.error("Failed to send the message: %s", err)
            return False
        return True

    def _on_send_app_message_result(
        self, msg_sent: bool, client_id: str, sequence_number: int
    ) -> None:
        if not msg_sent:
            # TODO: report the failure back to the page once the client
            # protocol has an error reply for app messages.
            self.logger.error(
                "Failed to send the message of client %s (sequence number %d)",
                client_id,
                sequence_number,
            )
            return

        # App messages wait for an empty message with the sequence number.
        self.send_enclosed_message_to_client(
            client_id, TYPE_APP_MESSAGE, None, sequence_number
        )

    # SessionControllerListener

    def on_session_started(self) -> None:
        """Tell connected clients about the new session."""
        for client in list(self._registry.client_records.values()):
            if not client.is_connected:
                continue
            self._notify_session_connected_to_client(client.client_id)

    def on_session_ended(self) -> None:
        """Tell clients the session is gone, answering pending STOP requests."""
        session_id = self._session_controller.session_id
        for client_id in list(self._registry.client_records):
            sequence_numbers = self.stop_requests.pop(client_id, None)
            if not sequence_numbers:
                self.send_enclosed_message_to_client(
                    client_id, TYPE_REMOVE_SESSION, session_id, VOID_SEQUENCE_NUMBER
                )
                continue

            for sequence_number in sequence_numbers:
                self.send_enclosed_message_to_client(
                    client_id, TYPE_REMOVE_SESSION, session_id, sequence_number
                )

    def on_session_updated(self) -> None:
        """Send the new session status to all clients."""
        self.broadcast_client_message(TYPE_UPDATE_SESSION, self.build_session_message())

    def on_volume_changed(self) -> None:
        """Answer all volume requests waiting for the change."""
        while self.volume_requests:
            record = self.volume_requests.popleft()
            self.send_volume_changed_to_client(
                record.client_id, record.sequence_number
            )

    def on_message_received(self, namespace: str, message: str) -> None:
        """Forward a device message to the clients, matching it to the
        request it answers if there is one."""
        request = None
        try:
            data = json.loads(message)
        except ValueError:
            data = None
        if isinstance(data, dict):
            request_id = _get_request_id(data)
            if request_id is not None:
                request = self.requests.pop(request_id)

        if namespace == MEDIA_NAMESPACE:
            self.on_media_message(message, request)
            return

        self.on_app_message(message, namespace, request)

    def on_media_message(self, message: str, request: RequestRecord | None) -> None:
        """Forward a media message. MEDIA_STATUS is sent to all the clients."""
        if is_media_status_message(message):
            for client_id in list(self._registry.client_records):
                if request is not None and client_id == request.client_id:
                    continue

                self.send_enclosed_message_to_client(
                    client_id, TYPE_V2_MESSAGE, message, VOID_SEQUENCE_NUMBER
                )

        if request is not None:
            self.send_enclosed_message_to_client(
                request.client_id, TYPE_V2_MESSAGE, message, request.sequence_number
            )

    def on_app_message(
        self, message: str, namespace: str, request: RequestRecord | None
    ) -> None:
        """Forward an application message to its requester, or to all clients."""
        wrapper = json.dumps(
            {
                SESSION_ID: self._session_controller.session_id,
                "namespaceName": namespace,
                "message": message,
            }
        )
        if request is not None:
            self.send_enclosed_message_to_client(
                request.client_id, TYPE_APP_MESSAGE, wrapper, request.sequence_number
            )
        else:
            self.broadcast_client_message(TYPE_APP_MESSAGE, wrapper)

    def send_volume_changed_to_client(
        self, client_id: str, sequence_number: int
    ) -> None:
        """Acknowledge a volume request."""
        self.send_enclosed_message_to_client(
            client_id, TYPE_V2_MESSAGE, None, sequence_number
        )

    def broadcast_client_message(self, message_type: str, message: str | None) -> None:
        """Send a message to all clients."""
        for client_id in list(self._registry.client_records):
            self.send_enclosed_message_to_client(
                client_id, message_type, message, VOID_SEQUENCE_NUMBER
            )

    def send_receiver_action_to_client(
        self, route_id: str, sink: MediaSink, client_id: str, action: str
    ) -> None:
        """Tell a client the receiver started or stopped casting."""
        self.logger.debug(
            "Sending receiver action %s for route %s to client %s",
            action,
            route_id,
            client_id,
        )
        message = {
            MESSAGE_TYPE: TYPE_RECEIVER_ACTION,
            "sequenceNumber": VOID_SEQUENCE_NUMBER,
            "timeoutMillis": TIMEOUT_IMMEDIATE,
            "clientId": client_id,
            "message": {
                "receiver": {
                    "label": sink.sink_id,
                    "friendlyName": sink.name,
                    "capabilities": self._session_controller.capabilities,
                    "receiverType": RECEIVER_TYPE,
                },
                "action": action,
            },
        }
        self._registry.send_message_to_client(client_id, json.dumps(message))

    def send_enclosed_message_to_client(
        self,
        client_id: str,
        message_type: str,
        message: str | None,
        sequence_number: int,
    ) -> None:
        """Wrap message in an envelope and send it to a client."""
        self._registry.send_message_to_client(
            client_id,
            self.build_enclosed_client_message(
                message_type, message, client_id, sequence_number
            ),
        )

    def build_enclosed_client_message(
        self,
        message_type: str,
        message: str | None,
        client_id: str,
        sequence_number: int,
    ) -> str:
        """Builds the envelope sent to a client."""
        envelope: dict[str, Any] = {
            MESSAGE_TYPE: message_type,
            "sequenceNumber": sequence_number,
            "timeoutMillis": TIMEOUT_IMMEDIATE,
            "clientId": client_id,
        }

        if message is None:
            return json.dumps(envelope)

        if message_type in (TYPE_REMOVE_SESSION, TYPE_DISCONNECT_SESSION):
            envelope["message"] = message
            return json.dumps(envelope)

        try:
            data = json.loads(message)
        except ValueError:
            self.logger.error("Failed to build the reply, invalid JSON: %s", message)
            return json.dumps(envelope)

        if (
            message_type == TYPE_V2_MESSAGE
            and isinstance(data, dict)
            and data.get(MESSAGE_TYPE) == TYPE_MEDIA_STATUS
        ):
            self._sanitize_media_status_message(data)
        envelope["message"] = data

        return json.dumps(envelope)

    def build_session_message(self) -> str:
        """Builds the session snapshot sent as new_session and update_session."""
        try:
            session = self._session_controller.require_session()
        except NotConnected:
            return "{}"

        device = session.device
        snapshot = {
            SESSION_ID: session.session_id,
            "statusText": session.application_status,
            "receiver": {
                "label": device.device_id,
                "friendlyName": device.friendly_name,
                "capabilities": self._session_controller.capabilities,
                "volume": {"level": session.volume, "muted": session.is_mute},
                "isActiveInput": session.active_input_state,
                "displayStatus": None,
                "receiverType": RECEIVER_TYPE,
            },
            "namespaces": [
                {"name": namespace} for namespace in self._session_controller.namespaces
            ],
            "media": [],
            "status": "connected",
            "transportId": TRANSPORT_ID,
            "appId": self._session_controller.application_id,
            "displayName": device.friendly_name,
        }
        if math.isnan(session.volume):
            snapshot["receiver"]["volume"]["level"] = None
        return json.dumps(snapshot)

    def _notify_session_connected_to_client(self, client_id: str) -> None:
        self.send_enclosed_message_to_client(
            client_id,
            TYPE_NEW_SESSION,
            self.build_session_message(),
            VOID_SEQUENCE_NUMBER,
        )

    @staticmethod
    def _build_simple_session_message(
        message_type: str, sequence_number: int, client_id: str
    ) -> str:
        return json.dumps(
            {
                MESSAGE_TYPE: message_type,
                "sequenceNumber": sequence_number,
                "timeoutMillis": TIMEOUT_IMMEDIATE,
                "clientId": client_id,
            }
        )

    def _sanitize_media_status_message(self, data: dict) -> None:
        """Stamp the session id on a MEDIA_STATUS message and expand the
        supported commands bitfield into names, in place."""
        session_id = self._session_controller.session_id
        data[SESSION_ID] = session_id

        for status in data.get("status") or []:
            if not isinstance(status, dict):
                continue
            status[SESSION_ID] = session_id
            commands = status.get("supportedMediaCommands")
            if isinstance(commands, bool) or not isinstance(commands, int):
                continue

            status["supportedMediaCommands"] = [
                name
                for bit, name in enumerate(MEDIA_SUPPORTED_COMMANDS)
                if commands & (1 << bit)
            ]


def is_media_status_message(message: str) -> bool:
    """True if message is a MEDIA_STATUS message."""
    try:
        data = json.loads(message)
    except ValueError:
        return False
    return isinstance(data, dict) and data.get(MESSAGE_TYPE) == TYPE_MEDIA_STATUS
