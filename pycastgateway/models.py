"""
Cast gateway types
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .const import ROUTE_ID_PREFIX

if TYPE_CHECKING:
    from .media_source import CastMediaSource


@dataclass(frozen=True)
class MediaSink:
    """Addressable receiver device."""

    sink_id: str
    name: str


@dataclass(frozen=True)
class MediaRoute:
    """Binding between a page's presentation and a sink."""

    route_id: str
    sink_id: str
    source_id: str
    presentation_id: str

    @classmethod
    def create(cls, sink_id: str, source_id: str, presentation_id: str) -> MediaRoute:
        """Creates a route with an id derived from its parts."""
        route_id = f"{ROUTE_ID_PREFIX}{presentation_id}/{sink_id}/{source_id}"
        return cls(route_id, sink_id, source_id, presentation_id)


@dataclass
class ClientRecord:
    """Page side endpoint of the client protocol, bound to a route."""

    route_id: str
    client_id: str
    app_id: str
    auto_join_policy: str
    origin: str
    tab_id: int
    is_connected: bool = False
    pending_messages: deque[str] = field(default_factory=deque)


@dataclass(frozen=True)
class CreateRouteRequestInfo:
    """A create route request waiting for the session to start."""

    source: CastMediaSource
    sink: MediaSink
    presentation_id: str
    origin: str
    tab_id: int
    is_incognito: bool
    request_id: int


@dataclass(frozen=True)
class RequestRecord:
    """Client request forwarded to the device, waiting for a response."""

    client_id: str
    sequence_number: int


@dataclass(frozen=True)
class RouteCreated:
    """A route was created for the request."""

    route_id: str
    sink_id: str
    request_id: int
    was_launched: bool


@dataclass(frozen=True)
class RouteRequestPending:
    """The route will be created once the platform has started the session."""

    request_id: int


@dataclass(frozen=True)
class RouteRequestError:
    """The route request failed."""

    reason: str
    request_id: int


RouteRequestResult = RouteCreated | RouteRequestPending | RouteRequestError


def is_same_origin(origin1: str | None, origin2: str | None) -> bool:
    """True if both origins are set and equal."""
    return bool(origin1) and origin1 == origin2
