"""Tests for route creation, joining and closing."""

from __future__ import annotations

import pytest

from pycastgateway.const import (
    AUTO_JOIN_PRESENTATION_ID,
    AUTOJOIN_ORIGIN_SCOPED,
    AUTOJOIN_PAGE_SCOPED,
    AUTOJOIN_TAB_AND_ORIGIN_SCOPED,
)
from pycastgateway.media_source import CastMediaSource
from pycastgateway.models import (
    RouteCreated,
    RouteRequestError,
    RouteRequestPending,
)
from pycastgateway.route_registry import RouteRegistry

from conftest import ORIGIN, SINK_ID, TAB_ID, FakeDeviceSession, source_id


def create(registry, client_id="1", sink_id=SINK_ID, request_id=1, **kwargs):
    return registry.create_route(
        kwargs.pop("source", source_id(client_id)),
        sink_id,
        kwargs.pop("presentation_id", "presentation-1"),
        kwargs.pop("origin", ORIGIN),
        kwargs.pop("tab_id", TAB_ID),
        False,
        request_id,
    )


def test_create_route_is_pending(registry, platform, manager):
    result = create(registry)

    assert result == RouteRequestPending(1)
    assert manager.created == []
    assert platform.app_id == "CC1AD845"
    assert platform.selected_sink_id == SINK_ID
    assert platform.session_listeners == [registry]
    assert registry.pending_create_request.request_id == 1


@pytest.mark.parametrize(
    ("sink_id", "source", "reason"),
    [
        ("unknown", source_id(), "No sink"),
        (SINK_ID, "https://example.com/video.mp4", "Unsupported source URL"),
    ],
)
def test_create_route_errors(registry, manager, sink_id, source, reason):
    result = create(registry, sink_id=sink_id, source=source)

    assert result == RouteRequestError(reason, 1)
    assert manager.errors == [result]
    assert registry.pending_create_request is None


def test_create_route_sink_without_route(registry, platform, manager):
    platform.has_route = lambda sink_id: False

    assert create(registry) == RouteRequestError("The sink does not exist", 1)


def test_session_start_creates_route(registry, platform, manager, session):
    create(registry)

    platform.start_session(session)

    (created,) = manager.created
    assert created == RouteCreated(
        "urn:x-org.chromium:media:route:presentation-1/sink-1/"
        "cast:CC1AD845?clientId=1&autoJoinPolicy=origin_scoped",
        SINK_ID,
        1,
        True,
    )
    assert registry.pending_create_request is None
    assert registry.session_controller.session is session
    assert registry.routes[created.route_id].presentation_id == "presentation-1"
    client = registry.client_records["1"]
    assert client.route_id == created.route_id
    assert client.origin == ORIGIN
    assert client.tab_id == TAB_ID
    assert client.auto_join_policy == AUTOJOIN_ORIGIN_SCOPED
    assert not client.is_connected
    assert session.sent_json()[-1]["type"] == "GET_STATUS"


def test_route_without_client_id(registry, platform, manager, session):
    create(registry, source=source_id(None))

    platform.start_session(session)

    assert len(manager.created) == 1
    assert registry.client_records == {}


def test_start_of_other_session_is_ignored(registry, platform, manager, session):
    create(registry)
    platform.session = FakeDeviceSession("session-2")

    registry.on_session_started(session, "session-1")

    assert manager.created == []
    assert registry.session_controller.session is None
    assert registry.pending_create_request is not None


def test_session_start_without_create_is_ignored(registry, platform, manager, session):
    platform.session = session

    registry.on_session_started(session, "session-1")

    assert manager.created == []
    assert registry.session_controller.session is None
    assert session.callbacks == {}
    assert session.sent == []


def test_registry_uses_given_dispatcher(platform, manager, dispatcher):
    registry = RouteRegistry(platform, manager, dispatcher=dispatcher)

    assert len(dispatcher) == 0
    assert registry.dispatcher is dispatcher


def test_repeated_session_start_is_ignored(registry, platform, manager, session):
    create(registry)
    platform.start_session(session)

    registry.on_session_started(session, "session-1")

    assert len(manager.created) == 1


def test_second_create_replaces_pending(registry, manager):
    create(registry, request_id=1)

    result = create(registry, request_id=2)

    assert result == RouteRequestPending(2)
    assert manager.errors == [RouteRequestError("Request replaced", 1)]
    assert registry.pending_create_request.request_id == 2


def test_create_while_connected_ends_session(
    registry, platform, manager, launch, connect, session
):
    route_id = launch()
    connect(route_id)
    manager.messages.clear()

    result = create(registry, client_id="2", request_id=2)

    assert result == RouteRequestPending(2)
    assert "end session" in platform.calls
    assert manager.terminated == [route_id]
    assert [message["type"] for message in manager.messages_for(route_id)] == [
        "remove_session"
    ]
    assert registry.routes == {}
    assert registry.session_controller.session is None
    assert platform.session_listeners == [registry]

    # The route is still selected, it is selected again for the new launch.
    assert platform.calls[-2:] == ["unselect", f"select {SINK_ID}"]

    platform.start_session(FakeDeviceSession("session-2"))

    assert manager.created[-1].request_id == 2
    assert registry.session_controller.session_id == "session-2"


def test_session_start_failed(registry, platform, manager):
    create(registry)

    platform.fail_session()

    assert manager.errors == [RouteRequestError("Launch error", 1)]
    assert registry.pending_create_request is None
    assert platform.session_listeners == []


def test_session_end_tears_down_routes(registry, platform, manager, launch, session):
    route_id = launch()

    platform.end_session(session)

    assert manager.terminated == [route_id]
    assert registry.routes == {}
    assert registry.client_records == {}
    assert registry.last_removed_client.client_id == "1"
    assert registry.session_controller.session is None
    assert session.callbacks == {}
    assert "select default" in platform.calls
    assert platform.session_listeners == []


def test_session_end_while_launch_pending_is_ignored(
    registry, manager, launch, session
):
    launch()
    registry.pending_create_request = registry.session_controller.route_creation_info

    registry.on_session_ending(session)

    assert manager.terminated == []
    assert registry.session_controller.session is session


def test_suspend_and_resume(registry, launch, session):
    launch()

    registry.on_session_suspended(session, 1)
    assert registry.session_controller.session is None
    assert session.callbacks == {}

    registry.on_session_resumed(session, True)
    assert registry.session_controller.session is session
    assert len(session.callbacks) == 2


def test_join_unsupported_presentation(registry, launch, manager):
    launch()

    result = registry.join_route(source_id(None), "presentation-1", ORIGIN, TAB_ID, 2)

    assert result == RouteRequestError("Unsupported presentation URL", 2)
    assert manager.errors == [result]


def test_join_without_session(registry):
    result = registry.join_route(source_id("2"), "presentation-1", ORIGIN, TAB_ID, 2)

    assert result == RouteRequestError("No presentation", 2)


def test_join_no_matching_route(registry, launch):
    launch()

    result = registry.join_route(source_id("2"), "other", ORIGIN, TAB_ID, 2)

    assert result == RouteRequestError("No matching route", 2)


def test_join_by_presentation_id(registry, launch, manager):
    launch()

    result = registry.join_route(
        source_id("2"), "presentation-1", "https://other.org", 5, 2
    )

    assert isinstance(result, RouteCreated)
    assert not result.was_launched
    assert manager.created[-1] == result
    assert registry.client_records["2"].route_id == result.route_id


@pytest.mark.parametrize(
    ("presentation_id", "joined"),
    [("cast-session_session-1", True), ("cast-session_session-2", False)],
)
def test_join_by_session_id(registry, launch, presentation_id, joined):
    launch()

    result = registry.join_route(source_id("2"), presentation_id, ORIGIN, TAB_ID, 2)

    assert isinstance(result, RouteCreated) == joined


@pytest.mark.parametrize("origin", [ORIGIN, "https://other.org", ""])
@pytest.mark.parametrize("tab_id", [TAB_ID, 2])
def test_page_scoped_never_autojoins(registry, launch, origin, tab_id):
    launch()
    source = CastMediaSource.from_source_id(source_id("2", AUTOJOIN_PAGE_SCOPED))

    assert not registry.can_join_existing_session(
        AUTO_JOIN_PRESENTATION_ID, origin, tab_id, source
    )


@pytest.mark.parametrize(
    ("origin", "tab_id", "joined"),
    [
        (ORIGIN, TAB_ID, True),
        (ORIGIN, 2, False),
        ("https://other.org", TAB_ID, False),
        ("https://other.org", 2, False),
    ],
)
def test_tab_and_origin_scoped_autojoin(registry, launch, origin, tab_id, joined):
    launch()
    source = CastMediaSource.from_source_id(
        source_id("2", AUTOJOIN_TAB_AND_ORIGIN_SCOPED)
    )

    assert (
        registry.can_join_existing_session(
            AUTO_JOIN_PRESENTATION_ID, origin, tab_id, source
        )
        == joined
    )


@pytest.mark.parametrize(
    ("origin", "joined"), [(ORIGIN, True), ("https://other.org", False)]
)
def test_origin_scoped_autojoin(registry, launch, origin, joined):
    launch()
    source = CastMediaSource.from_source_id(source_id("2", AUTOJOIN_ORIGIN_SCOPED))

    assert (
        registry.can_join_existing_session(AUTO_JOIN_PRESENTATION_ID, origin, 9, source)
        == joined
    )


def test_autojoin_requires_same_application(registry, launch):
    launch()
    source = CastMediaSource.from_source_id(
        source_id("2", AUTOJOIN_ORIGIN_SCOPED, app_id="ABCDEF")
    )

    assert not registry.can_join_existing_session(
        AUTO_JOIN_PRESENTATION_ID, ORIGIN, TAB_ID, source
    )


def test_empty_origin_never_matches(registry, launch):
    launch(origin="")
    source = CastMediaSource.from_source_id(source_id("2", AUTOJOIN_ORIGIN_SCOPED))

    assert not registry.can_join_existing_session(
        AUTO_JOIN_PRESENTATION_ID, "", TAB_ID, source
    )


@pytest.mark.parametrize(
    ("origin", "tab_id", "joined"),
    [
        (ORIGIN, TAB_ID, True),
        (ORIGIN, 2, False),
        ("https://other.org", TAB_ID, False),
    ],
)
def test_autojoin_after_last_client_left(
    registry, launch, origin, tab_id, joined
):
    route_id = launch()
    registry.detach_route(route_id)
    assert registry.client_records == {}
    source = CastMediaSource.from_source_id(source_id("2", AUTOJOIN_ORIGIN_SCOPED))

    assert (
        registry.can_join_existing_session(
            AUTO_JOIN_PRESENTATION_ID, origin, tab_id, source
        )
        == joined
    )


def test_autojoin_without_any_client(registry, launch):
    launch(client_id=None)
    source = CastMediaSource.from_source_id(source_id("2", AUTOJOIN_ORIGIN_SCOPED))

    assert not registry.can_join_existing_session(
        AUTO_JOIN_PRESENTATION_ID, ORIGIN, TAB_ID, source
    )


def test_close_route_without_session(registry, launch, manager, session):
    route_id = launch()
    session.connected = False

    registry.close_route(route_id)

    assert manager.closed == [(route_id, None)]
    assert registry.routes == {}


def test_close_route_with_session(registry, platform, launch, connect, manager):
    route_id = launch()
    connect(route_id)
    manager.messages.clear()

    registry.close_route(route_id)

    (stop,) = manager.messages_for(route_id)
    assert stop["type"] == "receiver_action"
    assert stop["message"]["action"] == "stop"
    assert platform.calls[-1] == "end session"
    assert route_id in registry.routes


def test_close_unknown_route(registry, platform, launch, manager):
    launch()
    calls = list(platform.calls)

    registry.close_route("unknown")

    assert platform.calls == calls
    assert manager.closed == []


def test_detach_route(registry, platform, launch, manager, session):
    route_id = launch()

    registry.detach_route(route_id)

    assert registry.routes == {}
    assert manager.closed == [(route_id, None)]
    assert manager.terminated == []
    assert "end session" not in platform.calls
    assert registry.session_controller.session is session


def test_remove_all_routes(registry, launch, manager):
    first = launch()
    second = registry.join_route(source_id("2"), "presentation-1", ORIGIN, TAB_ID, 2)

    registry.remove_all_routes("Gone")

    assert manager.closed == [(first, "Gone"), (second.route_id, "Gone")]
    assert registry.routes == {}
    assert registry.client_records == {}


def test_message_to_unknown_client_is_dropped(registry, launch, manager):
    launch()

    registry.send_message_to_client("unknown", "{}")

    assert manager.messages == []


def test_supports_source(registry):
    assert registry.supports_source(source_id())
    assert registry.supports_source("https://google.com/cast#__castAppId__=CC1AD845")
    assert not registry.supports_source("https://example.com")
