"""
Cast gateway constants
"""

MESSAGE_TYPE = "type"
REQUEST_ID = "requestId"
SESSION_ID = "sessionId"

MEDIA_NAMESPACE = "urn:x-cast:com.google.cast.media"

# Default command timeout
REQUEST_TIMEOUT = 10.0

# Sequence number used when no reply is expected by the client
VOID_SEQUENCE_NUMBER = -1
TIMEOUT_IMMEDIATE = 0

# Volume levels closer than this are considered equal
MIN_VOLUME_LEVEL_DELTA = 1e-7

AUTO_JOIN_PRESENTATION_ID = "auto-join"
PRESENTATION_ID_SESSION_ID_PREFIX = "cast-session_"

AUTOJOIN_TAB_AND_ORIGIN_SCOPED = "tab_and_origin_scoped"
AUTOJOIN_ORIGIN_SCOPED = "origin_scoped"
AUTOJOIN_PAGE_SCOPED = "page_scoped"
AUTOJOIN_POLICIES = (
    AUTOJOIN_TAB_AND_ORIGIN_SCOPED,
    AUTOJOIN_ORIGIN_SCOPED,
    AUTOJOIN_PAGE_SCOPED,
)

CAPABILITY_AUDIO_IN = "audio_in"
CAPABILITY_AUDIO_OUT = "audio_out"
CAPABILITY_VIDEO_IN = "video_in"
CAPABILITY_VIDEO_OUT = "video_out"
# Order in which capabilities are reported to clients
CAPABILITIES = (
    CAPABILITY_AUDIO_IN,
    CAPABILITY_AUDIO_OUT,
    CAPABILITY_VIDEO_IN,
    CAPABILITY_VIDEO_OUT,
)

RECEIVER_TYPE = "cast"
TRANSPORT_ID = "web-4"

# Client protocol message types
TYPE_CLIENT_CONNECT = "client_connect"
TYPE_CLIENT_DISCONNECT = "client_disconnect"
TYPE_LEAVE_SESSION = "leave_session"
TYPE_V2_MESSAGE = "v2_message"
TYPE_APP_MESSAGE = "app_message"
TYPE_NEW_SESSION = "new_session"
TYPE_UPDATE_SESSION = "update_session"
TYPE_REMOVE_SESSION = "remove_session"
TYPE_DISCONNECT_SESSION = "disconnect_session"
TYPE_RECEIVER_ACTION = "receiver_action"

RECEIVER_ACTION_CAST = "cast"
RECEIVER_ACTION_STOP = "stop"

# Device protocol message types
TYPE_STOP = "STOP"
TYPE_SET_VOLUME = "SET_VOLUME"
TYPE_GET_STATUS = "GET_STATUS"
TYPE_MEDIA_STATUS = "MEDIA_STATUS"

MEDIA_MESSAGE_TYPES = (
    "PLAY",
    "LOAD",
    "PAUSE",
    "SEEK",
    "STOP_MEDIA",
    "MEDIA_SET_VOLUME",
    "MEDIA_GET_STATUS",
    "EDIT_TRACKS_INFO",
    "QUEUE_LOAD",
    "QUEUE_INSERT",
    "QUEUE_UPDATE",
    "QUEUE_REMOVE",
    "QUEUE_REORDER",
)

# Some media types are prefixed or suffixed by the client because the same
# name exists in several namespaces.
MEDIA_OVERLOADED_MESSAGE_TYPES = {
    "STOP_MEDIA": TYPE_STOP,
    "MEDIA_SET_VOLUME": TYPE_SET_VOLUME,
    "MEDIA_GET_STATUS": TYPE_GET_STATUS,
}

# Bit n of supportedMediaCommands maps to MEDIA_SUPPORTED_COMMANDS[n]
MEDIA_SUPPORTED_COMMANDS = ("pause", "seek", "stream_volume", "stream_mute")

ROUTE_ID_PREFIX = "urn:x-org.chromium:media:route:"
