"""
PyCastGateway: share one cast session between many web page clients
"""

from .const import *  # noqa: F403
from .error import *  # noqa: F403
from .device import DeviceInfo, DeviceSession, DeviceSessionListener
from .dispatcher import AsyncioDispatcher, Dispatcher, QueueDispatcher
from .media_source import CastMediaSource
from .message_router import MessageRouter
from .models import (
    ClientRecord,
    MediaRoute,
    MediaSink,
    RouteCreated,
    RouteRequestError,
    RouteRequestPending,
)
from .platform import CastPlatform, RouteSelectionListener, SessionManagerListener
from .route_registry import RouteManagerListener, RouteRegistry
from .session_controller import SessionController, SessionControllerListener

__all__ = (
    "__version__",
    "__version_info__",
    "AsyncioDispatcher",
    "CastMediaSource",
    "CastPlatform",
    "ClientRecord",
    "DeviceInfo",
    "DeviceSession",
    "DeviceSessionListener",
    "Dispatcher",
    "MediaRoute",
    "MediaSink",
    "MessageRouter",
    "QueueDispatcher",
    "RouteCreated",
    "RouteManagerListener",
    "RouteRegistry",
    "RouteRequestError",
    "RouteRequestPending",
    "RouteSelectionListener",
    "SessionController",
    "SessionControllerListener",
    "SessionManagerListener",
)
__version_info__ = ("0", "1", "0")
__version__ = ".".join(__version_info__)

