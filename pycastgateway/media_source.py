"""
Parsing of cast presentation source ids.

Two forms are understood::

    cast:<APP_ID>?clientId=<id>&autoJoinPolicy=<policy>
    https://google.com/cast#__castAppId__=<APP_ID>(<caps>)/__castClientId__=<id>
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from urllib.parse import parse_qs, unquote, urlsplit

from .const import AUTOJOIN_POLICIES, AUTOJOIN_TAB_AND_ORIGIN_SCOPED

_LOGGER = logging.getLogger(__name__)

CAST_SCHEME = "cast"
LEGACY_CAST_URL_PREFIX = "https://google.com/cast#"

_APP_ID_RE = re.compile(r"^([A-Za-z0-9_]+)(?:\(([^)]*)\))?$")

_LEGACY_APP_ID = "__castAppId__"
_LEGACY_CLIENT_ID = "__castClientId__"
_LEGACY_AUTOJOIN_POLICY = "__castAutoJoinPolicy__"


@dataclass(frozen=True)
class CastMediaSource:
    """A presentation source targeting a cast receiver application."""

    source_id: str
    application_id: str
    client_id: str | None
    auto_join_policy: str
    capabilities: tuple[str, ...] = ()

    @classmethod
    def from_source_id(cls, source_id: str | None) -> CastMediaSource | None:
        """Parses a source id, returns None if it is not a cast source."""
        if not source_id:
            return None

        if source_id.startswith(LEGACY_CAST_URL_PREFIX):
            params = _parse_legacy_fragment(source_id[len(LEGACY_CAST_URL_PREFIX) :])
            app = params.get(_LEGACY_APP_ID)
            client_id = params.get(_LEGACY_CLIENT_ID)
            policy = params.get(_LEGACY_AUTOJOIN_POLICY)
        else:
            parts = urlsplit(source_id)
            if parts.scheme != CAST_SCHEME:
                return None
            query = parse_qs(parts.query)
            app = parts.path
            client_id = query.get("clientId", [None])[0]
            policy = query.get("autoJoinPolicy", [None])[0]

        if not app:
            return None

        match = _APP_ID_RE.match(app)
        if match is None:
            _LOGGER.debug("Invalid application id in source %s", source_id)
            return None

        app_id, caps = match.groups()
        capabilities = tuple(cap for cap in (caps or "").split(",") if cap)

        if policy not in AUTOJOIN_POLICIES:
            policy = AUTOJOIN_TAB_AND_ORIGIN_SCOPED

        return cls(source_id, app_id, client_id or None, policy, capabilities)


def _parse_legacy_fragment(fragment: str) -> dict[str, str]:
    """Splits a '/'-separated list of key=value pairs."""
    params = {}
    for item in fragment.split("/"):
        key, sep, value = item.partition("=")
        if sep:
            params[key] = unquote(value)
    return params
