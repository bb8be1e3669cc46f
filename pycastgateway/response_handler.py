"""Helpers and types related to matching device responses to client requests."""

from __future__ import annotations

from collections.abc import Callable
import logging
import time

from .const import REQUEST_TIMEOUT
from .models import RequestRecord

CallbackType = Callable[[bool, dict | None], None]
"""Signature of optional callback functions supported by methods sending messages.

The callback function will be called with a bool indicating if the message was sent
and an optional response dict.
"""

_LOGGER = logging.getLogger(__name__)


class RequestIdGenerator:
    """Generates request ids for messages sent to the device."""

    def __init__(self, start: int = 0) -> None:
        self._request_id = start

    def next_request_id(self) -> int:
        """Generates a unique request id."""
        self._request_id += 1

        return self._request_id


class RequestTable:
    """
    Open requests keyed by device request id.

    Records older than timeout are dropped before any lookup so a response
    which never arrived can't be matched to an unrelated later request.

    :param timeout: Seconds a record is kept, None for the default of
                    REQUEST_TIMEOUT.
    :param clock: Monotonic time source, in seconds.
    """

    def __init__(
        self,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = REQUEST_TIMEOUT if timeout is None else timeout
        self._clock = clock
        self._requests: dict[int, tuple[RequestRecord, float]] = {}

    def __len__(self) -> int:
        self.expire()
        return len(self._requests)

    def __contains__(self, request_id: object) -> bool:
        self.expire()
        return request_id in self._requests

    def add(self, request_id: int, record: RequestRecord) -> None:
        """Opens a request, replacing any record with the same id."""
        self.expire()
        if request_id in self._requests:
            _LOGGER.warning("Replacing open request %d", request_id)
        self._requests[request_id] = (record, self._clock() + self.timeout)

    def pop(self, request_id: int) -> RequestRecord | None:
        """Removes and returns the record for request_id, if any."""
        self.expire()
        entry = self._requests.pop(request_id, None)
        return entry[0] if entry else None

    def expire(self) -> list[RequestRecord]:
        """Drops all records past their deadline and returns them."""
        now = self._clock()
        expired = [
            request_id
            for request_id, (_, deadline) in self._requests.items()
            if deadline <= now
        ]
        records = []
        for request_id in expired:
            record, _ = self._requests.pop(request_id)
            _LOGGER.warning(
                "Request %d from client %s (sequence number %d) timed out",
                request_id,
                record.client_id,
                record.sequence_number,
            )
            records.append(record)
        return records

    def clear(self) -> None:
        """Drops all open records."""
        self._requests.clear()
