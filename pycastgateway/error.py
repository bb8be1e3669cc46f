"""
Errors to be used by PyCastGateway.
"""


class CastGatewayError(Exception):
    """Base error for PyCastGateway."""


class NotConnected(CastGatewayError):
    """
    Raised when a command is invoked while no connected device session
    is attached.
    """


class DeviceSessionError(CastGatewayError):
    """Raised when a device session primitive fails."""


class UnsupportedSource(CastGatewayError):
    """Raised when a media source id can not be handled by the gateway."""


class InvalidClientMessage(CastGatewayError):
    """Raised when a message from a client is malformed."""

    MSG = "Invalid client message: {reason}."

    def __init__(self, reason: str) -> None:
        super().__init__(self.MSG.format(reason=reason))
