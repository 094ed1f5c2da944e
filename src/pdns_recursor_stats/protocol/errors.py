"""Exception taxonomy for the Recursor control socket protocols."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "ConnectionFailure",
    "DecodeSkipped",
    "EmptyResponse",
    "ExchangeTimeout",
    "IncompleteResponse",
    "NoDataReceived",
    "NoStatusReceived",
    "ProtocolViolation",
    "RecursorControlError",
    "ShortRead",
    "TransportFailure",
    "UnsupportedPlatform",
]


class RecursorControlError(RuntimeError):
    """Base class for failures of a single control socket exchange."""

    def __init__(self, message: str, *, socket_path: str | None = None) -> None:
        super().__init__(message)
        self.socket_path = socket_path

    @property
    def kind(self) -> str:
        """Return the failure kind reported alongside the target."""

        return type(self).__name__


class ConnectionFailure(RecursorControlError):
    """Raised when the local endpoint cannot be set up or the peer dialled."""


class TransportFailure(RecursorControlError):
    """Raised when writing to or reading from the socket fails."""


class ExchangeTimeout(RecursorControlError):
    """Raised when the exchange deadline expires."""


class ProtocolViolation(RecursorControlError):
    """Raised when the peer's reply does not follow the framing rules."""


class NoDataReceived(ProtocolViolation):
    """Raised when the legacy peer replies with an empty datagram."""


class NoStatusReceived(ProtocolViolation):
    """Raised when the stream peer closes before sending a status code."""


class EmptyResponse(ProtocolViolation):
    """Raised when the stream peer declares a zero-length response."""


class IncompleteResponse(ProtocolViolation):
    """Raised when fewer body bytes arrive than the peer declared."""


class ShortRead(ProtocolViolation):
    """Raised when a fixed-width field is cut short."""


class UnsupportedPlatform(RecursorControlError):
    """Raised when the native ``size_t`` width is neither 4 nor 8 bytes."""


@dataclass(frozen=True, slots=True)
class DecodeSkipped:
    """Diagnostic describing a metric line that could not be decoded."""

    line: str
    reason: str
