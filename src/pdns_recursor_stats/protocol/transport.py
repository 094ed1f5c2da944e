"""Blocking socket helpers sharing one absolute deadline per exchange."""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass

from pdns_recursor_stats.protocol.errors import ExchangeTimeout, TransportFailure

__all__ = ["DEFAULT_TIMEOUT", "Deadline", "recv_exactly", "send_all"]

DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True, slots=True)
class Deadline:
    """Absolute point in time after which an exchange is abandoned."""

    expires_at: float
    socket_path: str | None = None

    @classmethod
    def after(cls, seconds: float, *, socket_path: str | None = None) -> Deadline:
        """Return a deadline ``seconds`` from now on the monotonic clock."""

        return cls(expires_at=time.monotonic() + seconds, socket_path=socket_path)

    def remaining(self) -> float:
        """Return the seconds left before expiry.

        Raises:
            ExchangeTimeout: If the deadline has already passed.
        """

        left = self.expires_at - time.monotonic()
        if left <= 0:
            raise ExchangeTimeout(
                "deadline exceeded", socket_path=self.socket_path
            )
        return left

    def apply(self, sock: socket.socket) -> None:
        """Set the socket timeout to the time left before the deadline."""

        sock.settimeout(self.remaining())


def send_all(
    sock: socket.socket, payload: bytes, deadline: Deadline, *, what: str
) -> None:
    """Send ``payload`` completely before ``deadline``.

    Args:
        sock: Connected socket.
        payload: Bytes to send.
        deadline: Exchange deadline.
        what: Short description of the payload used in error messages.
    """

    try:
        deadline.apply(sock)
        sock.sendall(payload)
    except TimeoutError as exc:
        raise ExchangeTimeout(
            f"timed out writing {what}", socket_path=deadline.socket_path
        ) from exc
    except OSError as exc:
        raise TransportFailure(
            f"failed to write {what}: {exc}", socket_path=deadline.socket_path
        ) from exc


def recv_exactly(
    sock: socket.socket, size: int, deadline: Deadline, *, what: str
) -> bytes:
    """Read up to ``size`` bytes, stopping early only at end of stream.

    Callers compare the length of the result against ``size`` to detect a
    peer that closed the connection early.
    """

    buffer = bytearray()
    try:
        while len(buffer) < size:
            deadline.apply(sock)
            chunk = sock.recv(min(size - len(buffer), 65536))
            if not chunk:
                break
            buffer.extend(chunk)
    except TimeoutError as exc:
        raise ExchangeTimeout(
            f"timed out reading {what}", socket_path=deadline.socket_path
        ) from exc
    except OSError as exc:
        raise TransportFailure(
            f"failed to read {what}: {exc}", socket_path=deadline.socket_path
        ) from exc
    return bytes(buffer)
