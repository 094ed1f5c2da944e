"""Client for the stream control protocol of Recursor 4.6 and later.

Both directions share one frame layout::

    status: uint32 (the client always sends zero)
    length: size_t in host layout
    data:   byte[length]

The client writes one request frame, reads one reply frame and closes the
connection.
"""

from __future__ import annotations

import logging
import socket

from pdns_recursor_stats.protocol.decoder import parse_response
from pdns_recursor_stats.protocol.errors import (
    ConnectionFailure,
    EmptyResponse,
    ExchangeTimeout,
    IncompleteResponse,
    NoStatusReceived,
    ShortRead,
)
from pdns_recursor_stats.protocol.native import NativeIntCodec
from pdns_recursor_stats.protocol.transport import (
    DEFAULT_TIMEOUT,
    Deadline,
    recv_exactly,
    send_all,
)

__all__ = ["STATUS_SIZE", "V3ControlClient"]

LOGGER = logging.getLogger(__name__)

STATUS_SIZE = 4
_REQUEST_STATUS = bytes(STATUS_SIZE)


class V3ControlClient:
    """Query a Recursor control socket using the length-prefixed protocol."""

    def __init__(
        self,
        socket_path: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        codec: NativeIntCodec | None = None,
    ) -> None:
        self.socket_path = socket_path
        self.timeout = timeout
        self.codec = codec or NativeIntCodec.native()

    def execute(self, command: str) -> str:
        """Send ``command`` and return the reply body as text.

        Raises:
            ConnectionFailure: If the control socket cannot be reached.
            TransportFailure: If sending or receiving fails.
            ExchangeTimeout: If the exchange exceeds the timeout.
            NoStatusReceived: If the peer closes before sending a status.
            ShortRead: If the status or length field is cut short.
            EmptyResponse: If the peer declares a zero-length reply.
            IncompleteResponse: If fewer body bytes arrive than declared.
        """

        payload = command.encode("ascii")
        request = _REQUEST_STATUS + self.codec.encode(len(payload)) + payload
        deadline = Deadline.after(self.timeout, socket_path=self.socket_path)

        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            try:
                deadline.apply(sock)
                sock.connect(self.socket_path)
            except TimeoutError as exc:
                raise ExchangeTimeout(
                    "timed out connecting", socket_path=self.socket_path
                ) from exc
            except OSError as exc:
                raise ConnectionFailure(
                    f"Failed to connect to {self.socket_path}: {exc}",
                    socket_path=self.socket_path,
                ) from exc

            send_all(sock, request, deadline, what="request")

            status_bytes = recv_exactly(sock, STATUS_SIZE, deadline, what="status")
            if not status_bytes:
                raise NoStatusReceived(
                    "no status code received", socket_path=self.socket_path
                )
            if len(status_bytes) != STATUS_SIZE:
                raise ShortRead(
                    f"status code cut short: read {len(status_bytes)} bytes, "
                    f"expected {STATUS_SIZE}",
                    socket_path=self.socket_path,
                )

            length_bytes = recv_exactly(
                sock, self.codec.width, deadline, what="response length"
            )
            try:
                length = self.codec.decode(length_bytes)
            except ShortRead as exc:
                exc.socket_path = self.socket_path
                raise
            if length == 0:
                raise EmptyResponse(
                    "received data length was 0", socket_path=self.socket_path
                )

            body = recv_exactly(sock, length, deadline, what="response")
            if len(body) != length:
                raise IncompleteResponse(
                    f"expected {length} bytes but got {len(body)}",
                    socket_path=self.socket_path,
                )

        status = int.from_bytes(status_bytes, self.codec.byteorder)
        if status != 0:
            LOGGER.warning(
                "Control socket returned non-zero status",
                extra={"server": self.socket_path, "status": status},
            )
        return body.decode("utf-8", errors="replace")

    def get_all(self) -> dict[str, int]:
        """Fetch and decode every statistics counter."""

        return parse_response(self.execute("get-all"))
