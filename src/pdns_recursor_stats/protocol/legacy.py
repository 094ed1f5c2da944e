"""Client for the datagram control protocol of Recursor releases before 4.5.

The request is a single text datagram terminated by a newline and the reply
is a single datagram sent back to a socket bound by the client.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from pdns_recursor_stats.protocol.decoder import parse_response
from pdns_recursor_stats.protocol.errors import (
    ConnectionFailure,
    ExchangeTimeout,
    NoDataReceived,
    TransportFailure,
)
from pdns_recursor_stats.protocol.ipc import (
    DEFAULT_SOCKET_DIR,
    DEFAULT_SOCKET_MODE,
    ephemeral_endpoint,
)
from pdns_recursor_stats.protocol.transport import DEFAULT_TIMEOUT, Deadline, send_all

__all__ = ["LegacyControlClient", "RECEIVE_BUFFER_SIZE"]

LOGGER = logging.getLogger(__name__)

RECEIVE_BUFFER_SIZE: Final[int] = 16384


class LegacyControlClient:
    """Query a Recursor control socket using the legacy datagram protocol."""

    def __init__(
        self,
        socket_path: str,
        *,
        socket_dir: str | os.PathLike[str] = DEFAULT_SOCKET_DIR,
        socket_mode: int = DEFAULT_SOCKET_MODE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.socket_path = socket_path
        self.socket_dir = socket_dir
        self.socket_mode = socket_mode
        self.timeout = timeout

    def execute(self, command: str) -> str:
        """Send ``command`` and return the text of the reply datagram.

        Replies longer than :data:`RECEIVE_BUFFER_SIZE` are truncated.

        Raises:
            ConnectionFailure: If the receive socket cannot be set up or the
                control socket cannot be reached.
            TransportFailure: If sending or receiving fails.
            ExchangeTimeout: If the exchange exceeds the timeout.
            NoDataReceived: If the reply datagram is empty.
        """

        with ephemeral_endpoint(self.socket_dir, mode=self.socket_mode) as setup:
            sock = setup.socket
            deadline = Deadline.after(self.timeout, socket_path=self.socket_path)
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

            send_all(sock, f"{command}\n".encode("ascii"), deadline, what="command")

            try:
                deadline.apply(sock)
                data = sock.recv(RECEIVE_BUFFER_SIZE)
            except TimeoutError as exc:
                raise ExchangeTimeout(
                    "timed out waiting for reply", socket_path=self.socket_path
                ) from exc
            except OSError as exc:
                raise TransportFailure(
                    f"failed to read reply: {exc}", socket_path=self.socket_path
                ) from exc

        if not data:
            raise NoDataReceived("no data received", socket_path=self.socket_path)
        if len(data) == RECEIVE_BUFFER_SIZE:
            LOGGER.debug(
                "Reply filled the receive buffer and may be truncated",
                extra={"server": self.socket_path, "bytes": len(data)},
            )
        return data.decode("utf-8", errors="replace")

    def get_all(self) -> dict[str, int]:
        """Fetch and decode every statistics counter."""

        return parse_response(self.execute("get-all"))
