"""Ephemeral Unix datagram endpoints used to receive legacy replies."""

from __future__ import annotations

import logging
import os
import random
import socket
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from pdns_recursor_stats.protocol.errors import ConnectionFailure

__all__ = [
    "DEFAULT_SOCKET_DIR",
    "DEFAULT_SOCKET_MODE",
    "RECEIVE_SOCKET_PREFIX",
    "SocketSetup",
    "bind_receive_socket",
    "cleanup_unix_socket",
    "ephemeral_endpoint",
    "receive_socket_path",
]

DEFAULT_SOCKET_DIR: Final[str] = "/var/run/"
DEFAULT_SOCKET_MODE: Final[int] = 0o666
RECEIVE_SOCKET_PREFIX: Final[str] = "pdns_recursor_stats"
AF_UNIX: Final[int | None] = getattr(socket, "AF_UNIX", None)

LOGGER = logging.getLogger(__name__)

_random = random.SystemRandom()


@dataclass(slots=True)
class SocketSetup:
    """Bundle describing the socket and its filesystem path."""

    socket: socket.socket
    path: Path


def receive_socket_path(directory: str | os.PathLike[str]) -> Path:
    """Return a fresh, randomized receive socket path inside ``directory``."""

    return Path(directory) / f"{RECEIVE_SOCKET_PREFIX}{_random.getrandbits(63)}"


def bind_receive_socket(
    directory: str | os.PathLike[str],
    *,
    mode: int = DEFAULT_SOCKET_MODE,
) -> SocketSetup:
    """Bind a datagram socket the Recursor can send its reply to.

    The socket node is chmod-ed to ``mode`` so a Recursor running as a
    different user is still allowed to write to it.

    Args:
        directory: Directory in which the socket node is created.
        mode: Filesystem permissions applied to the socket node.

    Returns:
        A :class:`SocketSetup` containing the bound socket.

    Raises:
        ConnectionFailure: If the socket cannot be created, bound or chmod-ed.
    """

    if AF_UNIX is None:  # pragma: no cover - platform guard
        raise ConnectionFailure(
            "Unix domain sockets are not supported on this platform"
        )

    path = receive_socket_path(directory)
    try:
        sock = socket.socket(AF_UNIX, socket.SOCK_DGRAM)
    except OSError as exc:  # pragma: no cover - system-level error
        raise ConnectionFailure(f"Failed to create receive socket: {exc}") from exc

    try:
        sock.bind(str(path))
    except OSError as exc:
        sock.close()
        raise ConnectionFailure(f"Failed to bind receive socket {path}: {exc}") from exc

    setup = SocketSetup(socket=sock, path=path)
    try:
        os.chmod(path, mode)
    except OSError as exc:
        cleanup_unix_socket(setup)
        raise ConnectionFailure(f"Failed to chmod {path}: {exc}") from exc

    return setup


def cleanup_unix_socket(setup: SocketSetup) -> None:
    """Close the socket and remove its filesystem node if it exists.

    A node that cannot be removed is logged and left behind; it never
    replaces the outcome of the exchange that used it.

    Args:
        setup: Bundle describing the socket endpoint to clean up.
    """

    setup.socket.close()
    try:
        setup.path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        LOGGER.warning(
            "Failed to remove receive socket",
            extra={"path": str(setup.path), "error": str(exc)},
        )


@contextmanager
def ephemeral_endpoint(
    directory: str | os.PathLike[str],
    *,
    mode: int = DEFAULT_SOCKET_MODE,
) -> Iterator[SocketSetup]:
    """Yield a bound receive socket that is removed on every exit path."""

    setup = bind_receive_socket(directory, mode=mode)
    try:
        yield setup
    finally:
        cleanup_unix_socket(setup)
