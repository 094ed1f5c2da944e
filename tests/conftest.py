"""Pytest configuration, fixtures and in-process control socket peers."""

from __future__ import annotations

import os
import shutil
import socket
import sys
import tempfile
import threading
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

# Ensure src/ is on sys.path for tests so the src layout is used during test runs
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from pdns_recursor_stats.protocol.native import NativeIntCodec  # noqa: E402

SAMPLE_REPLY = "all-outqueries\t3591\nanswers0-1\t42\nconcurrent-queries\t0\n"


def _short_tempdir() -> Path:
    # AF_UNIX paths are limited to ~108 bytes, pytest's tmp_path can be longer.
    return Path(tempfile.mkdtemp(prefix="pdns-", dir="/tmp"))


@pytest.fixture
def socket_dir() -> Iterator[Path]:
    """Directory for receive sockets created by the client under test."""

    path = _short_tempdir()
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def server_dir() -> Iterator[Path]:
    """Directory holding the control sockets of fake Recursors."""

    path = _short_tempdir()
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


class DatagramPeer:
    """Fake legacy Recursor answering a single datagram request."""

    def __init__(self, path: Path, reply: bytes | None) -> None:
        self.path = path
        self.reply = reply
        self.requests: list[bytes] = []
        self.sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
        self.sock.bind(str(path))
        self.sock.settimeout(5.0)
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        try:
            data, address = self.sock.recvfrom(4096)
        except OSError:
            return
        self.requests.append(data)
        if self.reply is not None:
            self.sock.sendto(self.reply, address)

    def close(self) -> None:
        self._thread.join(timeout=5.0)
        self.sock.close()


class StreamPeer:
    """Fake v3 Recursor reading one request frame and writing ``reply``.

    When ``reply`` is ``None`` the peer reads the request and stays silent
    until closed.
    """

    def __init__(
        self,
        path: Path,
        reply: bytes | None,
        codec: NativeIntCodec | None = None,
    ) -> None:
        self.path = path
        self.reply = reply
        self.codec = codec or NativeIntCodec.native()
        self.requests: list[tuple[bytes, int, bytes]] = []
        self._release = threading.Event()
        self.sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self.sock.bind(str(path))
        self.sock.listen(1)
        self.sock.settimeout(5.0)
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _recv(self, conn: socket.socket, size: int) -> bytes:
        buffer = b""
        while len(buffer) < size:
            chunk = conn.recv(size - len(buffer))
            if not chunk:
                break
            buffer += chunk
        return buffer

    def _serve(self) -> None:
        try:
            conn, _ = self.sock.accept()
        except OSError:
            return
        with conn:
            conn.settimeout(5.0)
            status = self._recv(conn, 4)
            length = self.codec.decode(self._recv(conn, self.codec.width))
            command = self._recv(conn, length)
            self.requests.append((status, length, command))
            if self.reply is None:
                self._release.wait(5.0)
                return
            conn.sendall(self.reply)

    def close(self) -> None:
        self._release.set()
        self._thread.join(timeout=5.0)
        self.sock.close()


def frame(body: bytes, *, status: int = 0, declared: int | None = None) -> bytes:
    """Build a v3 reply frame in the local platform's layout."""

    codec = NativeIntCodec.native()
    length = len(body) if declared is None else declared
    return (
        status.to_bytes(4, codec.byteorder) + codec.encode(length) + body
    )


@pytest.fixture
def datagram_peer(server_dir: Path) -> Iterator[Callable[..., DatagramPeer]]:
    """Factory starting fake legacy Recursors inside ``server_dir``."""

    peers: list[DatagramPeer] = []

    def _start(reply: bytes | None, name: str = "ctl") -> DatagramPeer:
        peer = DatagramPeer(server_dir / name, reply)
        peers.append(peer)
        return peer

    yield _start
    for peer in peers:
        peer.close()


@pytest.fixture
def stream_peer(server_dir: Path) -> Iterator[Callable[..., StreamPeer]]:
    """Factory starting fake v3 Recursors inside ``server_dir``."""

    peers: list[StreamPeer] = []

    def _start(reply: bytes | None, name: str = "ctl") -> StreamPeer:
        peer = StreamPeer(server_dir / name, reply)
        peers.append(peer)
        return peer

    yield _start
    for peer in peers:
        peer.close()
