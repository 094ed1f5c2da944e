"""Tests for the legacy datagram control protocol client."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

import pytest

from conftest import SAMPLE_REPLY
from pdns_recursor_stats.protocol import ipc
from pdns_recursor_stats.protocol.errors import (
    ConnectionFailure,
    ExchangeTimeout,
    NoDataReceived,
    ProtocolViolation,
)
from pdns_recursor_stats.protocol.legacy import RECEIVE_BUFFER_SIZE, LegacyControlClient


def test_get_all_decodes_reply(datagram_peer, socket_dir: Path) -> None:
    """The client sends a newline-terminated command and decodes the reply."""

    peer = datagram_peer(SAMPLE_REPLY.encode("ascii"))
    client = LegacyControlClient(str(peer.path), socket_dir=socket_dir)

    fields = client.get_all()

    assert fields == {
        "all-outqueries": 3591,
        "answers0-1": 42,
        "concurrent-queries": 0,
    }
    peer.close()
    assert peer.requests == [b"get-all\n"]
    assert os.listdir(socket_dir) == []


def test_zero_length_reply_fails_and_cleans_up(
    datagram_peer, socket_dir: Path
) -> None:
    """An empty datagram is a protocol violation and the endpoint is removed."""

    peer = datagram_peer(b"")
    client = LegacyControlClient(str(peer.path), socket_dir=socket_dir)

    with pytest.raises(NoDataReceived) as excinfo:
        client.get_all()

    assert isinstance(excinfo.value, ProtocolViolation)
    assert excinfo.value.socket_path == str(peer.path)
    assert os.listdir(socket_dir) == []


def test_missing_control_socket(server_dir: Path, socket_dir: Path) -> None:
    """Dialling a socket that does not exist is a connection failure."""

    client = LegacyControlClient(str(server_dir / "absent"), socket_dir=socket_dir)

    with pytest.raises(ConnectionFailure):
        client.get_all()
    assert os.listdir(socket_dir) == []


def test_missing_socket_dir(server_dir: Path) -> None:
    """A receive directory that does not exist fails before any I/O."""

    client = LegacyControlClient(
        str(server_dir / "ctl"), socket_dir=server_dir / "missing" / "dir"
    )

    with pytest.raises(ConnectionFailure):
        client.get_all()


def test_silent_peer_times_out(datagram_peer, socket_dir: Path) -> None:
    peer = datagram_peer(None)
    client = LegacyControlClient(str(peer.path), socket_dir=socket_dir, timeout=0.2)

    with pytest.raises(ExchangeTimeout):
        client.get_all()
    assert os.listdir(socket_dir) == []


def test_receive_socket_mode_is_applied(socket_dir: Path) -> None:
    """The receive socket node carries the configured permission bits."""

    with ipc.ephemeral_endpoint(socket_dir, mode=0o640) as setup:
        assert setup.path.parent == socket_dir
        assert setup.path.name.startswith(ipc.RECEIVE_SOCKET_PREFIX)
        assert stat.S_IMODE(os.stat(setup.path).st_mode) == 0o640
    assert not setup.path.exists()


def test_endpoint_removed_when_body_raises(socket_dir: Path) -> None:
    with pytest.raises(RuntimeError):
        with ipc.ephemeral_endpoint(socket_dir) as setup:
            raise RuntimeError("boom")
    assert not setup.path.exists()


def test_receive_socket_paths_are_unique(socket_dir: Path) -> None:
    paths = {ipc.receive_socket_path(socket_dir) for _ in range(100)}
    assert len(paths) == 100


def test_cleanup_is_idempotent(socket_dir: Path) -> None:
    setup = ipc.bind_receive_socket(socket_dir)
    ipc.cleanup_unix_socket(setup)
    ipc.cleanup_unix_socket(setup)
    assert not setup.path.exists()


def test_reply_larger_than_receive_buffer(
    datagram_peer, socket_dir: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Only the first buffer's worth of a reply is read and the cut line is dropped."""

    reply = "".join(f"m{i:05d}\t1\n" for i in range(2000)).encode("ascii")
    assert len(reply) > RECEIVE_BUFFER_SIZE
    peer = datagram_peer(reply)
    client = LegacyControlClient(str(peer.path), socket_dir=socket_dir)

    with caplog.at_level(logging.DEBUG, logger="pdns_recursor_stats.protocol.legacy"):
        fields = client.get_all()

    complete_lines = RECEIVE_BUFFER_SIZE // len("m00000\t1\n")
    assert list(fields) == [f"m{i:05d}" for i in range(complete_lines)]
    assert f"m{complete_lines:05d}" not in fields
    assert "may be truncated" in caplog.text


def test_cleanup_failure_does_not_mask_reply(
    datagram_peer,
    socket_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A receive socket that cannot be unlinked is logged, not raised."""

    original_unlink = Path.unlink

    def refuse_receive_socket(self: Path, missing_ok: bool = False) -> None:
        if self.name.startswith(ipc.RECEIVE_SOCKET_PREFIX):
            raise PermissionError(13, "Permission denied", str(self))
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", refuse_receive_socket)
    peer = datagram_peer(b"cache-hits\t10\n")
    client = LegacyControlClient(str(peer.path), socket_dir=socket_dir)

    with caplog.at_level(logging.WARNING, logger="pdns_recursor_stats.protocol.ipc"):
        assert client.get_all() == {"cache-hits": 10}

    assert "Failed to remove receive socket" in caplog.text
    [leftover] = os.listdir(socket_dir)
    assert leftover.startswith(ipc.RECEIVE_SOCKET_PREFIX)
