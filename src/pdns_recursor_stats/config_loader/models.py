"""Typed configuration dataclasses for :mod:`pdns_recursor_stats.config_loader`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

from pdns_recursor_stats.protocol.ipc import DEFAULT_SOCKET_DIR, DEFAULT_SOCKET_MODE
from pdns_recursor_stats.protocol.transport import DEFAULT_TIMEOUT

ProtocolVersion = Literal["legacy", "v3"]

DEFAULT_CONTROL_SOCKET: Final[str] = "/var/run/pdns_recursor.controlsocket"


class ConfigurationError(ValueError):
    """Raised when a configuration value or file cannot be interpreted."""


@dataclass(frozen=True, slots=True)
class ServerTarget:
    """One Recursor instance to query.

    Attributes:
        socket_path: Path to the Recursor control socket.
        protocol: Control protocol spoken by the Recursor; ``None`` defers to
            the collector-wide setting.
        socket_dir: Receive socket directory override (legacy protocol only).
        socket_mode: Receive socket permission override (legacy protocol only).
    """

    socket_path: str
    protocol: ProtocolVersion | None = None
    socket_dir: str | None = None
    socket_mode: int | None = None


@dataclass(slots=True)
class CollectorConfig:
    """Strongly typed configuration container for the collector."""

    targets: tuple[ServerTarget, ...] = ()
    socket_dir: str = DEFAULT_SOCKET_DIR
    socket_mode: int = DEFAULT_SOCKET_MODE
    protocol: ProtocolVersion = "legacy"
    timeout: float = DEFAULT_TIMEOUT

    def resolved_targets(self) -> tuple[ServerTarget, ...]:
        """Return targets with every override filled in.

        When no target is configured a single target at
        :data:`DEFAULT_CONTROL_SOCKET` is returned.
        """

        targets = self.targets or (
            ServerTarget(socket_path=DEFAULT_CONTROL_SOCKET),
        )
        return tuple(
            ServerTarget(
                socket_path=target.socket_path,
                protocol=target.protocol or self.protocol,
                socket_dir=(
                    target.socket_dir
                    if target.socket_dir is not None
                    else self.socket_dir
                ),
                socket_mode=(
                    target.socket_mode
                    if target.socket_mode is not None
                    else self.socket_mode
                ),
            )
            for target in targets
        )
