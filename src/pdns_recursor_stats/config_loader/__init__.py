"""Public entry points for the :mod:`pdns_recursor_stats` configuration loader."""

from __future__ import annotations

from typing import Final

from pdns_recursor_stats.config_loader.models import (
    DEFAULT_CONTROL_SOCKET,
    CollectorConfig,
    ProtocolVersion,
    ServerTarget,
)
from pdns_recursor_stats.config_loader.parsing import (
    ConfigurationError,
    apply_environment_overrides,
    apply_structured_overrides,
    parse_protocol,
    parse_socket_mode,
)
from pdns_recursor_stats.config_loader.sources import load_structured_config
from pdns_recursor_stats.settings import RecursorStatsSettings, get_settings

__all__ = [
    "DEFAULT_CONTROL_SOCKET",
    "SAMPLE_CONFIG",
    "CollectorConfig",
    "ConfigurationError",
    "ProtocolVersion",
    "ServerTarget",
    "load_config",
    "parse_protocol",
    "parse_socket_mode",
]

SAMPLE_CONFIG: Final[str] = """\
# Paths to the Recursor control sockets. Entries may also be mappings with
# "path" and optional "protocol", "socket_dir" and "socket_mode" keys.
unix_sockets:
  - /var/run/pdns_recursor.controlsocket

# Directory to create receive sockets in (legacy protocol only). The default
# is usually not writable by an unprivileged user; point it at a directory
# shared with the Recursor, e.g. /var/run/pdns-recursor-stats/.
# socket_dir: /var/run/

# Permissions for the receive socket (legacy protocol only).
# socket_mode: "0666"

# Set to true when running PowerDNS Recursor 4.6.0 or newer.
# new_control_protocol: false

# Deadline in seconds for one control socket exchange.
# timeout: 5
"""


def load_config(
    path: str | None = None, *, settings: RecursorStatsSettings | None = None
) -> CollectorConfig:
    """Load configuration from environment and optional file sources.

    Args:
        path: Optional explicit path to a configuration file. When omitted the
            loader inspects the environment and default search locations.
        settings: Optional pre-instantiated environment settings. When omitted
            :func:`pdns_recursor_stats.settings.get_settings` is used.

    Returns:
        Fully populated :class:`CollectorConfig` instance.

    Raises:
        ConfigurationError: If a configured value cannot be interpreted.
    """

    env_settings = settings or get_settings()
    base = apply_environment_overrides(CollectorConfig(), env_settings)
    structured = load_structured_config(path, env_settings)
    if structured is None:
        return base
    return apply_structured_overrides(base, structured)
