"""Parsing and transformation helpers for :mod:`pdns_recursor_stats.config_loader`."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import cast

from pdns_recursor_stats.config_loader.models import (
    CollectorConfig,
    ConfigurationError,
    ProtocolVersion,
    ServerTarget,
)
from pdns_recursor_stats.settings import RecursorStatsSettings

__all__ = [
    "ConfigurationError",
    "apply_environment_overrides",
    "apply_structured_overrides",
    "parse_protocol",
    "parse_socket_mode",
]

_PROTOCOL_ALIASES: dict[str, ProtocolVersion] = {
    "legacy": "legacy",
    "v1": "legacy",
    "v3": "v3",
    "new": "v3",
}


def parse_socket_mode(value: object) -> int:
    """Parse an octal permission string such as ``"0666"``.

    Integers are accepted verbatim.

    Raises:
        ConfigurationError: If the value is not a valid octal permission.
    """

    if isinstance(value, bool):
        raise ConfigurationError(f"could not parse socket_mode: {value!r}")
    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        try:
            mode = int(value.strip(), 8)
        except ValueError as exc:
            raise ConfigurationError(f"could not parse socket_mode: {exc}") from exc
    else:
        raise ConfigurationError(f"could not parse socket_mode: {value!r}")
    if not 0 <= mode <= 0o7777:
        raise ConfigurationError(f"could not parse socket_mode: {value!r}")
    return mode


def parse_protocol(value: object) -> ProtocolVersion:
    """Map a protocol name (``legacy``/``v3`` and aliases) to its flag.

    Raises:
        ConfigurationError: If the protocol name is unknown.
    """

    if isinstance(value, str):
        protocol = _PROTOCOL_ALIASES.get(value.strip().lower())
        if protocol is not None:
            return protocol
    raise ConfigurationError(f"unknown control protocol: {value!r}")


def apply_environment_overrides(
    config: CollectorConfig, settings: RecursorStatsSettings
) -> CollectorConfig:
    """Apply environment-derived overrides to the configuration.

    Args:
        config: Base configuration instance.
        settings: Environment-derived settings.

    Returns:
        Configuration with environment overrides applied.
    """

    updated = config

    if settings.socket_paths:
        updated = replace(
            updated,
            targets=tuple(ServerTarget(socket_path=p) for p in settings.socket_paths),
        )
    if settings.socket_dir:
        updated = replace(updated, socket_dir=settings.socket_dir)
    if settings.socket_mode:
        updated = replace(updated, socket_mode=parse_socket_mode(settings.socket_mode))
    if settings.new_control_protocol is not None:
        updated = replace(
            updated, protocol="v3" if settings.new_control_protocol else "legacy"
        )
    if settings.timeout is not None:
        updated = replace(updated, timeout=settings.timeout)

    return updated


def apply_structured_overrides(
    config: CollectorConfig, data: Mapping[str, object]
) -> CollectorConfig:
    """Apply overrides sourced from structured configuration data.

    Recognised keys are ``unix_sockets``, ``socket_dir``, ``socket_mode``,
    ``new_control_protocol``, ``protocol`` and ``timeout``. Entries of
    ``unix_sockets`` are either socket paths or mappings with a ``path`` key
    and optional per-target ``protocol``, ``socket_dir`` and ``socket_mode``.

    Args:
        config: Base configuration instance.
        data: Mapping parsed from configuration file.

    Returns:
        Configuration updated according to the provided mapping.

    Raises:
        ConfigurationError: If a recognised key holds an invalid value.
    """

    updated = config

    sockets = data.get("unix_sockets")
    if sockets is not None:
        updated = replace(updated, targets=_parse_targets(sockets))

    socket_dir = data.get("socket_dir")
    if isinstance(socket_dir, str) and socket_dir:
        updated = replace(updated, socket_dir=socket_dir)

    socket_mode = data.get("socket_mode")
    if socket_mode not in (None, ""):
        updated = replace(updated, socket_mode=parse_socket_mode(socket_mode))

    new_protocol = data.get("new_control_protocol")
    if isinstance(new_protocol, bool):
        updated = replace(updated, protocol="v3" if new_protocol else "legacy")

    protocol = data.get("protocol")
    if protocol is not None:
        updated = replace(updated, protocol=parse_protocol(protocol))

    timeout = _coerce_positive_float(data.get("timeout"))
    if timeout is not None:
        updated = replace(updated, timeout=timeout)

    return updated


def _parse_targets(value: object) -> tuple[ServerTarget, ...]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise ConfigurationError("unix_sockets must be a list")
    targets: list[ServerTarget] = []
    for entry in value:
        if isinstance(entry, str):
            targets.append(ServerTarget(socket_path=entry))
            continue
        if isinstance(entry, Mapping):
            targets.append(_parse_target_mapping(cast(Mapping[str, object], entry)))
            continue
        raise ConfigurationError(f"invalid unix_sockets entry: {entry!r}")
    return tuple(targets)


def _parse_target_mapping(entry: Mapping[str, object]) -> ServerTarget:
    path = entry.get("path")
    if not isinstance(path, str) or not path:
        raise ConfigurationError(f"unix_sockets entry is missing 'path': {entry!r}")

    protocol = entry.get("protocol")
    socket_dir = entry.get("socket_dir")
    socket_mode = entry.get("socket_mode")
    return ServerTarget(
        socket_path=path,
        protocol=parse_protocol(protocol) if protocol is not None else None,
        socket_dir=socket_dir if isinstance(socket_dir, str) and socket_dir else None,
        socket_mode=(
            parse_socket_mode(socket_mode) if socket_mode not in (None, "") else None
        ),
    )


def _coerce_positive_float(value: object) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return parsed if parsed > 0 else None
