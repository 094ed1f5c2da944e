"""Environment-backed settings primitives for :mod:`pdns_recursor_stats`."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["RecursorStatsSettings", "get_settings"]


class RecursorStatsSettings(BaseSettings):
    """Expose environment-derived configuration knobs for the collector.

    All attributes correspond to documented environment variables and default
    to ``None`` when the variable is not present, so that file-based
    configuration and built-in defaults can take over.

    Attributes:
        config_path: Explicit path to the configuration file.
        unix_sockets: Comma separated list of control socket paths.
        socket_dir: Directory in which legacy receive sockets are created.
        socket_mode: Octal permission string applied to receive sockets.
        new_control_protocol: Whether to speak the v3 stream protocol.
        timeout: Deadline in seconds for one control socket exchange.
    """

    config_path: str | None = Field(default=None, alias="PDNS_RECURSOR_STATS_CONFIG")
    unix_sockets: str | None = Field(default=None, alias="PDNS_RECURSOR_UNIX_SOCKETS")
    socket_dir: str | None = Field(default=None, alias="PDNS_RECURSOR_SOCKET_DIR")
    socket_mode: str | None = Field(default=None, alias="PDNS_RECURSOR_SOCKET_MODE")
    new_control_protocol: bool | None = Field(
        default=None, alias="PDNS_RECURSOR_NEW_CONTROL_PROTOCOL"
    )
    timeout: float | None = Field(default=None, alias="PDNS_RECURSOR_TIMEOUT")

    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_optional_float(cls, value: object) -> float | None:
        """Parse the timeout while tolerating malformed input.

        Args:
            value: Raw environment value.

        Returns:
            Parsed positive float when conversion succeeds, otherwise ``None``.
        """

        if value is None:
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

    @property
    def socket_paths(self) -> tuple[str, ...]:
        """Return the configured socket paths split on commas."""

        if not self.unix_sockets:
            return ()
        return tuple(
            item.strip() for item in self.unix_sockets.split(",") if item.strip()
        )


def get_settings() -> RecursorStatsSettings:
    """Return a :class:`RecursorStatsSettings` instance.

    Returns:
        Settings parsed from environment variables.
    """

    return RecursorStatsSettings()
