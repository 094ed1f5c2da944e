"""Configuration file discovery and reading for :mod:`pdns_recursor_stats`.

A file named by the caller (``-c`` or ``PDNS_RECURSOR_STATS_CONFIG``) must be
usable: any problem with it is a :class:`ConfigurationError`. The built-in
candidate locations are optional and are skipped when absent or unusable.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol, TextIO, cast

from pdns_recursor_stats.config_loader.models import ConfigurationError
from pdns_recursor_stats.settings import RecursorStatsSettings

__all__ = ["DEFAULT_CANDIDATES", "load_structured_config", "read_config_file"]

LOGGER = logging.getLogger(__name__)

DEFAULT_CANDIDATES: tuple[Path, ...] = (
    Path("/etc/pdns-recursor-stats/config.yml"),
    Path("/etc/pdns-recursor-stats/config.json"),
    Path("config/pdns-recursor-stats.yml"),
    Path("config/pdns-recursor-stats.json"),
)

_YAML_SUFFIXES = frozenset({".yml", ".yaml"})


class YamlModule(Protocol):
    """Protocol describing the subset of PyYAML used by the loader."""

    YAMLError: type[Exception]

    def safe_load(self, stream: TextIO | str) -> object:
        """Parse YAML content from a text stream or string."""


def load_structured_config(
    path: str | None, settings: RecursorStatsSettings
) -> dict[str, object] | None:
    """Return the mapping stored in the configuration file, if any.

    Args:
        path: Explicit configuration path provided by the caller.
        settings: Environment-derived settings naming an alternative path.

    Returns:
        The parsed mapping, or ``None`` when no path was named and none of
        :data:`DEFAULT_CANDIDATES` could be used.

    Raises:
        ConfigurationError: If an explicitly named file is missing,
            unreadable, malformed or not a mapping.
    """

    explicit = path if path is not None else settings.config_path
    if explicit:
        return read_config_file(Path(explicit))

    for candidate in DEFAULT_CANDIDATES:
        if not candidate.exists():
            continue
        try:
            return read_config_file(candidate)
        except ConfigurationError as exc:
            LOGGER.warning(
                "Skipping unusable configuration file",
                extra={"path": str(candidate), "reason": str(exc)},
            )
    return None


def read_config_file(path: Path) -> dict[str, object]:
    """Read a JSON or YAML configuration file chosen by its suffix.

    Raises:
        ConfigurationError: Naming ``path`` and the reason it cannot be used.
    """

    suffix = path.suffix.lower()
    if suffix != ".json" and suffix not in _YAML_SUFFIXES:
        raise ConfigurationError(
            f"{path}: unsupported configuration format {suffix or '(none)'!r}; "
            "use .json, .yml or .yaml"
        )

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"{path}: cannot read configuration: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{path}: invalid JSON: {exc}") from exc
    else:
        data = _parse_yaml(path, text)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping")
    value_dict = cast(dict[object, object], data)
    return {key: item for key, item in value_dict.items() if isinstance(key, str)}


def _parse_yaml(path: Path, text: str) -> object:
    module = _import_yaml_module()
    if module is None:
        raise ConfigurationError(
            f"{path}: YAML configuration requires PyYAML; install "
            "'pdns-recursor-stats[yaml]' or use a .json file"
        )
    try:
        return module.safe_load(text)
    except module.YAMLError as exc:
        raise ConfigurationError(f"{path}: invalid YAML: {exc}") from exc


def _import_yaml_module() -> YamlModule | None:
    """Import PyYAML lazily; it is only required for YAML files."""

    try:
        import yaml
    except ModuleNotFoundError:
        return None
    return cast(YamlModule, yaml)
