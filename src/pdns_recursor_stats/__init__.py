"""PowerDNS Recursor statistics over the control socket."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__all__ = [
    "CollectingSink",
    "CollectorConfig",
    "LegacyControlClient",
    "MetricRecord",
    "ServerTarget",
    "TargetFailure",
    "V3ControlClient",
    "gather",
    "load_config",
]

if TYPE_CHECKING:
    from .collector import CollectingSink, MetricRecord, TargetFailure, gather
    from .config_loader import CollectorConfig, ServerTarget, load_config
    from .protocol.legacy import LegacyControlClient
    from .protocol.v3 import V3ControlClient


def __getattr__(name: str) -> Any:
    """Lazily import submodules so the protocol layer loads without pydantic."""

    module_map = {
        "CollectingSink": "collector",
        "MetricRecord": "collector",
        "TargetFailure": "collector",
        "gather": "collector",
        "CollectorConfig": "config_loader",
        "ServerTarget": "config_loader",
        "load_config": "config_loader",
        "LegacyControlClient": "protocol.legacy",
        "V3ControlClient": "protocol.v3",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)
