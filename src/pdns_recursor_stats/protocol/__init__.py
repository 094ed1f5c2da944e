"""Wire protocols spoken over the PowerDNS Recursor control socket."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__all__ = [
    "DecodedResponse",
    "LegacyControlClient",
    "NativeIntCodec",
    "V3ControlClient",
    "decode_response",
    "parse_response",
]

if TYPE_CHECKING:
    from .decoder import DecodedResponse, decode_response, parse_response
    from .legacy import LegacyControlClient
    from .native import NativeIntCodec
    from .v3 import V3ControlClient


def __getattr__(name: str) -> Any:
    """Lazily resolve protocol symbols."""

    module_map = {
        "DecodedResponse": "decoder",
        "decode_response": "decoder",
        "parse_response": "decoder",
        "LegacyControlClient": "legacy",
        "NativeIntCodec": "native",
        "V3ControlClient": "v3",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)
