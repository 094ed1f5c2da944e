"""Host-dependent integer codec used for v3 length fields.

The Recursor frames its control messages with a C ``size_t`` written in host
byte order, so the width and byte order of the length field depend on the
platform the Recursor was built for. This module recreates that layout from
the platform running the client. A client and a Recursor built for different
word sizes or byte orders (for example i386 against amd64) cannot talk to each
other through this codec; that pairing is unsupported.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Final, Literal

from pdns_recursor_stats.protocol.errors import ShortRead, UnsupportedPlatform

__all__ = [
    "ByteOrder",
    "NativeIntCodec",
    "decode_length",
    "detect_byteorder",
    "encode_length",
    "native_width",
]

ByteOrder = Literal["little", "big"]

_SUPPORTED_WIDTHS: Final[dict[int, str]] = {4: "I", 8: "Q"}
_BYTEORDER_PREFIX: Final[dict[str, str]] = {"little": "<", "big": ">"}
_PROBE: Final[int] = 0x0001


def native_width() -> int:
    """Return the width in bytes of the platform ``size_t``."""

    return struct.calcsize("N")


def detect_byteorder() -> ByteOrder:
    """Detect the host byte order by inspecting a packed 16-bit probe."""

    probe = struct.pack("=H", _PROBE)
    if probe[0] == 1:
        return "little"
    return "big"


@dataclass(frozen=True, slots=True)
class NativeIntCodec:
    """Encode and decode unsigned lengths of a fixed width and byte order."""

    width: int
    byteorder: ByteOrder

    def __post_init__(self) -> None:
        if self.width not in _SUPPORTED_WIDTHS:
            raise UnsupportedPlatform(
                f"unsupported system configuration: native integer width "
                f"{self.width} is neither 4 nor 8 bytes"
            )
        if self.byteorder not in _BYTEORDER_PREFIX:
            raise ValueError(f"Unknown byte order: {self.byteorder!r}")

    @classmethod
    def native(cls) -> NativeIntCodec:
        """Return the codec matching the platform running this process."""

        return cls(width=native_width(), byteorder=detect_byteorder())

    @property
    def _format(self) -> str:
        return _BYTEORDER_PREFIX[self.byteorder] + _SUPPORTED_WIDTHS[self.width]

    def encode(self, value: int) -> bytes:
        """Encode ``value`` as an unsigned integer of ``width`` bytes.

        Raises:
            ValueError: If ``value`` does not fit the unsigned range.
        """

        try:
            return struct.pack(self._format, value)
        except struct.error as exc:
            raise ValueError(
                f"Length {value} does not fit a {self.width}-byte unsigned integer"
            ) from exc

    def decode(self, data: bytes) -> int:
        """Decode the leading ``width`` bytes of ``data``.

        Raises:
            ShortRead: If fewer than ``width`` bytes are available.
        """

        if len(data) < self.width:
            raise ShortRead(
                f"did not read enough data for native uint: read {len(data)} "
                f"bytes, expected {self.width}"
            )
        (value,) = struct.unpack_from(self._format, data)
        return int(value)


def encode_length(value: int) -> bytes:
    """Encode ``value`` the way the local platform lays out a ``size_t``."""

    return NativeIntCodec.native().encode(value)


def decode_length(data: bytes) -> int:
    """Decode a ``size_t`` written in the local platform's layout."""

    return NativeIntCodec.native().decode(data)

