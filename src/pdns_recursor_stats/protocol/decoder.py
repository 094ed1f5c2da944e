"""Decoding of ``get-all`` replies into integer counters."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Final

from pdns_recursor_stats.protocol.errors import DecodeSkipped

__all__ = ["DecodedResponse", "decode_response", "parse_response"]

LOGGER = logging.getLogger(__name__)

_INT64_MIN: Final[int] = -(2**63)
_INT64_MAX: Final[int] = 2**63 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")


@dataclass(slots=True)
class DecodedResponse:
    """Fields decoded from a reply plus diagnostics for skipped lines."""

    fields: dict[str, int] = field(default_factory=dict)
    skipped: list[DecodeSkipped] = field(default_factory=list)


def decode_response(text: str) -> DecodedResponse:
    """Decode ``name<TAB>value`` lines into a mapping of counters.

    The segment after the last line break is never treated as data: it is
    either empty or an unterminated, possibly truncated, line.

    Args:
        text: Reply text received from the Recursor.

    Returns:
        Decoded fields (later duplicates overwrite earlier ones) and one
        :class:`DecodeSkipped` entry per line whose value was not a signed
        64-bit integer.
    """

    result = DecodedResponse()
    lines = text.split("\n")
    for line in lines[:-1]:
        parts = line.split("\t")
        if len(parts) < 2:
            continue

        name, raw_value = parts[0], parts[1]
        value = _parse_int64(raw_value)
        if value is None:
            skipped = DecodeSkipped(
                line=line, reason=f"invalid signed 64-bit integer {raw_value!r}"
            )
            result.skipped.append(skipped)
            LOGGER.warning(
                "Error parsing integer for metric",
                extra={"metric_line": line, "reason": skipped.reason},
            )
            continue

        result.fields[name] = value
    return result


def parse_response(text: str) -> dict[str, int]:
    """Return only the decoded fields of ``text``."""

    return decode_response(text).fields


def _parse_int64(raw: str) -> int | None:
    if not _DECIMAL.fullmatch(raw):
        return None
    value = int(raw)
    if value < _INT64_MIN or value > _INT64_MAX:
        return None
    return value
