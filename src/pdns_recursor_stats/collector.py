"""Gather statistics from a batch of Recursor control sockets."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Final, Protocol, TextIO

from pdns_recursor_stats.config_loader.models import ServerTarget
from pdns_recursor_stats.protocol.errors import RecursorControlError
from pdns_recursor_stats.protocol.ipc import DEFAULT_SOCKET_DIR, DEFAULT_SOCKET_MODE
from pdns_recursor_stats.protocol.legacy import LegacyControlClient
from pdns_recursor_stats.protocol.transport import DEFAULT_TIMEOUT
from pdns_recursor_stats.protocol.v3 import V3ControlClient

__all__ = [
    "MEASUREMENT",
    "CollectingSink",
    "ControlClient",
    "JsonLinesSink",
    "MetricRecord",
    "MetricSink",
    "TargetFailure",
    "client_for",
    "gather",
    "query_target",
]

LOGGER = logging.getLogger(__name__)

MEASUREMENT: Final[str] = "powerdns_recursor"


@dataclass(frozen=True, slots=True)
class MetricRecord:
    """Counters decoded from one successful query."""

    tags: Mapping[str, str]
    fields: Mapping[str, int]
    measurement: str = MEASUREMENT

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the record."""

        return {
            "measurement": self.measurement,
            "tags": dict(self.tags),
            "fields": dict(self.fields),
        }


@dataclass(frozen=True, slots=True)
class TargetFailure:
    """A failed query together with the target it was issued against."""

    target: ServerTarget
    error: RecursorControlError

    @property
    def kind(self) -> str:
        """Return the failure kind, e.g. ``ConnectionFailure``."""

        return self.error.kind

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the failure."""

        return {
            "server": self.target.socket_path,
            "kind": self.kind,
            "error": str(self.error),
        }


class MetricSink(Protocol):
    """Receiver of decoded records and per-target failures."""

    def add_record(self, record: MetricRecord) -> None:
        """Accept one decoded record."""

    def add_error(self, failure: TargetFailure) -> None:
        """Accept one per-target failure."""


class ControlClient(Protocol):
    """Driver able to fetch every counter from one control socket."""

    def get_all(self) -> dict[str, int]:
        """Return the decoded counters."""


@dataclass(slots=True)
class CollectingSink:
    """Sink that keeps records and failures in memory."""

    records: list[MetricRecord] = field(default_factory=list)
    failures: list[TargetFailure] = field(default_factory=list)

    def add_record(self, record: MetricRecord) -> None:
        self.records.append(record)

    def add_error(self, failure: TargetFailure) -> None:
        self.failures.append(failure)


class JsonLinesSink:
    """Sink writing one JSON document per line.

    Records go to ``stream`` and failures to ``error_stream``.
    """

    def __init__(
        self, stream: TextIO | None = None, error_stream: TextIO | None = None
    ) -> None:
        self._stream = stream or sys.stdout
        self._error_stream = error_stream or sys.stderr

    def add_record(self, record: MetricRecord) -> None:
        self._stream.write(json.dumps(record.to_dict(), separators=(",", ":")) + "\n")
        self._stream.flush()

    def add_error(self, failure: TargetFailure) -> None:
        self._error_stream.write(
            json.dumps(failure.to_dict(), separators=(",", ":")) + "\n"
        )
        self._error_stream.flush()


def client_for(
    target: ServerTarget, *, timeout: float = DEFAULT_TIMEOUT
) -> ControlClient:
    """Return the driver matching the target's protocol flag."""

    if target.protocol == "v3":
        return V3ControlClient(target.socket_path, timeout=timeout)
    return LegacyControlClient(
        target.socket_path,
        socket_dir=target.socket_dir or DEFAULT_SOCKET_DIR,
        socket_mode=(
            target.socket_mode
            if target.socket_mode is not None
            else DEFAULT_SOCKET_MODE
        ),
        timeout=timeout,
    )


def query_target(
    target: ServerTarget, *, timeout: float = DEFAULT_TIMEOUT
) -> MetricRecord:
    """Query one target and tag the decoded counters with its socket path.

    Raises:
        RecursorControlError: If the exchange fails.
    """

    fields = client_for(target, timeout=timeout).get_all()
    return MetricRecord(tags={"server": target.socket_path}, fields=fields)


def gather(
    targets: Iterable[ServerTarget],
    sink: MetricSink,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """Query each target in turn and forward the outcome to ``sink``.

    A failing target is reported through :meth:`MetricSink.add_error` and
    never prevents the remaining targets from being queried.

    Args:
        targets: Targets to query, in order.
        sink: Receiver of records and failures.
        timeout: Deadline in seconds applied to each exchange.

    Returns:
        The number of targets that failed.
    """

    failures = 0
    for target in targets:
        try:
            record = query_target(target, timeout=timeout)
        except RecursorControlError as exc:
            if exc.socket_path is None:
                exc.socket_path = target.socket_path
            failures += 1
            LOGGER.warning(
                "Control socket query failed",
                extra={
                    "server": target.socket_path,
                    "protocol": target.protocol or "legacy",
                    "error_type": exc.kind,
                    "error": str(exc),
                },
            )
            sink.add_error(TargetFailure(target=target, error=exc))
            continue

        LOGGER.debug(
            "Collected control socket statistics",
            extra={"server": target.socket_path, "field_count": len(record.fields)},
        )
        sink.add_record(record)
    return failures
