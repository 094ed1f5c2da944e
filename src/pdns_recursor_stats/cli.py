"""Command-line entry point for pdns_recursor_stats."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from .collector import JsonLinesSink, gather
from .config_loader import (
    SAMPLE_CONFIG,
    CollectorConfig,
    ConfigurationError,
    ServerTarget,
    load_config,
    parse_socket_mode,
)
from .logging_pipeline import (
    configure_structured_logging,
    detach_queue_handlers,
    shutdown_listeners,
)

PACKAGE_LOGGER = logging.getLogger("pdns_recursor_stats")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdns-recursor-stats",
        description="Read statistics from PowerDNS Recursor control sockets.",
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to a JSON or YAML configuration file.",
    )
    parser.add_argument(
        "--socket",
        "-s",
        action="append",
        dest="sockets",
        metavar="PATH",
        help="Recursor control socket to query. May be repeated.",
    )
    parser.add_argument(
        "--socket-dir",
        help="Directory in which legacy receive sockets are created.",
    )
    parser.add_argument(
        "--socket-mode",
        help="Octal permissions for legacy receive sockets, e.g. 0666.",
    )
    parser.add_argument(
        "--new-control-protocol",
        action="store_true",
        default=None,
        help="Speak the stream protocol of PowerDNS Recursor 4.6.0 or newer.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Deadline in seconds for each control socket exchange.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Verbosity of the JSON log written to stderr.",
    )
    parser.add_argument(
        "--sample-config",
        action="store_true",
        help="Print a sample configuration file and exit.",
    )
    return parser


def _apply_arguments(
    config: CollectorConfig, args: argparse.Namespace
) -> CollectorConfig:
    """Overlay command-line arguments on the loaded configuration."""

    updated = config
    if args.sockets:
        updated = replace(
            updated, targets=tuple(ServerTarget(socket_path=p) for p in args.sockets)
        )
    if args.socket_dir:
        updated = replace(updated, socket_dir=args.socket_dir)
    if args.socket_mode:
        updated = replace(updated, socket_mode=parse_socket_mode(args.socket_mode))
    if args.new_control_protocol:
        updated = replace(updated, protocol="v3")
    if args.timeout is not None:
        if args.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        updated = replace(updated, timeout=args.timeout)
    return updated


def main(argv: list[str] | None = None) -> int:
    """Query the configured Recursors and print one JSON line per record."""

    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:  # pragma: no cover - controlled via tests
        exit_code = int(exc.code) if isinstance(exc.code, int) else 1
        return 0 if exit_code == 0 else 1

    if args.sample_config:
        print(SAMPLE_CONFIG, end="")
        return 0

    try:
        config = _apply_arguments(load_config(args.config), args)
    except ConfigurationError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    previous_level = PACKAGE_LOGGER.level
    listener = configure_structured_logging(
        PACKAGE_LOGGER, level=getattr(logging, args.log_level)
    )
    try:
        failures = gather(
            config.resolved_targets(), JsonLinesSink(), timeout=config.timeout
        )
    finally:
        shutdown_listeners([listener])
        dropped = detach_queue_handlers(PACKAGE_LOGGER)
        PACKAGE_LOGGER.setLevel(previous_level)
        if dropped:
            print(f"{dropped} log records were dropped", file=sys.stderr)

    return 0 if failures == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
