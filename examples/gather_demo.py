"""Collect Recursor statistics once and print a short summary.

Usage:
    python examples/gather_demo.py /var/run/pdns-recursor/pdns_recursor.controlsocket --v3
"""

from __future__ import annotations

import argparse

from pdns_recursor_stats.collector import CollectingSink, gather
from pdns_recursor_stats.config_loader import ServerTarget


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("sockets", nargs="+", help="Recursor control sockets")
    parser.add_argument("--v3", action="store_true", help="Use the v3 protocol")
    parser.add_argument("--socket-dir", default="/tmp", help="Receive socket directory")
    args = parser.parse_args()

    targets = [
        ServerTarget(
            socket_path=path,
            protocol="v3" if args.v3 else "legacy",
            socket_dir=args.socket_dir,
        )
        for path in args.sockets
    ]
    sink = CollectingSink()
    gather(targets, sink)

    for record in sink.records:
        server = record.tags["server"]
        print(f"{server}: {len(record.fields)} counters")
        for name in ("questions", "cache-hits", "cache-misses", "all-outqueries"):
            if name in record.fields:
                print(f"  {name:<16} {record.fields[name]}")
    for failure in sink.failures:
        print(f"{failure.target.socket_path}: {failure.kind}: {failure.error}")


if __name__ == "__main__":
    main()
