"""Command-line arguments."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class Args:
    """Options chosen on the command line."""

    interface: str
    filter: str
    interval: int = 1
    duration: int | None = None
    payload_only: bool = False
    smoothing: int = 3


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid digit found in string: '{text}'") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"value must not be negative: '{text}'")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcpgraph",
        description="A terminal-based network bandwidth monitor",
    )
    parser.add_argument("-i", "--interface", required=True, help="Network interface to monitor")
    parser.add_argument("-f", "--filter", required=True, help="PCAP filter expression")
    parser.add_argument(
        "--interval", type=_non_negative_int, default=1, help="Graph update interval in seconds"
    )
    parser.add_argument(
        "--duration", type=_non_negative_int, default=None, help="Total monitoring duration in seconds"
    )
    parser.add_argument(
        "--payload-only",
        action="store_true",
        help="Count only payload data (excludes headers) for more accurate application-layer bandwidth",
    )
    parser.add_argument(
        "--smoothing",
        type=_non_negative_int,
        default=3,
        help="Number of samples to use for smoothing bandwidth calculations (reduces spikes)",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Args:
    """Parse command-line arguments; exits with status 2 on bad usage."""
    namespace = _build_parser().parse_args(argv)
    return Args(
        interface=namespace.interface,
        filter=namespace.filter,
        interval=namespace.interval,
        duration=namespace.duration,
        payload_only=namespace.payload_only,
        smoothing=namespace.smoothing,
    )