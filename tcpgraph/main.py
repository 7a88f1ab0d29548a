"""Command entry point: validate options, start capture and monitoring, run the dashboard."""

from __future__ import annotations

import curses
import sys
from collections.abc import Sequence

from tcpgraph.bandwidth import start_bandwidth_monitor
from tcpgraph.capture import PacketCapture, list_interfaces
from tcpgraph.cli import Args, parse_args
from tcpgraph.ui import App, run_ui


def validate_interface(interface_name: str) -> None:
    """Raise LookupError, listing what is available, if the interface does not exist."""
    if interface_name == "any":
        return
    try:
        interfaces = list_interfaces()
    except OSError as exc:
        raise OSError(f"Failed to list network interfaces: {exc}") from exc
    if interface_name in interfaces:
        return

    available = ["any (Pseudo-device that captures on all interfaces)"]
    available.extend(f"{name} (No description)" for name in interfaces)
    listing = "\n".join(f"  - {entry}" for entry in available)
    raise LookupError(f"Interface '{interface_name}' not found.\n\nAvailable interfaces:\n{listing}")


def validate_args(args: Args) -> None:
    """Raise ValueError for unusable options and LookupError for an unknown interface."""
    if not args.interface:
        raise ValueError("Interface name cannot be empty")
    if not args.filter:
        raise ValueError("Filter expression cannot be empty")
    if args.interval == 0:
        raise ValueError("Update interval must be greater than 0")
    if args.duration is not None and args.duration == 0:
        raise ValueError("Duration must be greater than 0")
    validate_interface(args.interface)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the monitor; returns the process exit status."""
    args = parse_args(argv)
    try:
        validate_args(args)
    except (ValueError, LookupError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("Starting tcpgraph...")
    print(f"Interface: {args.interface}")
    print(f"Filter: {args.filter}")
    print(f"Update interval: {args.interval}s")
    if args.duration is not None:
        print(f"Duration: {args.duration}s")

    try:
        capture = PacketCapture(args.interface, args.filter, args.payload_only)
        packet_queue = capture.start_capture()
    except (ValueError, LookupError, OSError) as exc:
        print(f"Error: Failed to start packet capture: {exc}", file=sys.stderr)
        return 1

    update_interval = float(args.interval)
    bandwidth_queue = start_bandwidth_monitor(packet_queue, update_interval, args.smoothing)
    app = App(args.interface, args.filter)

    try:
        run_ui(app, bandwidth_queue, update_interval)
    except KeyboardInterrupt:
        print("\nReceived Ctrl+C, shutting down gracefully...")
    except curses.error as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())