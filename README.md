# tcpgraph

A terminal-based network bandwidth monitor. tcpgraph captures Ethernet frames
on a network interface and draws a live chart of inbound and outbound traffic,
in Mbps, in your terminal.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Usage

Live capture opens a raw `AF_PACKET` socket, so it works on Linux only and
usually needs root (or the `CAP_NET_RAW` capability).

```
tcpgraph --interface eth0 --filter "tcp port 443"
```

Options:

| Option | Description |
| --- | --- |
| `-i`, `--interface` | Network interface to monitor (required). `any` captures on all interfaces. |
| `-f`, `--filter` | Filter expression (required), see below. |
| `--interval` | Graph update interval in seconds (default `1`). |
| `--duration` | Total monitoring duration in seconds. |
| `--payload-only` | Count only payload bytes, leaving out the Ethernet, IP and TCP headers. |
| `--smoothing` | Number of samples averaged to smooth out spikes (default `3`). |

Before capture starts, the interface name and filter must be non-empty, the
interval and duration greater than zero, and the interface must exist. If it
does not, tcpgraph prints the interfaces that are available and exits with
status 1. A named interface is put into promiscuous mode; `any` is not.

### Filter expressions

The filter is a subset of the familiar tcpdump syntax:

- `host ADDR`, `net CIDR`, `port N`, each optionally preceded by `src` or
  `dst`; `port` may also be preceded by `tcp` or `udp` (`tcp dst port 80`).
- Protocol names `tcp`, `udp`, `icmp`, `icmp6` and link types `ip`, `ip6`, `arp`.
- `and`/`&&`, `or`/`||`, `not`/`!` and parentheses.

IPv4 and IPv6 addresses are both accepted. An expression that cannot be parsed
stops the program with "Failed to set packet filter".

### The display

- A header showing the interface and the filter in use.
- A chart of the last 100 samples, inbound in green and outbound in red. The
  vertical axis picks a scale of 10, 50, 100, 250, 500 or 1000 Mbps from the
  highest rate seen so far; above that it grows to 1.2 times the peak.
- A statistics line with the current and peak rates in each direction.

Press `q` or `Esc` to quit, or stop it with Ctrl+C. A terminal smaller than
about 32 columns by 12 rows shows only "Terminal too small".

### Traffic direction

Each frame is classified by its Ethernet addresses: frames sent from one of the
interface's MAC addresses count as outbound, frames addressed to it as inbound.
Broadcast and multicast frames follow their sender. Frames where neither side
(or both sides) is local are split evenly between the two directions.

Rates are averaged over a one-second window and then smoothed over the last
`--smoothing` samples.

## What it does not do

- `--duration` is checked and echoed at start-up, but the monitor does not stop
  by itself when it runs out; quit with `q`, `Esc` or Ctrl+C.
- The filter language is the subset above, not the full capture-filter
  language; other keywords are rejected.
- There is no live capture on platforms without `AF_PACKET` sockets.

## Using it as a library

- `tcpgraph.capture` — `PacketCapture` (with `packets()` as a generator and
  `start_capture()` feeding a `queue.Queue` from a background thread),
  `PacketInfo`, `TrafficDirection`, and the helpers `list_interfaces`,
  `get_local_macs`, `get_payload_size` and `determine_direction`.
  `PacketCapture` also accepts `frames=` (any iterable of raw Ethernet frames)
  and `local_macs=` in place of a live interface.
- `tcpgraph.bandwidth` — `BandwidthCalculator`, which turns `PacketInfo`
  records into smoothed `DirectionalBandwidth` readings (bytes per second),
  keeps a `history` of raw `BandwidthData` samples and offers `chart_data()`
  in KiB/s; `start_bandwidth_monitor` runs one on a background thread.
- `tcpgraph.cli` — `parse_args` and the `Args` dataclass.
- `tcpgraph.ui` — `App`, which keeps the chart history, `run_ui`, and the
  helpers `to_mbps`, `y_axis_max`, `y_axis_labels`, `x_axis_bounds` and
  `statistics_line`.
- `tcpgraph.main` — `main`, `validate_args` and `validate_interface`.

```python
import time

from tcpgraph.bandwidth import BandwidthCalculator
from tcpgraph.capture import PacketInfo, TrafficDirection

calc = BandwidthCalculator(window_duration=1.0, max_history=300, smoothing_samples=3)
calc.add_packet(PacketInfo(timestamp=time.time(), size=1500, direction=TrafficDirection.INBOUND))
reading = calc.calculate_bandwidth()
print(reading.inbound, reading.outbound)  # 1500.0 0.0
```