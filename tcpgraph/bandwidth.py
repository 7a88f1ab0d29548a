"""Windowed, smoothed bandwidth calculation from captured packets."""

from __future__ import annotations

import queue
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from tcpgraph.capture import PacketInfo, TrafficDirection

_MONITOR_WINDOW = 1.0
_MONITOR_HISTORY = 300  # five minutes at one sample per second


@dataclass(frozen=True)
class BandwidthData:
    """One raw bandwidth sample, in bytes per second."""

    timestamp: float
    inbound_bps: float
    outbound_bps: float


@dataclass(frozen=True)
class DirectionalBandwidth:
    """Inbound and outbound bandwidth in bytes per second."""

    inbound: float
    outbound: float


class BandwidthCalculator:
    """Turns a stream of packets into bandwidth samples over a sliding time window.

    ``window_duration`` is in seconds; ``clock`` returns the current time in
    seconds since the epoch, on the same scale as packet timestamps.
    """

    def __init__(
        self,
        window_duration: float,
        max_history: int,
        smoothing_samples: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.window_duration = window_duration
        self.max_history = max_history
        self.smoothing_samples = smoothing_samples
        self._clock = clock
        self._packets: deque[PacketInfo] = deque()
        self._history: deque[BandwidthData] = deque(maxlen=max_history)
        self._smoothing: deque[DirectionalBandwidth] = deque(maxlen=smoothing_samples)

    @property
    def history(self) -> tuple[BandwidthData, ...]:
        """Raw samples, oldest first, at most ``max_history`` of them."""
        return tuple(self._history)

    def add_packet(self, packet: PacketInfo) -> None:
        """Record a packet and forget those older than twice the window."""
        self._packets.append(packet)
        cutoff = self._clock() - 2 * self.window_duration
        while self._packets and self._packets[0].timestamp < cutoff:
            self._packets.popleft()

    def calculate_bandwidth(self) -> DirectionalBandwidth:
        """Take a sample over the current window and return it averaged with the recent ones."""
        now = self._clock()
        cutoff = now - self.window_duration
        inbound_bytes = outbound_bytes = 0
        for packet in self._packets:
            if packet.timestamp < cutoff:
                continue
            if packet.direction is TrafficDirection.INBOUND:
                inbound_bytes += packet.size
            elif packet.direction is TrafficDirection.OUTBOUND:
                outbound_bytes += packet.size
            else:
                # Forwarded traffic belongs to neither side; split it to show total activity.
                half = packet.size // 2
                inbound_bytes += half
                outbound_bytes += half

        inbound_bps = inbound_bytes / self.window_duration
        outbound_bps = outbound_bytes / self.window_duration
        self._history.append(BandwidthData(now, inbound_bps, outbound_bps))
        self._smoothing.append(DirectionalBandwidth(inbound_bps, outbound_bps))

        count = len(self._smoothing)
        if not count:
            return DirectionalBandwidth(float("nan"), float("nan"))
        return DirectionalBandwidth(
            inbound=sum(sample.inbound for sample in self._smoothing) / count,
            outbound=sum(sample.outbound for sample in self._smoothing) / count,
        )

    def chart_data(self) -> tuple[list[tuple[float, float]], list[tuple[float, float]]]:
        """History as (index, KiB/s) points, inbound and outbound."""
        inbound = [(float(i), data.inbound_bps / 1024.0) for i, data in enumerate(self._history)]
        outbound = [(float(i), data.outbound_bps / 1024.0) for i, data in enumerate(self._history)]
        return inbound, outbound


def start_bandwidth_monitor(
    packet_queue: queue.Queue[PacketInfo],
    update_interval: float,
    smoothing_samples: int,
) -> queue.Queue[DirectionalBandwidth]:
    """Sample bandwidth every ``update_interval`` seconds on a background thread.

    Packets are drained from ``packet_queue``; samples appear on the returned queue.
    """
    results: queue.Queue[DirectionalBandwidth] = queue.Queue()
    calculator = BandwidthCalculator(_MONITOR_WINDOW, _MONITOR_HISTORY, smoothing_samples)

    def run() -> None:
        next_tick = time.monotonic()
        while True:
            delay = next_tick - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            next_tick += update_interval
            while True:
                try:
                    calculator.add_packet(packet_queue.get_nowait())
                except queue.Empty:
                    break
            results.put(calculator.calculate_bandwidth())

    threading.Thread(target=run, name="bandwidth-monitor", daemon=True).start()
    return results