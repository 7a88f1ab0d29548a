"""Terminal dashboard: a live bandwidth chart with current and peak statistics."""

from __future__ import annotations

import curses
import math
import queue
import time
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from tcpgraph.bandwidth import DirectionalBandwidth

_HISTORY_POINTS = 100
_ESCAPE = 27

_Y_BUCKETS = (10.0, 50.0, 100.0, 250.0, 500.0, 1000.0)
_Y_LABELS = {
    10.0: ("0", "2.5", "5", "7.5", "10"),
    50.0: ("0", "10", "25", "40", "50"),
    100.0: ("0", "25", "50", "75", "100"),
    250.0: ("0", "50", "100", "200", "250"),
    500.0: ("0", "100", "250", "400", "500"),
    1000.0: ("0", "200", "500", "750", "1000"),
}


def to_mbps(bytes_per_second: float) -> float:
    """Convert bytes per second to megabits per second."""
    return bytes_per_second * 8.0 / 1_000_000.0


def _history() -> deque[tuple[float, float]]:
    return deque(maxlen=_HISTORY_POINTS)


@dataclass
class App:
    """State shown by the dashboard: recent samples, current and peak rates."""

    interface: str
    filter: str
    inbound_data: deque[tuple[float, float]] = field(default_factory=_history)
    outbound_data: deque[tuple[float, float]] = field(default_factory=_history)
    current_inbound: float = 0.0
    current_outbound: float = 0.0
    max_inbound: float = 0.0
    max_outbound: float = 0.0
    should_quit: bool = False
    tick_count: int = 0

    def update(self, bandwidth: DirectionalBandwidth) -> None:
        """Record a new sample (bytes per second) as a chart point in Mbps."""
        self.current_inbound = bandwidth.inbound
        self.current_outbound = bandwidth.outbound
        self.max_inbound = max(self.max_inbound, bandwidth.inbound)
        self.max_outbound = max(self.max_outbound, bandwidth.outbound)

        x = float(self.tick_count)
        self.inbound_data.append((x, to_mbps(bandwidth.inbound)))
        self.outbound_data.append((x, to_mbps(bandwidth.outbound)))
        self.tick_count += 1

    def quit(self) -> None:
        """Ask the dashboard loop to stop."""
        self.should_quit = True


def y_axis_max(max_mbps: float) -> float:
    """Upper bound of the chart's Mbps axis for the given peak rate."""
    for bucket in _Y_BUCKETS:
        if max_mbps < bucket:
            return bucket
    scaled = max_mbps * 1.2
    return float(math.ceil(scaled)) if math.isfinite(scaled) else scaled


def y_axis_labels(y_max: float) -> list[str]:
    """The five labels shown along the Mbps axis."""
    for bucket in _Y_BUCKETS:
        if y_max <= bucket:
            return list(_Y_LABELS[bucket])
    step = y_max / 4.0
    return ["0", f"{step:.0f}", f"{step * 2.0:.0f}", f"{step * 3.0:.0f}", f"{y_max:.0f}"]


def x_axis_bounds(tick_count: int) -> tuple[float, float]:
    """Visible range of the time axis: the most recent hundred ticks."""
    if tick_count > _HISTORY_POINTS:
        return float(tick_count - _HISTORY_POINTS), float(tick_count)
    return 0.0, float(_HISTORY_POINTS)


def _statistics_segments(app: App) -> list[tuple[str, str]]:
    return [
        ("↓ In: ", ""),
        (f"{to_mbps(app.current_inbound):.2f} Mbps", "in"),
        (" | ↑ Out: ", ""),
        (f"{to_mbps(app.current_outbound):.2f} Mbps", "out"),
        (" | Max: ↓", ""),
        (f"{to_mbps(app.max_inbound):.1f}", "in"),
        (" ↑", ""),
        (f"{to_mbps(app.max_outbound):.1f}", "out"),
        (" | Press 'q' to quit", ""),
    ]


def statistics_line(app: App) -> str:
    """The statistics bar's text: current and peak rates in Mbps."""
    return "".join(text for text, _ in _statistics_segments(app))


def _plot_cells(
    points: Iterable[tuple[float, float]],
    x_bounds: tuple[float, float],
    y_max: float,
    width: int,
    height: int,
) -> Iterator[tuple[int, int]]:
    """Yield (row, column) cells of a line joining the points, row 0 at the top."""
    x_min, x_max = x_bounds
    x_span = x_max - x_min
    previous: tuple[int, int] | None = None
    for x, y in points:
        if not (math.isfinite(x) and math.isfinite(y)) or x_span <= 0 or y_max <= 0:
            previous = None
            continue
        col = round((x - x_min) / x_span * (width - 1))
        value = min(max(y, 0.0), y_max)
        row = height - 1 - round(value / y_max * (height - 1))
        if previous is None:
            steps = 0
            prev_row, prev_col = row, col
        else:
            prev_row, prev_col = previous
            steps = max(abs(row - prev_row), abs(col - prev_col))
        for step in range(steps + 1):
            fraction = step / steps if steps else 1.0
            r = round(prev_row + (row - prev_row) * fraction)
            c = round(prev_col + (col - prev_col) * fraction)
            if 0 <= r < height and 0 <= c < width:
                yield r, c
        previous = (row, col)


# --- drawing --------------------------------------------------------------

def _palette() -> dict[str, int]:
    palette = {"": 0, "bold": curses.A_BOLD, "in": curses.A_BOLD, "out": curses.A_BOLD,
               "title": curses.A_BOLD, "iface": 0, "filter": 0, "axis": 0,
               "line_in": 0, "line_out": 0}
    if not curses.has_colors():
        return palette
    curses.start_color()
    try:
        curses.use_default_colors()
        background = -1
    except curses.error:
        background = curses.COLOR_BLACK
    pairs = {
        "cyan": curses.COLOR_CYAN,
        "green": curses.COLOR_GREEN,
        "red": curses.COLOR_RED,
        "yellow": curses.COLOR_YELLOW,
        "gray": curses.COLOR_WHITE,
    }
    colour: dict[str, int] = {}
    for number, (name, fg) in enumerate(pairs.items(), start=1):
        curses.init_pair(number, fg, background)
        colour[name] = curses.color_pair(number)
    palette.update(
        title=colour["cyan"] | curses.A_BOLD,
        iface=colour["green"],
        filter=colour["yellow"],
        axis=colour["gray"],
        line_in=colour["green"],
        line_out=colour["red"],
        **{"in": colour["green"] | curses.A_BOLD, "out": colour["red"] | curses.A_BOLD},
    )
    return palette


def _put(screen, y: int, x: int, text: str, attr: int = 0) -> None:
    rows, cols = screen.getmaxyx()
    if not 0 <= y < rows or x >= cols or x < 0:
        return
    try:
        screen.addstr(y, x, text[: cols - x], attr)
    except curses.error:
        pass


def _put_segments(screen, y: int, x: int, segments, palette, limit: int) -> None:
    for text, style in segments:
        if limit <= 0:
            return
        clipped = text[:limit]
        _put(screen, y, x, clipped, palette[style])
        x += len(clipped)
        limit -= len(clipped)


def _box(screen, y: int, x: int, height: int, width: int, title: str) -> None:
    horizontal = "─" * (width - 2)
    _put(screen, y, x, "┌" + horizontal + "┐")
    for row in range(y + 1, y + height - 1):
        _put(screen, row, x, "│")
        _put(screen, row, x + width - 1, "│")
    _put(screen, y + height - 1, x, "└" + horizontal + "┘")
    _put(screen, y, x + 1, title[: width - 2])


def _draw_chart(screen, y: int, x: int, height: int, width: int, app: App, palette) -> None:
    max_mbps = max(to_mbps(app.max_inbound), to_mbps(app.max_outbound))
    y_max = y_axis_max(max_mbps)
    labels = y_axis_labels(y_max)
    label_width = max(len(label) for label in labels)
    plot_x = x + label_width + 1
    plot_width = width - label_width - 1
    plot_y = y + 1
    plot_height = height - 2
    if plot_width < 10 or plot_height < 2:
        return

    _put(screen, y, x, "Mbps", palette["axis"])
    legend = [("Inbound (Mbps)", "line_in"), ("  ", ""), ("Outbound (Mbps)", "line_out")]
    legend_width = sum(len(text) for text, _ in legend)
    _put_segments(screen, y, max(x + 5, x + width - legend_width), legend, palette, width - 5)

    for index, label in enumerate(labels):
        row = plot_y + plot_height - 1 - round(index * (plot_height - 1) / (len(labels) - 1))
        _put(screen, row, x, label.rjust(label_width), palette["bold"])
    for row in range(plot_height):
        _put(screen, plot_y + row, plot_x - 1, "│", palette["axis"])

    x_bounds = x_axis_bounds(app.tick_count)
    for data, style in ((app.inbound_data, "line_in"), (app.outbound_data, "line_out")):
        for row, col in _plot_cells(data, x_bounds, y_max, plot_width, plot_height):
            _put(screen, plot_y + row, plot_x + col, "•", palette[style])

    x_min, x_max = x_bounds
    label_row = plot_y + plot_height
    left, middle, right = f"{x_min:.0f}", f"{(x_min + x_max) / 2.0:.0f}", f"{x_max:.0f}"
    _put(screen, label_row, plot_x, left, palette["bold"])
    _put(screen, label_row, plot_x + plot_width // 4, "Time", palette["axis"])
    _put(screen, label_row, plot_x + plot_width // 2 - len(middle) // 2, middle, palette["bold"])
    _put(screen, label_row, plot_x + plot_width - len(right), right, palette["bold"])


def _draw(screen, app: App, palette) -> None:
    screen.erase()
    rows, cols = screen.getmaxyx()
    top, left = 1, 1
    width, height = cols - 2, rows - 2
    if width < 30 or height < 10:
        _put(screen, 0, 0, "Terminal too small")
        return

    _box(screen, top, left, 3, width, "Network Monitor")
    title = [
        ("TCPGraph", "title"),
        (" - ", ""),
        (app.interface, "iface"),
        (" | Filter: ", ""),
        (app.filter, "filter"),
    ]
    _put_segments(screen, top + 1, left + 1, title, palette, width - 2)

    chart_height = height - 6
    _box(screen, top + 3, left, chart_height, width, "Bandwidth Over Time")
    _draw_chart(screen, top + 4, left + 1, chart_height - 2, width - 2, app, palette)

    stats_top = top + 3 + chart_height
    _box(screen, stats_top, left, 3, width, "Statistics")
    _put_segments(screen, stats_top + 1, left + 1, _statistics_segments(app), palette, width - 2)


def _loop(screen, app: App, bandwidth_queue: queue.Queue[DirectionalBandwidth], update_interval: float) -> None:
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    try:
        curses.set_escdelay(25)
    except (AttributeError, curses.error):
        pass
    palette = _palette()
    last_tick = time.monotonic()

    while True:
        _draw(screen, app, palette)
        screen.refresh()

        remaining = max(0.0, update_interval - (time.monotonic() - last_tick))
        screen.timeout(int(remaining * 1000))
        key = screen.getch()
        if key in (ord("q"), _ESCAPE):
            app.quit()

        if time.monotonic() - last_tick >= update_interval:
            try:
                app.update(bandwidth_queue.get_nowait())
            except queue.Empty:
                pass
            last_tick = time.monotonic()

        if app.should_quit:
            break


def run_ui(app: App, bandwidth_queue: queue.Queue[DirectionalBandwidth], update_interval: float) -> None:
    """Run the dashboard until 'q' or Escape is pressed; the terminal is restored afterwards."""
    curses.wrapper(_loop, app, bandwidth_queue, update_interval)