"""Terminal-based network bandwidth monitor: packet capture, bandwidth sampling and a curses chart."""

__version__ = "0.1.0"

__all__ = ["__version__"]