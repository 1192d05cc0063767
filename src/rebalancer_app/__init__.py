"""Command-line application wiring the rebalance engine to Trading 212."""

from .allocation_file import parse_allocations, load_allocations
from .progress import LoggingProgressSink, NtfyProgressSink, CompositeProgressSink
from .logger import StructuredFormatter, configure_root_logger

__all__ = [
    "parse_allocations",
    "load_allocations",
    "LoggingProgressSink",
    "NtfyProgressSink",
    "CompositeProgressSink",
    "StructuredFormatter",
    "configure_root_logger",
]
