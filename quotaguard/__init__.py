"""quotaguard: pluggable admission control over shared fixed-window counters."""

__version__ = "0.1.0"
