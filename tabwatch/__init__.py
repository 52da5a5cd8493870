"""iTerm Tab Watch - per-tab program and attention state for iTerm."""

__version__ = "0.1.0"
