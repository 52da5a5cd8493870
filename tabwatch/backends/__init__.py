"""Terminal backend implementations."""

from tabwatch.backends.base import TabInfo, TerminalBackend
from tabwatch.backends.iterm import (
    ITermBackend,
    get_iterm_backend,
    parse_tab_output,
    reset_iterm_backend,
)
from tabwatch.backends.processes import list_processes, normalize_tty, parse_process_table

__all__ = [
    "ITermBackend",
    "TabInfo",
    "TerminalBackend",
    "get_iterm_backend",
    "list_processes",
    "normalize_tty",
    "parse_process_table",
    "parse_tab_output",
    "reset_iterm_backend",
]
