"""Abstract base class for terminal backend implementations.

Defines the interface the poll loop needs from a terminal application.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class TabInfo:
    """Tab state of the terminal's front window."""

    names: list[str] = field(default_factory=list)
    active_index: int = 0  # 1-based, 0 when no tab is selected
    at_prompt: list[bool] = field(default_factory=list)
    is_processing: list[bool] = field(default_factory=list)
    ttys: list[str] = field(default_factory=list)


class TerminalBackend(ABC):
    """Abstract interface for terminal backends.

    Terminal backends provide the ability to:
    - Read the tabs of the front window
    - Tell whether the terminal application has input focus
    - Select a tab and bring the application forward
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., 'iterm')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the terminal application can be scripted.

        Returns:
            True if the backend can be used, False otherwise.
        """

    @abstractmethod
    def query_tabs(self) -> TabInfo:
        """Read tab names, selection and per-tab flags.

        Returns:
            TabInfo for the front window. Empty when there are no windows.
        """

    @abstractmethod
    def is_frontmost(self) -> bool:
        """Check whether the terminal application owns input focus.

        Returns:
            True if the terminal is the frontmost application.
        """

    @abstractmethod
    def select_tab(self, tab_index: int) -> bool:
        """Select a tab and bring the terminal to the foreground.

        Args:
            tab_index: 1-based tab index.

        Returns:
            True if the tab was selected, False otherwise.
        """
