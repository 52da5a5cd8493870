"""iTerm integration backend for iTerm Tab Watch.

This module handles AppleScript-based iTerm operations:
- Reading the tabs of the front window (names, selection, prompt/processing flags, TTYs)
- Checking whether iTerm is the frontmost application
- Selecting a tab by index

All calls go through osascript and never raise; failures degrade to empty
results or False.
"""

import logging
import subprocess

from tabwatch.backends.base import TabInfo, TerminalBackend

logger = logging.getLogger(__name__)

ITERM_PROCESS_NAME = "iTerm2"

# Row separator inside the AppleScript result; tab names never contain it
FIELD_SEPARATOR = "||"

TAB_QUERY_SCRIPT = f"""
tell application "iTerm"
    if (count of windows) is 0 then return "0"
    set w to window 1
    set activeIdx to 0
    set rows to ""
    repeat with i from 1 to count of tabs of w
        set t to tab i of w
        set s to current session of t
        set promptFlag to (is at shell prompt of s) as text
        set busyFlag to (is processing of s) as text
        set rows to rows & linefeed & (name of s) & "{FIELD_SEPARATOR}" & promptFlag & "{FIELD_SEPARATOR}" & busyFlag & "{FIELD_SEPARATOR}" & (tty of s)
        if t is equal to current tab of w then set activeIdx to i
    end repeat
    return (activeIdx as text) & rows
end tell
"""

FRONTMOST_SCRIPT = (
    'tell application "System Events" to return name of first application process '
    "whose frontmost is true"
)


def _run_osascript(script: str, timeout: int = 5) -> tuple[int, str, str]:
    """Run an AppleScript snippet.

    Args:
        script: AppleScript source.
        timeout: Command timeout in seconds.

    Returns:
        Tuple of (return_code, stdout, stderr).
    """
    try:
        result = subprocess.run(
            ["osascript", "-e", script],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return (result.returncode, result.stdout or "", result.stderr or "")
    except subprocess.TimeoutExpired:
        return (1, "", "Command timed out")
    except FileNotFoundError:
        return (1, "", "osascript not found")


def parse_tab_output(output: str) -> TabInfo:
    """Parse the tab query result.

    Format: the active index on the first line, then one line per tab of
    ``name||at_prompt||processing||tty``. Malformed rows are dropped so the
    per-tab lists always line up.

    Args:
        output: Raw stdout of the tab query script.

    Returns:
        Parsed TabInfo, empty if the output is unusable.
    """
    lines = output.strip("\n").split("\n")
    if not lines or not lines[0].strip():
        return TabInfo()

    try:
        active_index = int(lines[0].strip())
    except ValueError:
        logger.debug(f"Unexpected tab query header: {lines[0]!r}")
        return TabInfo()

    info = TabInfo(active_index=max(active_index, 0))
    for row in lines[1:]:
        # Only the name is free text, so split from the right
        parts = row.rsplit(FIELD_SEPARATOR, 3)
        if len(parts) != 4:
            logger.debug(f"Skipping malformed tab row: {row!r}")
            continue
        name, at_prompt, processing, tty = parts
        info.names.append(name)
        info.at_prompt.append(at_prompt.strip() == "true")
        info.is_processing.append(processing.strip() == "true")
        info.ttys.append(tty.strip())

    if info.active_index > len(info.names):
        info.active_index = 0
    return info


class ITermBackend(TerminalBackend):
    """iTerm2 backend driven through AppleScript."""

    def __init__(self, timeout: int = 5):
        """Initialize the iTerm backend.

        Args:
            timeout: Timeout in seconds for each osascript call.
        """
        self._timeout = timeout

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "iterm"

    def is_available(self) -> bool:
        """Check if iTerm is running and can be accessed via AppleScript.

        Returns:
            True if iTerm is available
        """
        script = (
            'tell application "System Events" to return '
            f'(exists application process "{ITERM_PROCESS_NAME}")'
        )
        returncode, stdout, _ = _run_osascript(script, timeout=self._timeout)
        return returncode == 0 and stdout.strip() == "true"

    def query_tabs(self) -> TabInfo:
        """Read the tabs of iTerm's front window.

        Returns:
            TabInfo; empty when iTerm has no windows or the query fails.
        """
        try:
            returncode, stdout, stderr = _run_osascript(TAB_QUERY_SCRIPT, timeout=self._timeout)
        except Exception as e:
            logger.debug(f"AppleScript error reading iTerm tabs: {e}")
            return TabInfo()

        if returncode != 0:
            logger.debug(f"iTerm tab query failed: {stderr.strip()}")
            return TabInfo()
        return parse_tab_output(stdout)

    def is_frontmost(self) -> bool:
        """Check whether iTerm is the frontmost application.

        Returns:
            True if iTerm owns input focus, False otherwise or on error.
        """
        try:
            returncode, stdout, _ = _run_osascript(FRONTMOST_SCRIPT, timeout=self._timeout)
        except Exception as e:
            logger.debug(f"AppleScript error checking frontmost app: {e}")
            return False
        return returncode == 0 and stdout.strip() == ITERM_PROCESS_NAME

    def select_tab(self, tab_index: int) -> bool:
        """Bring iTerm forward and select a tab of the front window.

        Args:
            tab_index: 1-based tab index.

        Returns:
            True if the tab was selected, False otherwise.
        """
        script = f"""
        tell application "iTerm"
            activate
            select tab {int(tab_index)} of window 1
        end tell
        """
        try:
            returncode, _, stderr = _run_osascript(script, timeout=self._timeout)
        except Exception as e:
            logger.warning(f"Failed to switch to tab {tab_index}: {e}")
            return False

        if returncode != 0:
            logger.warning(f"Failed to switch to tab {tab_index}: {stderr.strip()}")
            return False
        return True


# Singleton instance
_iterm_backend: ITermBackend | None = None


def get_iterm_backend() -> ITermBackend:
    """Get the singleton ITermBackend instance."""
    global _iterm_backend
    if _iterm_backend is None:
        _iterm_backend = ITermBackend()
    return _iterm_backend


def reset_iterm_backend() -> None:
    """Reset the singleton ITermBackend instance (for testing)."""
    global _iterm_backend
    _iterm_backend = None
