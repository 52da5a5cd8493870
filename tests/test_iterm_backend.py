"""Tests for the iTerm AppleScript backend."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from tabwatch.backends.iterm import (
    FRONTMOST_SCRIPT,
    TAB_QUERY_SCRIPT,
    ITermBackend,
    _run_osascript,
    get_iterm_backend,
    parse_tab_output,
    reset_iterm_backend,
)


@pytest.fixture(autouse=True)
def reset_backend():
    """Reset the backend singleton before each test."""
    reset_iterm_backend()
    yield
    reset_iterm_backend()


@pytest.fixture
def backend():
    return ITermBackend(timeout=2)


TWO_TABS = (
    "2\n"
    "main (zsh)||true||false||/dev/ttys001\n"
    "build (npm)||false||true||/dev/ttys002\n"
)


class TestParseTabOutput:
    """Tests for parsing the tab query result."""

    def test_parse_two_tabs(self):
        """Rows become aligned per-tab lists."""
        info = parse_tab_output(TWO_TABS)

        assert info.active_index == 2
        assert info.names == ["main (zsh)", "build (npm)"]
        assert info.at_prompt == [True, False]
        assert info.is_processing == [False, True]
        assert info.ttys == ["/dev/ttys001", "/dev/ttys002"]

    def test_no_windows(self):
        """A lone zero means no window and no tabs."""
        info = parse_tab_output("0\n")

        assert info.active_index == 0
        assert info.names == []

    def test_empty_output(self):
        """Empty output is an empty TabInfo."""
        assert parse_tab_output("").names == []

    def test_bad_header(self):
        """A non-numeric first line is rejected."""
        info = parse_tab_output("execution error\nmain||true||false||/dev/ttys001")

        assert info.names == []
        assert info.active_index == 0

    def test_malformed_rows_dropped(self):
        """Rows without four fields are skipped, keeping lists aligned."""
        output = "1\nmain||true||false||/dev/ttys001\ngarbage\nlogs||true||false||/dev/ttys003\n"

        info = parse_tab_output(output)

        assert info.names == ["main", "logs"]
        assert info.ttys == ["/dev/ttys001", "/dev/ttys003"]
        assert len(info.at_prompt) == len(info.is_processing) == 2

    def test_separator_inside_tab_name(self):
        """A name containing the field separator keeps its tab position."""
        output = (
            "3\n"
            "make || true (zsh)||false||true||/dev/ttys001\n"
            "notes (vim)||false||false||/dev/ttys002\n"
            "logs (less)||true||false||/dev/ttys003\n"
        )

        info = parse_tab_output(output)

        assert info.active_index == 3
        assert info.names == ["make || true (zsh)", "notes (vim)", "logs (less)"]
        assert info.ttys == ["/dev/ttys001", "/dev/ttys002", "/dev/ttys003"]
        assert info.is_processing == [True, False, False]

    def test_active_index_past_tabs_reset(self):
        """An active index beyond the parsed tabs becomes 0."""
        info = parse_tab_output("3\nmain||true||false||/dev/ttys001\n")

        assert info.active_index == 0


class TestRunOsascript:
    """Tests for the osascript wrapper."""

    def test_success(self):
        """stdout and the return code are passed through."""
        with patch("tabwatch.backends.iterm.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="iTerm2\n", stderr="")

            assert _run_osascript("return 1") == (0, "iTerm2\n", "")

        args = mock_run.call_args[0][0]
        assert args == ["osascript", "-e", "return 1"]

    def test_timeout(self):
        """A hung osascript reports failure instead of raising."""
        with patch(
            "tabwatch.backends.iterm.subprocess.run",
            side_effect=subprocess.TimeoutExpired("osascript", 5),
        ):
            returncode, _, stderr = _run_osascript("delay 10")

        assert returncode == 1
        assert "timed out" in stderr

    def test_missing_osascript(self):
        """Running off macOS reports failure."""
        with patch("tabwatch.backends.iterm.subprocess.run", side_effect=FileNotFoundError):
            returncode, _, stderr = _run_osascript("return 1")

        assert returncode == 1
        assert "not found" in stderr


class TestITermBackend:
    """Tests for ITermBackend queries and actions."""

    def test_backend_name(self, backend):
        assert backend.backend_name == "iterm"

    def test_query_tabs(self, backend):
        """query_tabs runs the tab script and parses it."""
        with patch("tabwatch.backends.iterm._run_osascript", return_value=(0, TWO_TABS, "")) as mock_run:
            info = backend.query_tabs()

        assert info.names == ["main (zsh)", "build (npm)"]
        mock_run.assert_called_once_with(TAB_QUERY_SCRIPT, timeout=2)

    def test_query_tabs_failure(self, backend):
        """A failed query is an empty TabInfo."""
        with patch(
            "tabwatch.backends.iterm._run_osascript",
            return_value=(1, "", "iTerm got an error"),
        ):
            info = backend.query_tabs()

        assert info.names == []

    @pytest.mark.parametrize(
        ("result", "expected"),
        [
            ((0, "iTerm2\n", ""), True),
            ((0, "Safari\n", ""), False),
            ((1, "", "not authorised"), False),
        ],
    )
    def test_is_frontmost(self, backend, result, expected):
        """Only iTerm2 as the frontmost process counts."""
        with patch("tabwatch.backends.iterm._run_osascript", return_value=result) as mock_run:
            assert backend.is_frontmost() is expected

        assert mock_run.call_args[0][0] == FRONTMOST_SCRIPT

    def test_is_available(self, backend):
        """iTerm is available when System Events lists its process."""
        with patch("tabwatch.backends.iterm._run_osascript", return_value=(0, "true\n", "")):
            assert backend.is_available()
        with patch("tabwatch.backends.iterm._run_osascript", return_value=(0, "false\n", "")):
            assert not backend.is_available()

    def test_select_tab(self, backend):
        """select_tab activates iTerm and selects the tab."""
        with patch("tabwatch.backends.iterm._run_osascript", return_value=(0, "", "")) as mock_run:
            assert backend.select_tab(3)

        script = mock_run.call_args[0][0]
        assert "activate" in script
        assert "select tab 3 of window 1" in script

    def test_select_tab_failure_logged(self, backend, caplog):
        """A failed switch is logged as a warning and reported False."""
        with patch(
            "tabwatch.backends.iterm._run_osascript",
            return_value=(1, "", "Invalid index"),
        ):
            assert not backend.select_tab(9)

        assert "Failed to switch to tab 9" in caplog.text


class TestSingleton:
    """Tests for the backend singleton."""

    def test_get_returns_same_instance(self):
        assert get_iterm_backend() is get_iterm_backend()

    def test_reset_creates_new_instance(self):
        first = get_iterm_backend()
        reset_iterm_backend()

        assert get_iterm_backend() is not first
