"""Published per-tab state and the program labels it carries."""

import re
from enum import Enum

from pydantic import BaseModel, Field

# iTerm appends the job name to session titles: "build (npm)"
PROCESS_SUFFIX_PATTERN = re.compile(r"\s*\(([^()]*)\)\s*$")


def split_title(name: str) -> tuple[str, str | None]:
    """Split a tab name into display name and trailing process name.

    Args:
        name: Tab name as reported by the terminal.

    Returns:
        Tuple of (display_name, process_name). process_name is None when the
        name has no parenthetical suffix.
    """
    match = PROCESS_SUFFIX_PATTERN.search(name)
    if match is None:
        return name.strip(), None
    return name[: match.start()].strip(), match.group(1).strip() or None


class ProgramLabel(str, Enum):
    """What software a tab is running."""

    CLAUDE = "claude"
    CODEX = "codex"
    GEMINI = "gemini"
    AIDER = "aider"
    AGENT = "agent"
    """A coding agent not recognised by name (e.g., ``.../agent/cli.py``)."""

    VIM = "vim"
    EMACS = "emacs"
    NANO = "nano"
    LESS = "less"
    SSH = "ssh"
    DOCKER = "docker"
    GIT = "git"
    NODE = "node"
    PYTHON = "python"
    RUBY = "ruby"
    SHELL = "shell"
    OTHER = "other"


class TabState(BaseModel):
    """Derived state of one tracked tab, as handed to the display."""

    tab_index: int = Field(..., ge=1, description="1-based tab index")
    display_name: str = Field(
        default="",
        description="Tab name with the trailing '(process)' suffix removed",
    )
    program: ProgramLabel = Field(default=ProgramLabel.OTHER)
    is_active: bool = Field(default=False, description="Tab is the selected tab")
    has_attention: bool = Field(
        default=False,
        description="Tab finished work in the background and needs a look",
    )


def serialize_states(states: dict[int, "TabState | None"]) -> list[dict]:
    """Serialize a published mapping, rendering the empty marker explicitly.

    Args:
        states: Mapping of tracked tab index to state, None for tabs past
            the current tab count.

    Returns:
        List of JSON-ready dicts ordered by tab index.
    """
    result = []
    for index in sorted(states):
        state = states[index]
        if state is None:
            result.append({"tab_index": index, "empty": True})
        else:
            result.append({**state.model_dump(mode="json"), "empty": False})
    return result


def format_title(state: "TabState | None", max_len: int = 10) -> str:
    """Short title for a display key: active marker plus truncated name."""
    if state is None:
        return ""
    name = state.display_name
    if len(name) > max_len:
        name = name[: max_len - 1] + "…"
    prefix = "▸ " if state.is_active else ""
    return prefix + name
