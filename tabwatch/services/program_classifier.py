"""ProgramClassifier for identifying what runs in each tab.

Matches tabs to processes through their terminal device and tests the
foreground command lines against an ordered rule list.
"""

import re
from collections.abc import Callable, Sequence

from tabwatch.models.snapshot import ProcessRecord
from tabwatch.models.tab_state import ProgramLabel, split_title

Rule = tuple[Callable[[str], bool], ProgramLabel]


def _command(*names: str) -> Callable[[str], bool]:
    """Predicate matching any of the executables as a path component or word.

    Login shells show up as ``-zsh``, so a leading dash is accepted.
    """
    pattern = re.compile(
        r"(?:^|[\s/])-?(?:" + "|".join(names) + r")(?=\s|$)",
    )
    return lambda command_line: pattern.search(command_line) is not None


def _contains(*fragments: str) -> Callable[[str], bool]:
    return lambda command_line: any(f in command_line for f in fragments)


def _any(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda command_line: any(p(command_line) for p in predicates)


# First match wins. Coding agents come before the runtimes they run under
# (claude and codex run under node, aider under python), editors and tools
# before generic runtimes, and plain shells last.
RULES: list[Rule] = [
    (_any(_command("claude"), _contains("@anthropic-ai/claude-code")), ProgramLabel.CLAUDE),
    (_any(_command("codex"), _contains("@openai/codex")), ProgramLabel.CODEX),
    (_any(_command("gemini"), _contains("@google/gemini-cli")), ProgramLabel.GEMINI),
    (_any(_command("aider"), _contains("/aider/")), ProgramLabel.AIDER),
    (_contains("/agent/cli.py", "/agent/main.py"), ProgramLabel.AGENT),
    (_command("n?vim", "vi", "view"), ProgramLabel.VIM),
    (_command("emacs", "emacsclient"), ProgramLabel.EMACS),
    (_command("nano", "pico"), ProgramLabel.NANO),
    (_command("less", "more", "man"), ProgramLabel.LESS),
    (_command("ssh", "mosh", "mosh-client"), ProgramLabel.SSH),
    (_command("docker", "docker-compose", "kubectl"), ProgramLabel.DOCKER),
    (_command("git", "lazygit", "tig"), ProgramLabel.GIT),
    (_command("node", "npm", "npx", "yarn", "pnpm", "bun", "deno"), ProgramLabel.NODE),
    (_command(r"python[\d.]*", "ipython", r"pip[\d.]*", "uv", "pytest"), ProgramLabel.PYTHON),
    (_command("ruby", "irb", "bundle", "rails", "rake"), ProgramLabel.RUBY),
    (_command("zsh", "bash", "fish", "sh", "dash", "tcsh", "ksh", "login"), ProgramLabel.SHELL),
]


class ProgramClassifier:
    """Maps tabs to program labels.

    Resolution order for a tab:
    1. Foreground processes on the tab's TTY, tested against the rule list
    2. The trailing "(process)" of the tab title, tested against the same rules
    3. ProgramLabel.OTHER
    """

    def __init__(self, rules: Sequence[Rule] | None = None):
        """Initialize the ProgramClassifier.

        Args:
            rules: Ordered (predicate, label) pairs. Defaults to RULES.
        """
        self._rules = list(rules) if rules is not None else list(RULES)

    def match(self, command_lines: Sequence[str]) -> ProgramLabel | None:
        """Return the label of the first rule matching any command line."""
        for predicate, label in self._rules:
            if any(predicate(line) for line in command_lines):
                return label
        return None

    def classify(
        self,
        ttys: Sequence[str],
        processes: Sequence[ProcessRecord],
        tab_names: Sequence[str] | None = None,
    ) -> dict[int, ProgramLabel]:
        """Classify every tab.

        Args:
            ttys: Terminal device per tab, in tab order.
            processes: Process table of the same poll.
            tab_names: Tab titles for the fallback, in tab order.

        Returns:
            Mapping of 1-based tab index to program label.
        """
        foreground: dict[str, list[str]] = {}
        for record in processes:
            if record.foreground:
                foreground.setdefault(record.tty, []).append(record.command_line)

        labels: dict[int, ProgramLabel] = {}
        for position, tty in enumerate(ttys):
            label = self.match(foreground.get(tty, []))
            if label is None:
                title = tab_names[position] if tab_names and position < len(tab_names) else ""
                _, process_name = split_title(title)
                label = self.classify_from_title(process_name)
            labels[position + 1] = label
        return labels

    def classify_from_title(self, process_name: str | None) -> ProgramLabel:
        """Classify from the process name iTerm shows in the tab title.

        Args:
            process_name: The parenthetical suffix of the title, if any.

        Returns:
            Matching label, or ProgramLabel.OTHER.
        """
        if not process_name:
            return ProgramLabel.OTHER
        # macOS reports some process names capitalised ("Python")
        return self.match([process_name.strip().lower()]) or ProgramLabel.OTHER
