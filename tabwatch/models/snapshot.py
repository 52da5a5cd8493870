"""Snapshot model - one poll cycle's consistent read of tab and process state."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, model_validator


@dataclass(frozen=True)
class ProcessRecord:
    """One row of the OS process table."""

    tty: str  # Normalised device path (e.g., /dev/ttys003)
    foreground: bool  # Member of the terminal's foreground process group
    command_line: str


class Snapshot(BaseModel):
    """Tab and process state captured by a single poll.

    Index ``i`` of every per-tab list refers to the same tab (tab ``i + 1``
    in the terminal's 1-based numbering).
    """

    model_config = ConfigDict(frozen=True)

    tab_names: list[str] = Field(
        default_factory=list,
        description="Tab names, possibly suffixed with '(process)'",
    )
    active_index: int = Field(
        default=0,
        ge=0,
        description="1-based index of the selected tab, 0 if none",
    )
    at_prompt: list[bool] = Field(
        default_factory=list,
        description="Per-tab 'is at shell prompt' flag",
    )
    is_processing: list[bool] = Field(
        default_factory=list,
        description="Per-tab 'is processing' flag",
    )
    ttys: list[str] = Field(
        default_factory=list,
        description="Per-tab terminal device path",
    )
    frontmost: bool = Field(
        default=False,
        description="Whether the terminal application has input focus",
    )
    processes: list[ProcessRecord] = Field(
        default_factory=list,
        description="Process table read during the same poll",
    )

    @model_validator(mode="after")
    def _check_lengths(self) -> "Snapshot":
        count = len(self.tab_names)
        for name in ("at_prompt", "is_processing", "ttys"):
            if len(getattr(self, name)) != count:
                raise ValueError(
                    f"{name} has {len(getattr(self, name))} entries, expected {count}"
                )
        return self

    @classmethod
    def empty(cls) -> "Snapshot":
        """Snapshot used when every query failed."""
        return cls()

    @property
    def tab_count(self) -> int:
        return len(self.tab_names)
