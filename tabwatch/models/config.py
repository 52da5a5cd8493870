"""Application configuration models with Pydantic validation."""

from pydantic import BaseModel, Field

DEFAULT_LOG_MATCHERS = ["com.googlecode.iterm2", "Claude"]


class EventMonitorConfig(BaseModel):
    """OS notification log subscription settings."""

    log_matchers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_LOG_MATCHERS),
        description="Substrings that mark a log line as a notification",
    )
    correlation_file: str = Field(
        default="~/.claude/tabwatch-notify.json",
        description="Side-channel file naming the project that raised a notification",
    )


class PollingConfig(BaseModel):
    """Poll loop settings."""

    interval: float = Field(
        default=3.0,
        gt=0,
        le=60,
        description="Seconds between scheduled polls",
    )
    query_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Upper bound in seconds for each external query in a poll",
    )
    latency_history: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Number of recent cycles kept for latency statistics",
    )
    max_slots: int = Field(
        default=6,
        ge=1,
        le=32,
        description="Display slots auto-assigned to tabs 1..max_slots",
    )


class AppConfig(BaseModel):
    """Root application configuration.

    Loaded from config.yaml and validated with Pydantic.
    """

    polling: PollingConfig = Field(
        default_factory=PollingConfig,
        description="Poll loop settings",
    )
    events: EventMonitorConfig = Field(
        default_factory=EventMonitorConfig,
        description="Notification log subscription settings",
    )
    port: int = Field(
        default=5051,
        ge=1024,
        le=65535,
        description="Port for the Flask server",
    )
    debug: bool = Field(
        default=False,
        description="Enable Flask debug mode",
    )
