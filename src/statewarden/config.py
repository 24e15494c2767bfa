"""Runtime configuration for the monitoring service."""

from dataclasses import dataclass

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class Config:
    """Settings shared by the CLI commands.

    Raises:
        ValueError: on a non-positive interval, timeout or worker count,
            or an unknown log level.
    """

    table_prefix: str = "statewarden"
    region: str | None = None
    full_sweep_interval: float = 300.0
    tick_interval: float = 1.0
    drift_interval: float = 300.0
    tool_timeout: float = 300.0
    converter_bin: str = "terraform"
    checker_bin: str = "terraform-compliance"
    max_concurrent: int = 1
    fail_on_empty_result: bool = True
    slack_webhook_url: str | None = None
    panel_url: str = ""
    log_level: str = "INFO"

    def __post_init__(self):
        for name in ("full_sweep_interval", "tick_interval", "drift_interval", "tool_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if not self.table_prefix:
            raise ValueError("table_prefix is required")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
