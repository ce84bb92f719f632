"""Configuration management for the recording replayer."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .execution.models import BrowserKind, RunOptions, TimingMode
from .utils.logging import configure_logging


class Settings(BaseSettings):
    """Replay settings loaded from ``REPLAY_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="REPLAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Browser
    browser: BrowserKind = Field(BrowserKind.CHROMIUM, description="Browser engine to launch")
    headless: bool = Field(True, description="Run the browser without a window")

    # Capture
    video: bool = Field(False, description="Record a video of each run")
    video_dir: str = Field("./test-results/videos", description="Directory for run videos")
    screenshot: bool = Field(False, description="Attach a screenshot to each recorded action error")

    # Timeouts
    timeout_ms: int = Field(30000, gt=0, description="Default bound for every driver operation")

    # Pacing
    enable_timing: bool = Field(True, description="Replay with the recorded gaps between actions")
    timing_mode: TimingMode = Field(TimingMode.REALISTIC, description="realistic, fast or instant")
    speed_multiplier: float = Field(1.0, ge=0.0, description="Overrides timing_mode when not 1.0")
    max_action_delay_ms: int = Field(30000, ge=0, description="Cap on any single pacing delay")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Emit logs as JSON")

    def to_run_options(self) -> RunOptions:
        """Build the RunOptions for a single run."""
        return RunOptions(
            browser=self.browser,
            headless=self.headless,
            video=self.video,
            video_dir=self.video_dir,
            screenshot=self.screenshot,
            timeout_ms=self.timeout_ms,
            enable_timing=self.enable_timing,
            timing_mode=self.timing_mode,
            speed_multiplier=self.speed_multiplier,
            max_action_delay_ms=self.max_action_delay_ms,
        )

    def apply_logging(self) -> None:
        """Configure structlog from the log_level and log_json settings."""
        configure_logging(level=self.log_level, json_format=self.log_json)


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
