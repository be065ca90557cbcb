"""Configuration settings with Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MemorySettings(BaseSettings):
    """Memory layer configuration.

    Durations are expressed in milliseconds.
    """

    model_config = SettingsConfigDict(env_prefix="ENGRAM_MEMORY_")

    enabled: bool = True
    working_memory_capacity: int = Field(default=7, ge=1)  # Miller's 7 +/- 2
    short_term_duration: int = Field(default=30_000, ge=0)
    long_term_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    episodic_retention: int = Field(default=100, ge=1)
    enable_forgetting: bool = True
    forgetting_curve_factor: float = Field(default=0.1, gt=0.0)
    consolidation_interval: int = Field(default=60_000, gt=0)
    forgetting_interval: int | None = Field(default=None, gt=0)
    persistence_enabled: bool = True
    memory_file: Path = Path.home() / ".engram" / "memory_store.json"
    random_seed: int | None = None

    @property
    def short_term_seconds(self) -> float:
        """Short-term retention window in seconds."""
        return self.short_term_duration / 1000

    @property
    def consolidation_seconds(self) -> float:
        """Consolidation sweep interval in seconds."""
        return self.consolidation_interval / 1000

    @property
    def forgetting_seconds(self) -> float:
        """Forgetting sweep interval in seconds (2x consolidation unless set)."""
        if self.forgetting_interval is None:
            return self.consolidation_seconds * 2
        return self.forgetting_interval / 1000


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ENGRAM_",
        env_nested_delimiter="__",
    )

    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    memory: MemorySettings = Field(default_factory=MemorySettings)

    def ensure_directories(self) -> None:
        """Create necessary directories."""
        self.memory.memory_file.parent.mkdir(parents=True, exist_ok=True)


settings = Settings()
