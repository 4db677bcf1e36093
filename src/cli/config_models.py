"""Pydantic configuration models for the brain store."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class PathsConfig(BaseModel):
    """File paths configuration."""

    rho_dir: Path = Path("~/.rho")
    brain_dir: Optional[Path] = None  # None = <rho_dir>/brain
    brain_path: Optional[Path] = None  # None = <brain_dir>/brain.jsonl
    log_file: Optional[Path] = None

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ and fill derived defaults."""
        self.rho_dir = self.rho_dir.expanduser()
        self.brain_dir = (self.brain_dir or self.rho_dir / "brain").expanduser()
        self.brain_path = (self.brain_path or self.brain_dir / "brain.jsonl").expanduser()
        if self.log_file:
            self.log_file = self.log_file.expanduser()
        return self


class LockConfig(BaseModel):
    """Append lock tuning."""

    timeout: float = Field(default=5.0, gt=0)
    migration_timeout: float = Field(default=30.0, gt=0)


class PromptConfig(BaseModel):
    """Prompt rendering budget (approximate tokens)."""

    budget: int = 2000

    @field_validator("budget")
    @classmethod
    def validate_budget(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"prompt budget must be at least 50 tokens, got {v}")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_mode: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class BrainConfig(BaseModel):
    """Main configuration model."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    lock: LockConfig = Field(default_factory=LockConfig)
    prompt: PromptConfig = Field(default_factory=PromptConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "BrainConfig":
        """Create config from dict, accepting string paths."""
        paths = data.get("paths")
        if isinstance(paths, dict):
            for key, value in paths.items():
                if isinstance(value, str):
                    paths[key] = Path(value)
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
