"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import timedelta
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class EngineDefaults(BaseModel):
    """Tunable constants of the timeline engine."""
    gap_tolerance_minutes: int = 30
    lead_time_minutes: int = 5
    office_hours_buffer_minutes: int = 5
    office_hours_max_ahead_hours: int = 24
    visible_start_hour: int = 6
    visible_end_hour: int = 23
    stale_block_days: int = 7

    @field_validator(
        "gap_tolerance_minutes",
        "lead_time_minutes",
        "office_hours_buffer_minutes",
        "stale_block_days",
    )
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        """Minute and day settings cannot be negative."""
        if value < 0:
            raise ValueError(f"Value must not be negative, got {value}")
        return value

    @field_validator("office_hours_max_ahead_hours")
    @classmethod
    def validate_max_ahead(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("office_hours_max_ahead_hours must be greater than zero")
        return value

    @field_validator("visible_start_hour")
    @classmethod
    def validate_start_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("visible_end_hour")
    @classmethod
    def validate_end_hour(cls, v: int) -> int:
        """Validate hour is between 1 and 24."""
        if not 1 <= v <= 24:
            raise ValueError(f"Hour must be between 1 and 24, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "EngineDefaults":
        """Ensure the visible day opens before it closes."""
        if self.visible_end_hour <= self.visible_start_hour:
            raise ValueError("visible_end_hour must be later than visible_start_hour")
        return self

    @property
    def gap_tolerance(self) -> timedelta:
        return timedelta(minutes=self.gap_tolerance_minutes)

    @property
    def lead_time(self) -> timedelta:
        return timedelta(minutes=self.lead_time_minutes)

    @property
    def office_hours_buffer(self) -> timedelta:
        return timedelta(minutes=self.office_hours_buffer_minutes)

    @property
    def office_hours_max_ahead(self) -> timedelta:
        return timedelta(hours=self.office_hours_max_ahead_hours)


class Participant(BaseModel):
    """Tutor or student known to the CLI by a short name."""
    name: str  # Used as alias
    id: str

    def display_name(self) -> str:
        """Get display name."""
        return self.name


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/New_York"
    snapshot_file: Optional[Path] = None
    defaults: EngineDefaults = Field(default_factory=EngineDefaults)
    participants: List[Participant] = Field(default_factory=list)

    @field_validator("participants")
    @classmethod
    def validate_participants(cls, value: List[Participant]) -> List[Participant]:
        """Ensure participant aliases and ids are unique."""
        seen_names: set[str] = set()
        seen_ids: set[str] = set()
        for participant in value:
            name_key = participant.name.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate participant name detected: {participant.name}")
            if participant.id in seen_ids:
                raise ValueError(f"Duplicate participant id detected: {participant.id}")
            seen_names.add(name_key)
            seen_ids.add(participant.id)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if config.snapshot_file is not None and not config.snapshot_file.is_absolute():
            config.snapshot_file = config_path.parent / config.snapshot_file
        return config

    def find_participant_by_name(self, name: str) -> Participant | None:
        """Find a participant by their name (alias)."""
        for participant in self.participants:
            if participant.name.lower() == name.lower():
                return participant
        return None

    def resolve_participant(self, identifier: str) -> str:
        """
        Resolve a participant alias to its id. Unknown aliases are taken to be ids.

        Args:
            identifier: Name/alias or participant id

        Returns:
            Participant id
        """
        participant = self.find_participant_by_name(identifier)
        if participant:
            return participant.id
        return identifier


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
