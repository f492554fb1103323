"""Configuration management for GPU Fleet."""

import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from gpu_fleet.providers.models import ScheduleWindow, TagSelector


SUPPORTED_PROVIDERS = ('aws', 'gcp')


class Config(BaseModel):
    """Configuration model for a scheduled GPU fleet."""

    provider: str = Field(default="aws", description="Cloud backend: aws or gcp")
    region: str = Field(default="us-east-1", description="AWS region (ignored for GCP, which uses gcp_zone)")
    gcp_project: Optional[str] = Field(default=None, description="GCP project ID")
    gcp_zone: Optional[str] = Field(default=None, description="GCP zone holding the managed instance group")

    project: str = Field(..., description="Value of the project tag on fleet resources")
    environment: str = Field(default="staging", description="Value of the environment tag on fleet resources")
    role: str = Field(default="compute", description="Value of the role tag on fleet resources")

    group_id: str = Field(..., description="Capacity-managed group driven by the scheduler")
    target_capacity: int = Field(default=1, ge=0, description="Desired instance count while the fleet runs")
    schedule_start: str = Field(default="08:00", description="Daily start trigger, HH:MM UTC")
    schedule_stop: str = Field(default="20:00", description="Daily stop trigger, HH:MM UTC")

    quota_family: str = Field(default="G", description="Quota family the desired class is billed against")
    desired_class: str = Field(default="g5.4xlarge", description="Preferred GPU instance class")

    max_attempts: int = Field(default=3, ge=1, le=10, description="Provider retry budget for transient faults")
    connect_timeout: int = Field(default=10, ge=1, description="Provider connect timeout in seconds")
    read_timeout: int = Field(default=30, ge=1, description="Provider read timeout in seconds")
    sweep_workers: int = Field(default=5, ge=1, le=50, description="Concurrent power-state requests per sweep")
    max_group_size: int = Field(default=10, ge=1, description="Upper bound for GCP managed instance groups")

    created_at: datetime = Field(default_factory=datetime.utcnow, description="Configuration creation timestamp")
    version: str = Field(default="1.0.0", description="Configuration version")

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """Validate provider name."""
        if v not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported provider: {v}. Expected one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        return v

    @field_validator('region')
    @classmethod
    def validate_region(cls, v: str) -> str:
        """AWS regions look like us-east-1; quota and group lookups are regional."""
        if not re.match(r'^[a-z]{2,3}-[a-z]+-\d+$', v):
            raise ValueError(f"Invalid AWS region format: {v}. Expected e.g. us-east-1 or ap-southeast-3")
        return v

    @field_validator('gcp_zone')
    @classmethod
    def validate_zone(cls, v: Optional[str]) -> Optional[str]:
        """Validate GCP zone format."""
        if v is not None and not re.match(r'^[a-z]+-[a-z]+\d+-[a-z]$', v):
            raise ValueError(
                f"Invalid GCP zone format: {v}. Expected format: us-central1-a, asia-south1-b, etc."
            )
        return v

    @field_validator('schedule_start', 'schedule_stop')
    @classmethod
    def validate_trigger_time(cls, v: str) -> str:
        """Validate HH:MM trigger times."""
        if not re.match(r'^([01]\d|2[0-3]):[0-5]\d$', v):
            raise ValueError(f"Invalid schedule time: {v}. Expected HH:MM in 24-hour UTC")
        return v

    @field_validator('project', 'environment', 'role', 'group_id')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Value must not be blank")
        return v

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        """Keep timestamps as naive UTC, the convention used across results and triggers."""
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @model_validator(mode='after')
    def validate_provider_settings(self) -> 'Config':
        """Require the location settings of the chosen provider."""
        if self.provider == 'gcp' and not (self.gcp_project and self.gcp_zone):
            raise ValueError("GCP provider requires gcp_project and gcp_zone")
        if self.schedule_start == self.schedule_stop:
            raise ValueError("schedule_start and schedule_stop must differ")
        return self

    def schedule_window(self) -> ScheduleWindow:
        return ScheduleWindow(start_trigger=self.schedule_start, stop_trigger=self.schedule_stop)

    def tag_selector(self) -> TagSelector:
        return TagSelector(project=self.project, environment=self.environment, role=self.role)


def default_config_dir() -> Path:
    """Configuration directory, overridable through GPU_FLEET_CONFIG_DIR."""
    override = os.environ.get('GPU_FLEET_CONFIG_DIR')
    if override:
        return Path(override)
    return Path.home() / ".gpu-fleet"


class ConfigManager:
    """Reads and writes ``config.json`` in the fleet's configuration directory."""

    def __init__(self, config_dir: Optional[Path] = None):
        """
        Args:
            config_dir: Directory holding config.json and the results/ audit trail.
                       Defaults to GPU_FLEET_CONFIG_DIR or ~/.gpu-fleet/
        """
        self.config_dir = config_dir or default_config_dir()
        self.config_file = self.config_dir / "config.json"
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> Optional[Config]:
        """Load the saved fleet configuration.

        Returns:
            The configuration, or None if none has been saved yet

        Raises:
            ValueError: If the file is not valid JSON or fails validation
        """
        if not self.config_file.exists():
            return None

        try:
            return Config.model_validate_json(self.config_file.read_text())
        except ValueError as e:
            raise ValueError(f"Invalid configuration file {self.config_file}: {e}")
        except OSError as e:
            raise ValueError(f"Failed to read configuration {self.config_file}: {e}")

    def save_config(self, config: Config) -> None:
        """Write the configuration, replacing any previous file in one step.

        Raises:
            OSError: If the file cannot be written
        """
        staging = self.config_file.with_suffix('.tmp')
        try:
            staging.write_text(config.model_dump_json(indent=2))
            staging.replace(self.config_file)
        except OSError as e:
            staging.unlink(missing_ok=True)
            raise OSError(f"Failed to save configuration to {self.config_file}: {e}")

    def config_exists(self) -> bool:
        return self.config_file.exists()

    def get_config_path(self) -> Path:
        return self.config_file
