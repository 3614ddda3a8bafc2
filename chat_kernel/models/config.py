"""Pipeline configuration."""

from typing import Optional

from croniter import croniter
from pydantic import BaseModel, field_validator


class PipelineConfig(BaseModel):
    """Configuration shared by every pipeline component."""

    confirmation_ttl_seconds: int = 300
    sweep_interval_seconds: int = 60
    sweep_schedule: Optional[str] = None  # cron expression; overrides the interval

    high_confidence_threshold: float = 0.75
    medium_confidence_threshold: float = 0.45
    clarify_low_confidence: bool = False

    match_similarity_floor: float = 0.6
    max_disambiguation_matches: int = 5
    recent_entities_limit: int = 10

    event_buffer_size: int = 16
    pacing_delay_seconds: float = 0.0

    rate_limits_enabled: bool = True
    log_level: str = "INFO"

    @field_validator("sweep_schedule")
    @classmethod
    def _valid_cron(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not croniter.is_valid(value):
            raise ValueError(f"Invalid cron expression: {value}")
        return value
