from __future__ import annotations

from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import Roi


DEFAULT_DRY_KEYWORDS = ("Dry", "No Water", "Empty", "Well Dry")
DEFAULT_RAPID_CYCLE_KEYWORDS = ("rcyc", "Rapid Cycle", "Cycling", "Fault", "Error")


class ConfigSnapshot(BaseModel):
    """Immutable bundle of every runtime tunable.

    A cycle reads one snapshot at its start and uses it until the end. Updates
    never touch an existing instance; ``ConfigStore`` publishes a new one with
    ``version`` bumped.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: int = 1

    # Text extraction
    provider_priority: tuple[str, ...] = ("tesseract", "python_bridge", "azure_vision")
    provider_timeout_seconds: float = Field(default=30.0, gt=0)
    extraction_budget_seconds: Optional[float] = Field(default=None, gt=0)
    minimum_confidence: float = Field(default=0.7, ge=0.0, le=1.0)

    # Preprocessing
    roi_enabled: bool = True
    roi: Roi = Roi()
    enable_grayscale: bool = True
    enable_noise_reduction: bool = True
    enable_threshold: bool = True
    binary_threshold: int = Field(default=0, ge=0, le=255)  # 0 = Otsu
    enable_scaling: bool = True
    scale_factor: float = Field(default=2.0, ge=0.25, le=4.0)

    # Current bands (amps)
    off_threshold: float = Field(default=0.1, ge=0)
    idle_threshold: float = Field(default=0.5, ge=0)
    normal_min: float = Field(default=3.0, ge=0)
    normal_max: float = Field(default=8.0, ge=0)
    max_valid_current: float = Field(default=25.0, gt=0)

    # Status messages shown by the display
    dry_keywords: tuple[str, ...] = DEFAULT_DRY_KEYWORDS
    rapid_cycle_keywords: tuple[str, ...] = DEFAULT_RAPID_CYCLE_KEYWORDS
    case_sensitive: bool = False

    # Power management
    enable_auto_actions: bool = True
    minimum_cycle_interval_minutes: float = Field(default=30.0, ge=0)
    max_daily_cycles: int = Field(default=10, ge=0)
    power_cycle_delay_seconds: float = Field(default=5.0, ge=0)
    enable_dry_condition_cycling: bool = False

    # Monitoring
    monitoring_interval_seconds: float = Field(default=30.0, gt=0)
    dry_alert_threshold: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def _check_invariants(self) -> "ConfigSnapshot":
        problems = list(self.roi.problems())
        if self.off_threshold > self.idle_threshold:
            problems.append("off_threshold must not exceed idle_threshold")
        if self.normal_min > self.normal_max:
            problems.append("normal_min must not exceed normal_max")
        if self.normal_max > self.max_valid_current:
            problems.append("normal_max must not exceed max_valid_current")
        if not self.provider_priority:
            problems.append("provider_priority must name at least one provider")
        if any(not k for k in self.dry_keywords + self.rapid_cycle_keywords):
            problems.append("status keywords must be non-empty strings")
        if problems:
            raise ValueError("; ".join(problems))
        return self

    @property
    def minimum_cycle_interval(self) -> timedelta:
        return timedelta(minutes=self.minimum_cycle_interval_minutes)

    @property
    def power_cycle_delay(self) -> timedelta:
        return timedelta(seconds=self.power_cycle_delay_seconds)
