from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class PumpState(str, Enum):
    OFF = "Off"
    IDLE = "Idle"
    NORMAL = "Normal"
    DRY = "Dry"
    RAPID_CYCLE = "RapidCycle"
    UNKNOWN = "Unknown"


class ActionKind(str, Enum):
    POWER_CYCLE = "PowerCycle"
    SUPPRESSED = "Suppressed"


class ActionOutcome(str, Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"


class ControllerPhase(str, Enum):
    ARMED = "Armed"
    CYCLING = "Cycling"
    COOLDOWN = "Cooldown"
    SUSPENDED = "Suspended"


@dataclass(frozen=True)
class Roi:
    """Display region as fractions (0..1) of the captured frame."""
    x: float = 0.25
    y: float = 0.40
    width: float = 0.50
    height: float = 0.20

    def problems(self) -> list[str]:
        out: list[str] = []
        for name in ("x", "y", "width", "height"):
            v = getattr(self, name)
            if not 0.0 <= v <= 1.0:
                out.append(f"roi.{name}={v} outside [0, 1]")
        if self.width <= 0 or self.height <= 0:
            out.append("roi width and height must be positive")
        if self.x + self.width > 1.0:
            out.append(f"roi.x + roi.width = {self.x + self.width:.3f} exceeds 1")
        if self.y + self.height > 1.0:
            out.append(f"roi.y + roi.height = {self.y + self.height:.3f} exceeds 1")
        return out

    def to_pixels(self, image_width: int, image_height: int) -> tuple[int, int, int, int]:
        x = int(image_width * self.x)
        y = int(image_height * self.y)
        w = max(1, min(int(image_width * self.width), image_width - x))
        h = max(1, min(int(image_height * self.height), image_height - y))
        return x, y, w, h


@dataclass(frozen=True)
class ExtractionResult:
    success: bool
    raw_text: str
    confidence: float
    provider_name: str
    duration: timedelta = timedelta(0)
    error: Optional[str] = None
    processed_text: str = ""
    accepted: bool = True  # False: best effort below minimum confidence

    @property
    def text(self) -> str:
        return self.processed_text or self.raw_text.strip()

    @classmethod
    def failure(cls, provider_name: str, error: str, duration: timedelta = timedelta(0)) -> "ExtractionResult":
        return cls(
            success=False,
            raw_text="",
            confidence=0.0,
            provider_name=provider_name,
            duration=duration,
            error=error,
        )


@dataclass(frozen=True)
class Reading:
    timestamp_utc: datetime
    current_amps: Optional[float]
    status: PumpState
    raw_text: str
    confidence: float
    provider_used: Optional[str]
    processing_duration: timedelta
    error: Optional[str] = None


@dataclass(frozen=True)
class RelayAction:
    timestamp_utc: datetime
    kind: ActionKind
    reason: str
    outcome: ActionOutcome = ActionOutcome.COMPLETED
