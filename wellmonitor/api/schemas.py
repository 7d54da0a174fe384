from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class ConfigUpdateRequest(BaseModel):
    updates: Dict[str, Any] = Field(min_length=1)


class ReadingOut(BaseModel):
    ts_utc: str
    current_amps: Optional[float]
    status: str
    raw_text: str
    confidence: float
    provider: Optional[str]
    duration_ms: float
    error: Optional[str] = None


class ActionOut(BaseModel):
    ts_utc: str
    kind: str
    reason: str
    outcome: str
