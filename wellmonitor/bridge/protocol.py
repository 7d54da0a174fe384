"""Wire format shared by the bridge provider and ``ocr_server``.

One JSON object per line in each direction::

    -> {"image": "<base64>"}
    <- {"success": true, "rawText": "...", "processedText": "...",
        "confidence": 0.93, "provider": "tesseract", "processingDurationMs": 41}
    <- {"success": false, "error": "..."}

    -> {"command": "health"}
    <- {"status": "healthy"}
"""
from __future__ import annotations

import base64
import json
from datetime import timedelta
from typing import Any

from ..core.errors import ProviderFault
from ..domain.models import ExtractionResult

HEALTH_REQUEST = {"command": "health"}
HEALTHY = {"status": "healthy"}


def encode_line(obj: dict[str, Any]) -> bytes:
    return (json.dumps(obj, separators=(",", ":")) + "\n").encode("utf-8")


def image_request(image: bytes) -> dict[str, Any]:
    return {"image": base64.b64encode(image).decode("ascii")}


def success_response(raw_text: str, processed_text: str, confidence: float, provider: str, duration_ms: int) -> dict[str, Any]:
    return {
        "success": True,
        "rawText": raw_text,
        "processedText": processed_text,
        "confidence": confidence,
        "provider": provider,
        "processingDurationMs": int(duration_ms),
    }


def failure_response(error: str) -> dict[str, Any]:
    return {"success": False, "error": error}


def parse_line(line: bytes) -> dict[str, Any]:
    if not line:
        raise ProviderFault("OCR bridge closed its output")
    try:
        obj = json.loads(line)
    except ValueError as e:
        raise ProviderFault(f"OCR bridge sent invalid JSON: {line[:120]!r}") from e
    if not isinstance(obj, dict):
        raise ProviderFault("OCR bridge response is not a JSON object")
    return obj


def to_result(obj: dict[str, Any], provider_name: str) -> ExtractionResult:
    duration = timedelta(milliseconds=int(obj.get("processingDurationMs") or 0))
    if not obj.get("success"):
        return ExtractionResult.failure(provider_name, str(obj.get("error") or "unknown bridge error"), duration)
    try:
        confidence = float(obj.get("confidence", 0.0))
    except (TypeError, ValueError) as e:
        raise ProviderFault(f"OCR bridge confidence is not a number: {obj.get('confidence')!r}") from e
    return ExtractionResult(
        success=True,
        raw_text=str(obj.get("rawText") or ""),
        processed_text=str(obj.get("processedText") or ""),
        confidence=max(0.0, min(1.0, confidence)),
        provider_name=provider_name,
        duration=duration,
    )
