from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from ..core.errors import ProviderFault
from ..core.timeutil import elapsed_since
from ..domain.models import ExtractionResult

logger = logging.getLogger(__name__)


def parse_read_result(payload: dict[str, Any]) -> tuple[str, float]:
    """Join the lines of an Image Analysis ``readResult`` and average word confidence."""
    lines: list[str] = []
    confidences: list[float] = []
    read = payload.get("readResult") or {}
    for block in read.get("blocks") or []:
        for line in block.get("lines") or []:
            text = (line.get("text") or "").strip()
            if text:
                lines.append(text)
            for word in line.get("words") or []:
                if "confidence" in word:
                    confidences.append(float(word["confidence"]))
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return " ".join(lines), confidence


class AzureVisionProvider:
    """Cloud OCR via Azure AI Vision Image Analysis (``features=read``)."""

    name = "azure_vision"

    def __init__(
        self,
        endpoint: str,
        key: str,
        api_version: str = "2023-10-01",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._key = key
        self._api_version = api_version
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_available(self) -> bool:
        return self._client is not None

    async def initialize(self) -> bool:
        if self._client is not None:
            return True
        if not self._endpoint or not self._key:
            logger.info("Azure Vision endpoint/key not configured; provider disabled")
            return False
        self._client = httpx.AsyncClient(
            base_url=self._endpoint,
            timeout=self._timeout,
            headers={"Ocp-Apim-Subscription-Key": self._key},
            transport=self._transport,
        )
        logger.info("Azure Vision provider ready (endpoint=%s)", self._endpoint)
        return True

    async def extract(self, image: bytes) -> ExtractionResult:
        if self._client is None:
            raise ProviderFault("Azure Vision provider not initialized")

        started = time.perf_counter()
        resp = await self._client.post(
            "/computervision/imageanalysis:analyze",
            params={"api-version": self._api_version, "features": "read"},
            headers={"Content-Type": "application/octet-stream"},
            content=image,
        )
        if resp.status_code >= 400:
            raise ProviderFault(f"Azure Vision HTTP {resp.status_code}: {resp.text[:200]}")

        text, confidence = parse_read_result(resp.json())
        duration = elapsed_since(started)
        if not text:
            return ExtractionResult(
                success=False, raw_text="", confidence=0.0, provider_name=self.name,
                duration=duration, error="no text detected in image",
            )
        return ExtractionResult(
            success=True,
            raw_text=text,
            processed_text=text.strip(),
            confidence=confidence,
            provider_name=self.name,
            duration=duration,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
