from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Iterable, Optional

from ..core.errors import NoProviderAvailable
from ..core.timeutil import elapsed_since
from ..domain.config_snapshot import ConfigSnapshot
from ..domain.interfaces import TextExtractionProvider
from ..domain.models import ExtractionResult
from .preprocess import preprocess_image

logger = logging.getLogger(__name__)


@dataclass
class ProviderStats:
    attempts: int = 0
    successes: int = 0
    mean_confidence: float = 0.0
    mean_duration_ms: float = 0.0
    last_error: Optional[str] = None

    @property
    def success_rate(self) -> float:
        return self.successes / self.attempts if self.attempts else 0.0

    def record(self, result: ExtractionResult) -> None:
        self.attempts += 1
        duration_ms = result.duration.total_seconds() * 1000.0
        self.mean_duration_ms += (duration_ms - self.mean_duration_ms) / self.attempts
        if result.success:
            self.successes += 1
            self.mean_confidence += (result.confidence - self.mean_confidence) / self.successes
        else:
            self.last_error = result.error


class ExtractionOrchestrator:
    """Runs preprocessing and the provider fallback chain for one frame.

    Providers are tried strictly in ``config.provider_priority`` order; the
    statistics collected here are diagnostics only and never reorder them.
    """

    def __init__(self, providers: Iterable[TextExtractionProvider]) -> None:
        self._providers: dict[str, TextExtractionProvider] = {p.name: p for p in providers}
        self._stats: dict[str, ProviderStats] = {name: ProviderStats() for name in self._providers}

    @property
    def providers(self) -> dict[str, TextExtractionProvider]:
        return dict(self._providers)

    async def initialize(self) -> dict[str, bool]:
        ready: dict[str, bool] = {}
        for name, provider in self._providers.items():
            try:
                ready[name] = bool(await provider.initialize())
            except Exception as e:
                logger.warning("OCR provider %s failed to initialize: %s", name, e)
                ready[name] = False
        logger.info("OCR providers: %s", ", ".join(f"{n}={'up' if ok else 'down'}" for n, ok in ready.items()))
        return ready

    async def close(self) -> None:
        for name, provider in self._providers.items():
            try:
                await provider.close()
            except Exception:
                logger.warning("Error closing OCR provider %s", name, exc_info=True)

    def statistics(self) -> dict[str, ProviderStats]:
        return {name: replace(stats) for name, stats in self._stats.items()}

    async def extract(self, image: bytes, config: ConfigSnapshot) -> ExtractionResult:
        loop = asyncio.get_running_loop()
        prepared = await loop.run_in_executor(None, preprocess_image, image, config)

        started = time.perf_counter()
        attempts: list[ExtractionResult] = []

        for name in config.provider_priority:
            timeout = config.provider_timeout_seconds
            if config.extraction_budget_seconds is not None:
                remaining = config.extraction_budget_seconds - (time.perf_counter() - started)
                if remaining <= 0:
                    logger.warning("Extraction budget exhausted before provider %s", name)
                    attempts.append(ExtractionResult.failure(name, "extraction budget exhausted"))
                    break
                timeout = min(timeout, remaining)

            result = await self._attempt(name, prepared, timeout)
            attempts.append(result)

            if result.success and result.confidence >= config.minimum_confidence:
                logger.debug(
                    "Provider %s accepted: text=%r confidence=%.2f",
                    name, result.text, result.confidence,
                )
                return replace(result, accepted=True)

            if result.success:
                logger.info(
                    "Provider %s below minimum confidence (%.2f < %.2f), trying next",
                    name, result.confidence, config.minimum_confidence,
                )

        successes = [a for a in attempts if a.success]
        if not successes:
            raise NoProviderAvailable(attempts)

        best = max(successes, key=lambda a: a.confidence)
        logger.warning(
            "No provider met minimum confidence %.2f; using %s at %.2f",
            config.minimum_confidence, best.provider_name, best.confidence,
        )
        return replace(best, accepted=False)

    async def _attempt(self, name: str, image: bytes, timeout: float) -> ExtractionResult:
        provider = self._providers.get(name)
        if provider is None:
            logger.warning("OCR provider %s is not registered", name)
            return ExtractionResult.failure(name, "provider not registered")

        if not provider.is_available:
            result = ExtractionResult.failure(name, "provider unavailable")
            self._stats[name].record(result)
            return result

        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(provider.extract(image), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("OCR provider %s timed out after %.1fs", name, timeout)
            result = ExtractionResult.failure(name, f"timed out after {timeout:.1f}s", elapsed_since(started))
        except Exception as e:
            logger.warning("OCR provider %s failed: %s", name, e)
            result = ExtractionResult.failure(name, str(e) or type(e).__name__, elapsed_since(started))
        else:
            if result.duration == timedelta(0):
                result = replace(result, duration=elapsed_since(started))
            if result.provider_name != name:
                result = replace(result, provider_name=name)

        self._stats[name].record(result)
        return result
