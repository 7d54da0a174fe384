from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.errors import CaptureFault, NoProviderAvailable, RelayActuationFault
from ..core.timeutil import elapsed_since, now_utc
from ..domain.classifier import classify
from ..domain.config_snapshot import ConfigSnapshot
from ..domain.interfaces import ConfigSource, ImageSource, PersistenceSink
from ..domain.models import PumpState, Reading, RelayAction
from ..domain.safety import SafetyCycleController
from ..extraction.orchestrator import ExtractionOrchestrator


logger = logging.getLogger(__name__)


@dataclass
class LiveState:
    last_reading: Optional[Reading] = None
    last_action: Optional[RelayAction] = None
    cycles_completed: int = 0
    cycles_failed: int = 0
    cycles_skipped: int = 0
    consecutive_dry: int = 0
    low_confidence: bool = False
    running: bool = False
    fatal_error: Optional[str] = None


class MonitoringLoop:
    """Capture → extract → classify → safety gate → persist, once per interval."""

    def __init__(
        self,
        image_source: ImageSource,
        orchestrator: ExtractionOrchestrator,
        controller: SafetyCycleController,
        sink: PersistenceSink,
        config_source: ConfigSource,
        clock: Callable = now_utc,
    ) -> None:
        self._image_source = image_source
        self._orchestrator = orchestrator
        self._controller = controller
        self._sink = sink
        self._config = config_source
        self._clock = clock

        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self._pending: set[asyncio.Task] = set()

        self.live = LiveState()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    async def start(self) -> None:
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="monitoring_loop")

    async def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is not None:
            try:
                await task
            except RelayActuationFault:
                pass  # already logged and recorded in live.fatal_error
        await self.drain()

    async def drain(self) -> None:
        """Wait for in-flight persistence writes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self) -> None:
        self.live.running = True
        logger.info("Monitoring loop started (interval=%.0fs)", self._config.current().monitoring_interval_seconds)
        try:
            while not self._stop.is_set():
                try:
                    await self.run_cycle()
                except RelayActuationFault as e:
                    self.live.fatal_error = str(e)
                    logger.critical("Stopping monitoring: %s", e)
                    raise

                # sleep with cancellation awareness
                interval = self._config.current().monitoring_interval_seconds
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.live.running = False
            logger.info("Monitoring loop stopped")

    async def run_cycle(self) -> Optional[Reading]:
        """Run one cycle. Only ``RelayActuationFault`` escapes."""
        config = self._config.current()
        stage = "capture"
        try:
            try:
                image = await self._image_source.capture()
            except CaptureFault as e:
                self.live.cycles_skipped += 1
                logger.warning("Capture failed, skipping cycle: %s", e)
                return None

            stage = "extract"
            reading = await self._read_display(image, config)
            self.live.last_reading = reading
            self._track_dry(reading, config)

            stage = "evaluate"
            try:
                action = await self._controller.evaluate(reading.status, reading.timestamp_utc, config, self._stop)
            except RelayActuationFault as e:
                self.live.cycles_failed += 1
                self.live.last_action = e.action
                self._persist(reading, e.action)
                raise

            if action is not None:
                self.live.last_action = action

            stage = "persist"
            self._persist(reading, action)
            self.live.cycles_completed += 1
            logger.debug(
                "Cycle done: status=%s amps=%s conf=%.2f provider=%s",
                reading.status.value, reading.current_amps, reading.confidence, reading.provider_used,
            )
            return reading

        except RelayActuationFault:
            raise
        except Exception as e:
            self.live.cycles_failed += 1
            logger.exception("Monitoring cycle failed at stage=%s: %s", stage, e)
            return None

    async def _read_display(self, image: bytes, config: ConfigSnapshot) -> Reading:
        started = time.perf_counter()
        try:
            result = await self._orchestrator.extract(image, config)
        except NoProviderAvailable as e:
            self.live.low_confidence = False
            logger.warning("%s", e)
            return Reading(
                timestamp_utc=self._clock(),
                current_amps=None,
                status=PumpState.UNKNOWN,
                raw_text="",
                confidence=0.0,
                provider_used=None,
                processing_duration=elapsed_since(started),
                error=str(e),
            )

        self.live.low_confidence = not result.accepted
        if not result.accepted:
            logger.warning(
                "Using low-confidence text %r from %s (%.2f < %.2f)",
                result.text, result.provider_name, result.confidence, config.minimum_confidence,
            )

        amps, status = classify(result.text, result.confidence, config)
        return Reading(
            timestamp_utc=self._clock(),
            current_amps=amps,
            status=status,
            raw_text=result.raw_text,
            confidence=result.confidence,
            provider_used=result.provider_name,
            processing_duration=max(result.duration, elapsed_since(started)),
        )

    def _track_dry(self, reading: Reading, config: ConfigSnapshot) -> None:
        if reading.status is not PumpState.DRY:
            self.live.consecutive_dry = 0
            return
        self.live.consecutive_dry += 1
        if self.live.consecutive_dry == config.dry_alert_threshold:
            logger.warning(
                "ALERT: dry condition on %d consecutive readings (no automatic cycling=%s)",
                self.live.consecutive_dry, not config.enable_dry_condition_cycling,
            )

    def _persist(self, reading: Reading, action: Optional[RelayAction]) -> None:
        """Hand off to the sink without blocking the loop."""
        task = asyncio.create_task(self._sink.append(reading, action), name="persist_reading")
        self._pending.add(task)
        task.add_done_callback(self._on_persisted)

    def _on_persisted(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Persisting reading failed: %s", exc, exc_info=exc)
