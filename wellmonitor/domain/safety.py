from __future__ import annotations
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from ..core.errors import RelayActuationFault
from .config_snapshot import ConfigSnapshot
from .interfaces import RelayActuator
from .models import ActionKind, ActionOutcome, ControllerPhase, PumpState, RelayAction

logger = logging.getLogger(__name__)

ROLLING_WINDOW = timedelta(hours=24)

REASON_DAILY_CAP = "daily cap reached"
REASON_COOLDOWN = "cooldown active"
REASON_AUTO_DISABLED = "auto actions disabled"
REASON_FAULT = "relay actuation failed — hardware fault"


@dataclass
class ControllerState:
    last_cycle_utc: Optional[datetime] = None
    cycles_in_window: deque = field(default_factory=deque)
    cycling: bool = False


class SafetyCycleController:
    """Gate between a detected pump state and a physical power cycle.

    Only ``Cycling`` is held as state; ``Cooldown`` and ``Suspended`` are
    derived on every evaluation from the last cycle time and the 24h window.
    """

    def __init__(self, actuator: RelayActuator) -> None:
        self._actuator = actuator
        self._state = ControllerState()

    @property
    def last_cycle_utc(self) -> Optional[datetime]:
        return self._state.last_cycle_utc

    def cycles_in_window(self, now_utc: datetime) -> int:
        self._prune(now_utc)
        return len(self._state.cycles_in_window)

    def phase(self, now_utc: datetime, config: ConfigSnapshot) -> ControllerPhase:
        if self._state.cycling:
            return ControllerPhase.CYCLING
        if self.cycles_in_window(now_utc) >= config.max_daily_cycles:
            return ControllerPhase.SUSPENDED
        if self._in_cooldown(now_utc, config):
            return ControllerPhase.COOLDOWN
        return ControllerPhase.ARMED

    def _prune(self, now_utc: datetime) -> None:
        window = self._state.cycles_in_window
        while window and now_utc - window[0] >= ROLLING_WINDOW:
            window.popleft()

    def _in_cooldown(self, now_utc: datetime, config: ConfigSnapshot) -> bool:
        last = self._state.last_cycle_utc
        return last is not None and (now_utc - last) < config.minimum_cycle_interval

    def _is_trigger(self, status: PumpState, config: ConfigSnapshot) -> bool:
        if status is PumpState.RAPID_CYCLE:
            return True
        return status is PumpState.DRY and config.enable_dry_condition_cycling

    async def evaluate(
        self,
        status: PumpState,
        now_utc: datetime,
        config: ConfigSnapshot,
        stop_event: Optional[asyncio.Event] = None,
    ) -> Optional[RelayAction]:
        if not self._is_trigger(status, config):
            return None

        self._prune(now_utc)

        if not config.enable_auto_actions:
            return self._suppress(now_utc, status, REASON_AUTO_DISABLED)

        if len(self._state.cycles_in_window) >= config.max_daily_cycles:
            return self._suppress(now_utc, status, REASON_DAILY_CAP)

        if self._in_cooldown(now_utc, config):
            return self._suppress(now_utc, status, REASON_COOLDOWN)

        return await self._power_cycle(status, now_utc, config, stop_event)

    def _suppress(self, now_utc: datetime, status: PumpState, reason: str) -> RelayAction:
        logger.warning(
            "Power cycle suppressed for %s: %s (cycles_24h=%d last=%s)",
            status.value, reason, len(self._state.cycles_in_window),
            self._state.last_cycle_utc.isoformat() if self._state.last_cycle_utc else None,
        )
        return RelayAction(now_utc, ActionKind.SUPPRESSED, reason, ActionOutcome.COMPLETED)

    async def _power_cycle(
        self,
        status: PumpState,
        now_utc: datetime,
        config: ConfigSnapshot,
        stop_event: Optional[asyncio.Event],
    ) -> RelayAction:
        reason = f"{status.value} detected"
        delay = config.power_cycle_delay.total_seconds()
        logger.warning("Power cycling pump: %s (off for %.1fs)", reason, delay)

        self._state.cycling = True
        off_error: Optional[Exception] = None
        try:
            try:
                await self._actuator.set_power(False)
                await _suspend(delay, stop_event)
            except Exception as e:
                off_error = e
                logger.error("Relay OFF failed on %s: %s", self._actuator.actuator_id, e)
            finally:
                # Runs after a failed OFF, on shutdown and on task cancellation,
                # including cancellation while the OFF command is in flight.
                await self._restore_power(now_utc, off_error)
                if off_error is None:
                    self._record_cycle(now_utc, config)
        finally:
            self._state.cycling = False

        if off_error is not None:
            raise self._fault(now_utc, off_error) from off_error
        return RelayAction(now_utc, ActionKind.POWER_CYCLE, reason, ActionOutcome.COMPLETED)

    async def _restore_power(self, now_utc: datetime, off_error: Optional[Exception]) -> None:
        try:
            await asyncio.shield(self._actuator.set_power(True))
        except Exception as e:
            if off_error is not None:
                logger.exception("Relay ON after failed OFF also failed")
                return
            logger.critical("Relay ON failed on %s, pump may be unpowered: %s", self._actuator.actuator_id, e)
            raise self._fault(now_utc, e) from e

    def _record_cycle(self, now_utc: datetime, config: ConfigSnapshot) -> None:
        self._state.cycles_in_window.append(now_utc)
        self._state.last_cycle_utc = now_utc
        logger.info(
            "Power cycle completed (cycles_24h=%d/%d)",
            len(self._state.cycles_in_window), config.max_daily_cycles,
        )

    def _fault(self, now_utc: datetime, exc: Exception) -> RelayActuationFault:
        reason = f"{REASON_FAULT}: {exc}"
        action = RelayAction(now_utc, ActionKind.POWER_CYCLE, reason, ActionOutcome.FAILED)
        return RelayActuationFault(reason, action)


async def _suspend(seconds: float, stop_event: Optional[asyncio.Event]) -> None:
    """Timed wait that returns early when ``stop_event`` is set."""
    if seconds <= 0:
        return
    if stop_event is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
        logger.info("Shutdown requested during power cycle; restoring power now")
    except asyncio.TimeoutError:
        pass
