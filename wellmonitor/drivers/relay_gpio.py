from __future__ import annotations

import asyncio
import logging

from ..core.errors import RelayActuationFault

try:
    import RPi.GPIO as GPIO
except ImportError:  # pragma: no cover - expected on non-Pi dev systems
    GPIO = None

logger = logging.getLogger(__name__)


def _require_gpio():
    if GPIO is None:
        raise RelayActuationFault("RPi.GPIO is not installed; relay_mode=gpio needs a Raspberry Pi")
    return GPIO


class GpioRelayActuator:
    """Relay on a single GPIO output (BCM numbering). Pump powered at rest."""

    actuator_id = "relay_gpio"

    def __init__(self, pin: int = 17, active_high: bool = True) -> None:
        self._pin = pin
        self._active_high = active_high
        self._setup_done = False

    def setup(self) -> None:
        gpio = _require_gpio()
        gpio.setmode(gpio.BCM)
        gpio.setwarnings(False)
        gpio.setup(self._pin, gpio.OUT, initial=self._level(True))
        self._setup_done = True
        logger.info("GPIO relay on pin %d (active_high=%s)", self._pin, self._active_high)

    def _level(self, on: bool) -> int:
        gpio = _require_gpio()
        return gpio.HIGH if on == self._active_high else gpio.LOW

    def _write(self, on: bool) -> None:
        if not self._setup_done:
            self.setup()
        gpio = _require_gpio()
        gpio.output(self._pin, self._level(on))
        if gpio.input(self._pin) != self._level(on):
            raise RelayActuationFault(f"GPIO pin {self._pin} did not latch {'ON' if on else 'OFF'}")

    async def set_power(self, on: bool) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write, on)
        except RelayActuationFault:
            raise
        except Exception as e:
            raise RelayActuationFault(f"GPIO write failed on pin {self._pin}: {e}") from e
        logger.info("GPIO relay set_power=%s", "ON" if on else "OFF")

    def cleanup(self) -> None:
        if GPIO is not None and self._setup_done:
            GPIO.cleanup(self._pin)
            self._setup_done = False
