from __future__ import annotations
import logging

from ..core.errors import RelayActuationFault

logger = logging.getLogger(__name__)


class SimulatedRelayActuator:
    actuator_id = "relay_sim_01"

    def __init__(self) -> None:
        self._powered = True
        self.history: list[bool] = []
        self.fail_next: int = 0  # number of upcoming commands to reject

    @property
    def powered(self) -> bool:
        return self._powered

    async def set_power(self, on: bool) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise RelayActuationFault(f"Simulated relay fault (set_power={on})")
        self._powered = bool(on)
        self.history.append(self._powered)
        logger.info("RELAY set_power=%s", "ON" if self._powered else "OFF")
