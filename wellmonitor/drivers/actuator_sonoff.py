from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..core.errors import RelayActuationFault

logger = logging.getLogger(__name__)


class SonoffRelayActuator:
    """Pump power relay on a Sonoff BASICR3 in eWeLink DIY mode."""

    actuator_id = "sonoff_basicr3"

    def __init__(
        self,
        ip: str = "192.168.1.19",
        port: int = 8081,
        device_id: str = "1000b8d61a",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = f"http://{ip}:{port}"
        self._device_id = device_id
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout, transport=self._transport)

    async def set_power(self, on: bool) -> None:
        switch_val = "on" if on else "off"
        try:
            async with self._client() as client:
                resp = await client.post(
                    "/zeroconf/switch",
                    json={
                        "deviceid": self._device_id,
                        "data": {"switch": switch_val},
                    },
                )
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RelayActuationFault(f"Sonoff switch {switch_val} failed: {e}") from e

        # DIY mode reports device-side failures with HTTP 200 and a non-zero error code
        if body.get("error", 0) != 0:
            raise RelayActuationFault(f"Sonoff switch {switch_val} rejected: error={body.get('error')}")

        logger.info("Sonoff set_power=%s", switch_val)
