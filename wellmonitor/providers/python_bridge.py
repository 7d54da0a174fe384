from __future__ import annotations

import asyncio
import logging
import sys
import time
from typing import Optional, Sequence

from ..bridge import protocol
from ..core.errors import ProviderFault
from ..domain.models import ExtractionResult

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = (sys.executable, "-m", "wellmonitor.bridge.ocr_server")


class PythonBridgeProvider:
    """OCR through a long-running helper process speaking line-delimited JSON.

    One process is kept alive and reused. It is health-probed whenever it is
    (re)spawned, and respawned on the next request after it exits or after a
    request was abandoned mid-flight. Requests are serialized.

    A provider whose probe failed reports unavailable until ``retry_interval``
    has passed; the next request then spawns and probes the server again.
    """

    name = "python_bridge"

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_COMMAND,
        probe_timeout: float = 15.0,
        retry_interval: float = 60.0,
    ) -> None:
        self._command = list(command) or list(DEFAULT_COMMAND)
        self._probe_timeout = probe_timeout
        self._retry_interval = retry_interval
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._lock = asyncio.Lock()
        self._ready = False
        self._retry_at: Optional[float] = None

    @property
    def is_available(self) -> bool:
        if self._ready:
            return True
        return self._retry_at is not None and time.monotonic() >= self._retry_at

    async def initialize(self) -> bool:
        self._ready = await self.health()
        if not self._ready:
            self._schedule_retry()
        return self._ready

    async def health(self) -> bool:
        async with self._lock:
            try:
                await self._ensure_started()
                reply = await asyncio.wait_for(self._request(protocol.HEALTH_REQUEST), timeout=self._probe_timeout)
            except Exception as e:
                logger.warning("OCR bridge health probe failed (%s): %s", " ".join(self._command), e)
                await self._terminate()
                return False
        return reply.get("status") == protocol.HEALTHY["status"]

    async def extract(self, image: bytes) -> ExtractionResult:
        async with self._lock:
            try:
                await self._ensure_started()
                if not self._ready:
                    logger.info("OCR bridge is healthy again")
                    self._ready = True
                    self._retry_at = None
                reply = await self._request(protocol.image_request(image))
            except asyncio.CancelledError:
                # A timed-out request leaves an unread reply in the pipe.
                await self._terminate()
                raise
            except ProviderFault:
                await self._terminate()
                if not self._ready:
                    self._schedule_retry()
                raise
            except Exception as e:
                await self._terminate()
                if not self._ready:
                    self._schedule_retry()
                raise ProviderFault(f"OCR bridge error: {e}") from e
        return protocol.to_result(reply, self.name)

    def _schedule_retry(self) -> None:
        self._retry_at = time.monotonic() + self._retry_interval
        logger.info("OCR bridge unavailable; next probe in %.0fs", self._retry_interval)

    async def _ensure_started(self) -> None:
        if self._proc is not None and self._proc.returncode is None:
            return
        if self._proc is not None:
            logger.warning("OCR bridge exited with code %s; restarting", self._proc.returncode)
        self._proc = await asyncio.create_subprocess_exec(
            *self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
        )
        reply = await asyncio.wait_for(self._request(protocol.HEALTH_REQUEST), timeout=self._probe_timeout)
        if reply.get("status") != protocol.HEALTHY["status"]:
            raise ProviderFault(f"OCR bridge reported unhealthy: {reply}")
        logger.info("OCR bridge started (pid=%s)", self._proc.pid)

    async def _request(self, obj: dict) -> dict:
        proc = self._proc
        if proc is None or proc.stdin is None or proc.stdout is None:
            raise ProviderFault("OCR bridge not running")
        proc.stdin.write(protocol.encode_line(obj))
        await proc.stdin.drain()
        line = await proc.stdout.readline()
        return protocol.parse_line(line)

    async def _terminate(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None or proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()

    async def close(self) -> None:
        async with self._lock:
            proc = self._proc
            if proc is not None and proc.returncode is None and proc.stdin is not None:
                proc.stdin.close()
                try:
                    await asyncio.wait_for(proc.wait(), timeout=5.0)
                except asyncio.TimeoutError:
                    logger.warning("OCR bridge did not exit on EOF; killing")
            await self._terminate()
        self._ready = False
        self._retry_at = None
