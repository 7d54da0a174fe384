from __future__ import annotations
import asyncio
from pathlib import Path
from typing import Optional

from ..core.errors import CaptureFault


class FileImageSource:
    """Serves a still image from disk in place of the camera (development mode).

    ``set_frame`` swaps in in-memory bytes, which is how tests and the
    simulation replay recorded display frames.
    """

    source_id = "file_sim"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._frame: Optional[bytes] = None
        self._enabled = True

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def set_frame(self, data: Optional[bytes]) -> None:
        self._frame = data

    async def capture(self) -> bytes:
        if not self._enabled:
            raise CaptureFault("Simulated camera disabled")
        if self._frame is not None:
            return self._frame
        try:
            return await asyncio.get_running_loop().run_in_executor(None, self._path.read_bytes)
        except OSError as e:
            raise CaptureFault(f"Cannot read simulated frame {self._path}: {e}") from e
