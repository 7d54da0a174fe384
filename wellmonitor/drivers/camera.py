from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from ..core.errors import CaptureFault

logger = logging.getLogger(__name__)

CAMERA_COMMANDS = ("libcamera-still", "rpicam-still")


@dataclass
class CameraConfig:
    width: int = 1920
    height: int = 1080
    quality: int = 95
    warmup_ms: int = 2000
    rotation: int = 0
    timeout_s: float = 30.0


def build_camera_args(cfg: CameraConfig, output: Path) -> list[str]:
    args = [
        "--output", str(output),
        "--width", str(cfg.width),
        "--height", str(cfg.height),
        "--quality", str(cfg.quality),
        "--timeout", str(cfg.warmup_ms),
        "--encoding", "jpg",
        "--nopreview",
    ]
    # libcamera only supports 0 and 180
    if cfg.rotation == 180:
        args += ["--rotation", "180"]
    return args


class LibcameraImageSource:
    """Stills from the Pi camera via ``libcamera-still``, falling back to ``rpicam-still``."""

    source_id = "libcamera"

    def __init__(self, cfg: CameraConfig = CameraConfig()) -> None:
        self._cfg = cfg

    async def capture(self) -> bytes:
        fd, name = tempfile.mkstemp(suffix=".jpg", prefix="wellmonitor_")
        os.close(fd)
        path = Path(name)
        try:
            errors: list[str] = []
            for command in CAMERA_COMMANDS:
                try:
                    await self._run(command, path)
                except CaptureFault as e:
                    errors.append(str(e))
                    logger.warning("%s failed, trying next camera command: %s", command, e)
                    continue
                data = path.read_bytes()
                if not data:
                    errors.append(f"{command} wrote an empty file")
                    continue
                logger.debug("Captured %d bytes with %s", len(data), command)
                return data
            raise CaptureFault("; ".join(errors) or "no camera command succeeded")
        finally:
            path.unlink(missing_ok=True)

    async def _run(self, command: str, output: Path) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                command, *build_camera_args(self._cfg, output),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CaptureFault(f"{command} not found") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._cfg.timeout_s)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise CaptureFault(f"{command} timed out after {self._cfg.timeout_s:.0f}s") from e

        if proc.returncode != 0:
            tail = (stderr or b"").decode("utf-8", "replace").strip().splitlines()[-1:]
            raise CaptureFault(f"{command} exited with {proc.returncode}: {' '.join(tail)}")
