from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import cv2
import pytesseract

from ..core.timeutil import elapsed_since
from ..domain.models import ExtractionResult
from ..extraction.preprocess import decode_image

logger = logging.getLogger(__name__)


@dataclass
class TesseractConfig:
    language: str = "eng"
    oem: int = 3
    psm: int = 7  # single text line
    char_whitelist: str = ""

    def tesseract_args(self) -> str:
        args = f"--oem {self.oem} --psm {self.psm}"
        if self.char_whitelist:
            args += f" -c tessedit_char_whitelist={self.char_whitelist}"
        return args


def clean_text(text: str) -> str:
    return " ".join(text.split())


class TesseractProvider:
    """Local OCR through the tesseract binary (pytesseract)."""

    name = "tesseract"

    def __init__(self, cfg: TesseractConfig = TesseractConfig()) -> None:
        self._cfg = cfg
        self._version: str | None = None

    @property
    def is_available(self) -> bool:
        return self._version is not None

    async def initialize(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            version = await loop.run_in_executor(None, pytesseract.get_tesseract_version)
        except Exception as e:
            logger.warning("Tesseract not usable: %s", e)
            self._version = None
            return False
        self._version = str(version)
        logger.info("Tesseract %s ready (lang=%s psm=%d)", self._version, self._cfg.language, self._cfg.psm)
        return True

    async def extract(self, image: bytes) -> ExtractionResult:
        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        text, confidence = await loop.run_in_executor(None, self.read_image, image)
        duration = elapsed_since(started)

        if not text:
            return ExtractionResult(
                success=False, raw_text="", confidence=0.0, provider_name=self.name,
                duration=duration, error="no text extracted from image",
            )
        return ExtractionResult(
            success=True,
            raw_text=text,
            processed_text=clean_text(text),
            confidence=confidence,
            provider_name=self.name,
            duration=duration,
        )

    def read_image(self, image: bytes) -> tuple[str, float]:
        frame = decode_image(image)
        if frame.ndim == 3:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        data = pytesseract.image_to_data(
            frame,
            lang=self._cfg.language,
            config=self._cfg.tesseract_args(),
            output_type=pytesseract.Output.DICT,
        )

        words: list[str] = []
        confidences: list[float] = []
        for word, conf in zip(data.get("text", []), data.get("conf", [])):
            word = str(word).strip()
            conf = float(conf)
            if not word or conf < 0:
                continue
            words.append(word)
            confidences.append(conf)

        text = " ".join(words)
        confidence = (sum(confidences) / len(confidences) / 100.0) if confidences else 0.0
        return text, max(0.0, min(1.0, confidence))

    async def close(self) -> None:
        self._version = None
