from __future__ import annotations

import logging

import cv2
import numpy as np

from ..core.errors import ConfigInvalid, PreprocessingError
from ..domain.config_snapshot import ConfigSnapshot
from ..domain.models import Roi

logger = logging.getLogger(__name__)


def decode_image(image: bytes) -> np.ndarray:
    if not image:
        raise PreprocessingError("Empty image payload")
    frame = cv2.imdecode(np.frombuffer(image, dtype=np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        raise PreprocessingError(f"Could not decode image ({len(image)} bytes)")
    return frame


def encode_png(frame: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", frame)
    if not ok:
        raise PreprocessingError("Could not encode preprocessed image")
    return buf.tobytes()


def crop_to_roi(frame: np.ndarray, roi: Roi) -> np.ndarray:
    """Crop ``frame`` to a normalized ROI; refuses rectangles that leave the frame."""
    problems = roi.problems()
    if problems:
        raise ConfigInvalid(problems)

    height, width = frame.shape[:2]
    x, y, w, h = roi.to_pixels(width, height)
    return frame[y:y + h, x:x + w]


def preprocess_frame(frame: np.ndarray, config: ConfigSnapshot) -> tuple[np.ndarray, list[str]]:
    steps: list[str] = []
    out = frame

    if config.roi_enabled:
        out = crop_to_roi(out, config.roi)
        steps.append(f"roi({out.shape[1]}x{out.shape[0]})")

    if config.enable_grayscale and out.ndim == 3:
        out = cv2.cvtColor(out, cv2.COLOR_BGR2GRAY)
        steps.append("grayscale")

    if config.enable_noise_reduction:
        out = cv2.medianBlur(out, 3)
        steps.append("median_blur")

    if config.enable_threshold:
        gray = out if out.ndim == 2 else cv2.cvtColor(out, cv2.COLOR_BGR2GRAY)
        if config.binary_threshold == 0:
            _, out = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
            steps.append("threshold(otsu)")
        else:
            _, out = cv2.threshold(gray, config.binary_threshold, 255, cv2.THRESH_BINARY)
            steps.append(f"threshold({config.binary_threshold})")

    if config.enable_scaling and config.scale_factor != 1.0:
        out = cv2.resize(
            out, None, fx=config.scale_factor, fy=config.scale_factor,
            interpolation=cv2.INTER_CUBIC,
        )
        steps.append(f"scale({config.scale_factor}x)")

    return out, steps


def preprocess_image(image: bytes, config: ConfigSnapshot) -> bytes:
    """Decode, crop and clean up a captured frame; returns PNG bytes for the providers."""
    # Fail fast on a bad ROI before spending time on decoding.
    if config.roi_enabled and config.roi.problems():
        raise ConfigInvalid(config.roi.problems())

    frame = decode_image(image)
    processed, steps = preprocess_frame(frame, config)
    logger.debug("Preprocessing applied: %s", ", ".join(steps) or "none")
    return encode_png(processed)
