"""Tests for image preprocessing."""

import cv2
import numpy as np
import pytest

from wellmonitor.core.errors import ConfigInvalid, PreprocessingError
from wellmonitor.domain.config_snapshot import ConfigSnapshot
from wellmonitor.domain.models import Roi
from wellmonitor.extraction.preprocess import crop_to_roi, decode_image, preprocess_frame, preprocess_image


def test_roi_overflow_is_config_invalid():
    """Test x + width > 1 is refused."""
    frame = np.zeros((100, 200, 3), dtype=np.uint8)
    with pytest.raises(ConfigInvalid) as exc_info:
        crop_to_roi(frame, Roi(x=0.7, y=0.1, width=0.5, height=0.2))
    assert any("exceeds 1" in e for e in exc_info.value.errors)


def test_roi_vertical_overflow_is_config_invalid(display_image):
    """Test y + height > 1 is refused before decoding."""
    config = ConfigSnapshot().model_copy(update={"roi": Roi(x=0.0, y=0.9, width=0.5, height=0.2)})
    with pytest.raises(ConfigInvalid):
        preprocess_image(display_image, config)


def test_roi_crop_dimensions():
    """Test the default ROI crops the expected pixel rectangle."""
    frame = np.zeros((200, 400, 3), dtype=np.uint8)
    out = crop_to_roi(frame, Roi())
    assert out.shape[:2] == (40, 200)


def test_snapshot_rejects_bad_roi():
    """Test the snapshot validator catches an overflowing ROI."""
    with pytest.raises(ValueError):
        ConfigSnapshot(roi=Roi(x=0.6, y=0.4, width=0.5, height=0.2))


def test_full_pipeline_outputs_cropped_scaled_png(display_image):
    """Test ROI, grayscale and scaling shape the output."""
    png = preprocess_image(display_image, ConfigSnapshot())
    out = cv2.imdecode(np.frombuffer(png, dtype=np.uint8), cv2.IMREAD_UNCHANGED)

    # 320x240 frame, ROI 160x48, scaled 2x
    assert out.shape == (96, 320)


def test_steps_follow_flags():
    """Test disabled steps are skipped."""
    frame = np.full((120, 160, 3), 128, dtype=np.uint8)
    config = ConfigSnapshot(
        roi_enabled=False, enable_noise_reduction=False, enable_threshold=False, enable_scaling=False,
    )
    out, steps = preprocess_frame(frame, config)
    assert steps == ["grayscale"]
    assert out.shape == (120, 160)


def test_fixed_threshold():
    """Test a non-zero binary threshold is used as is."""
    frame = np.array([[10, 100, 200]] * 3, dtype=np.uint8)
    config = ConfigSnapshot(
        roi_enabled=False, enable_grayscale=False, enable_noise_reduction=False,
        enable_scaling=False, binary_threshold=150,
    )
    out, steps = preprocess_frame(frame, config)
    assert steps == ["threshold(150)"]
    assert out[0].tolist() == [0, 0, 255]


def test_decode_rejects_garbage():
    """Test undecodable bytes raise PreprocessingError."""
    with pytest.raises(PreprocessingError):
        decode_image(b"\x00\x01\x02")
    with pytest.raises(PreprocessingError):
        decode_image(b"")
