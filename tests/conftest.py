import cv2
import numpy as np
import pytest


def make_display_image(width=320, height=240, text="4.2A"):
    """Synthetic LED-display frame: dark background, light digits in the ROI band."""
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    cv2.putText(frame, text, (int(width * 0.3), int(height * 0.55)),
                cv2.FONT_HERSHEY_SIMPLEX, 1.0, (255, 255, 255), 2)
    ok, buf = cv2.imencode(".jpg", frame)
    assert ok
    return buf.tobytes()


@pytest.fixture
def display_image():
    return make_display_image()
