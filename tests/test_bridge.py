"""Tests for the out-of-process OCR bridge."""

import asyncio
import base64
import io
import json
import sys
import textwrap

import pytest

from wellmonitor.bridge import protocol
from wellmonitor.bridge.ocr_server import handle, serve
from wellmonitor.core.errors import ProviderFault
from wellmonitor.providers.python_bridge import PythonBridgeProvider

FAKE_SERVER = textwrap.dedent(
    """
    import base64, json, sys

    for line in sys.stdin:
        req = json.loads(line)
        if "image" not in req:
            reply = {"status": "healthy"}
        else:
            image = base64.b64decode(req["image"]).decode()
            if image == "crash":
                sys.exit(3)
            if image == "blank":
                reply = {"success": False, "error": "no text extracted from image"}
            else:
                reply = {"success": True, "rawText": " " + image + " ", "processedText": image,
                         "confidence": 0.91, "provider": "fake", "processingDurationMs": 12}
        sys.stdout.write(json.dumps(reply) + "\\n")
        sys.stdout.flush()
    """
)


@pytest.fixture
def fake_server(tmp_path):
    path = tmp_path / "fake_ocr_server.py"
    path.write_text(FAKE_SERVER)
    return [sys.executable, str(path)]


@pytest.mark.asyncio
async def test_bridge_round_trip(fake_server):
    """Test a healthy server returns text and confidence."""
    provider = PythonBridgeProvider(fake_server)
    try:
        assert await provider.initialize()
        assert provider.is_available

        result = await provider.extract(b"4.2A")

        assert result.success
        assert result.text == "4.2A"
        assert result.raw_text == " 4.2A "
        assert result.confidence == pytest.approx(0.91)
        assert result.provider_name == "python_bridge"
        assert result.duration.total_seconds() == pytest.approx(0.012)
    finally:
        await provider.close()
    assert not provider.is_available


@pytest.mark.asyncio
async def test_bridge_failure_response(fake_server):
    """Test a failure line becomes an unsuccessful result."""
    provider = PythonBridgeProvider(fake_server)
    try:
        await provider.initialize()
        result = await provider.extract(b"blank")
        assert not result.success
        assert result.error == "no text extracted from image"
    finally:
        await provider.close()


@pytest.mark.asyncio
async def test_bridge_restarts_after_crash(fake_server):
    """Test a crashed server raises once and is respawned on the next request."""
    provider = PythonBridgeProvider(fake_server)
    try:
        await provider.initialize()
        with pytest.raises(ProviderFault):
            await provider.extract(b"crash")

        assert provider.is_available
        result = await provider.extract(b"5.0A")
        assert result.success and result.text == "5.0A"
    finally:
        await provider.close()


@pytest.mark.asyncio
async def test_bridge_missing_command_is_unavailable(tmp_path):
    """Test a command that cannot start leaves the provider unavailable."""
    provider = PythonBridgeProvider([str(tmp_path / "no-such-binary")])
    assert not await provider.initialize()
    assert not provider.is_available
    await provider.close()


class FakeEngine:
    def __init__(self, text="4.2A", confidence=0.88, error=None):
        self.text = text
        self.confidence = confidence
        self.error = error

    def read_image(self, image):
        if self.error:
            raise self.error
        return self.text, self.confidence


def test_server_health_probe():
    """Test a request without an image answers the health probe."""
    assert handle({"command": "health"}, FakeEngine()) == {"status": "healthy"}


def test_server_success_response():
    """Test the success line carries the wire field names."""
    reply = handle(protocol.image_request(b"png"), FakeEngine(text="4.2  A"))
    assert reply["success"] is True
    assert reply["rawText"] == "4.2  A"
    assert reply["processedText"] == "4.2 A"
    assert reply["confidence"] == 0.88
    assert reply["provider"] == "tesseract"
    assert isinstance(reply["processingDurationMs"], int)


def test_server_failure_responses():
    """Test bad input and engine errors become failure lines."""
    assert handle({"image": "!!!"}, FakeEngine())["success"] is False
    assert handle(protocol.image_request(b"x"), FakeEngine(text=""))["error"] == "no text extracted from image"
    reply = handle(protocol.image_request(b"x"), FakeEngine(error=RuntimeError("tesseract missing")))
    assert reply == {"success": False, "error": "tesseract missing"}


def test_serve_line_loop():
    """Test one response line per request line, skipping blanks."""
    stdin = io.StringIO(
        json.dumps({"command": "health"}) + "\n\n"
        + json.dumps({"image": base64.b64encode(b"x").decode()}) + "\n"
        + "garbage\n"
    )
    stdout = io.StringIO()

    assert serve(stdin, stdout, FakeEngine()) == 0

    lines = [json.loads(l) for l in stdout.getvalue().splitlines()]
    assert len(lines) == 3
    assert lines[0] == {"status": "healthy"}
    assert lines[1]["success"] is True
    assert lines[2]["success"] is False


def test_parse_line_rejects_bad_output():
    """Test malformed bridge output raises ProviderFault."""
    with pytest.raises(ProviderFault):
        protocol.parse_line(b"")
    with pytest.raises(ProviderFault):
        protocol.parse_line(b"not json\n")
    with pytest.raises(ProviderFault):
        protocol.parse_line(b"[1, 2]\n")


@pytest.mark.asyncio
async def test_bridge_recovers_after_failed_boot_probe(tmp_path):
    """Test a bridge that failed its first probe is probed again after the retry interval."""
    server = tmp_path / "gated_ocr_server.py"
    server.write_text("import os, sys\nif not os.path.exists(sys.argv[1]):\n    sys.exit(1)\n" + FAKE_SERVER)
    flag = tmp_path / "tesseract-installed"
    provider = PythonBridgeProvider([sys.executable, str(server), str(flag)], retry_interval=0.05)
    try:
        assert not await provider.initialize()
        assert not provider.is_available

        # retry window reached but the server still cannot start
        await asyncio.sleep(0.1)
        assert provider.is_available
        with pytest.raises(ProviderFault):
            await provider.extract(b"4.2A")
        assert not provider.is_available

        flag.write_text("ok")
        await asyncio.sleep(0.1)
        assert provider.is_available
        result = await provider.extract(b"4.2A")
        assert result.success and result.text == "4.2A"
        assert provider.is_available
    finally:
        await provider.close()
