from __future__ import annotations

from ..core.config import Settings, settings as default_settings
from ..domain.interfaces import ImageSource, RelayActuator
from ..drivers.actuators_sim import SimulatedRelayActuator
from ..drivers.actuator_sonoff import SonoffRelayActuator
from ..drivers.camera import CameraConfig, LibcameraImageSource
from ..drivers.image_sim import FileImageSource
from ..drivers.relay_gpio import GpioRelayActuator
from ..extraction.orchestrator import ExtractionOrchestrator
from ..providers.azure_vision import AzureVisionProvider
from ..providers.python_bridge import DEFAULT_COMMAND, PythonBridgeProvider
from ..providers.tesseract import TesseractConfig, TesseractProvider


def build_image_source(settings: Settings = default_settings) -> ImageSource:
    if settings.image_source.lower() == "camera":
        return LibcameraImageSource(
            CameraConfig(
                width=settings.camera_width,
                height=settings.camera_height,
                quality=settings.camera_quality,
                warmup_ms=settings.camera_warmup_ms,
                rotation=settings.camera_rotation,
                timeout_s=settings.camera_timeout_seconds,
            )
        )
    # default to sim
    return FileImageSource(settings.sim_image_path)


def build_actuator(settings: Settings = default_settings) -> RelayActuator:
    mode = settings.relay_mode.lower()
    if mode == "gpio":
        return GpioRelayActuator(pin=settings.relay_gpio_pin, active_high=settings.relay_active_high)
    if mode == "sonoff":
        return SonoffRelayActuator(
            ip=settings.sonoff_ip,
            port=settings.sonoff_port,
            device_id=settings.sonoff_device_id,
            timeout=settings.sonoff_timeout_seconds,
        )
    return SimulatedRelayActuator()


def build_orchestrator(settings: Settings = default_settings) -> ExtractionOrchestrator:
    """All known providers; which of them run, and in what order, is up to the snapshot."""
    return ExtractionOrchestrator([
        TesseractProvider(
            TesseractConfig(
                language=settings.tesseract_language,
                oem=settings.tesseract_oem,
                psm=settings.tesseract_psm,
                char_whitelist=settings.tesseract_char_whitelist,
            )
        ),
        PythonBridgeProvider(settings.bridge_command or DEFAULT_COMMAND),
        AzureVisionProvider(
            endpoint=settings.azure_endpoint,
            key=settings.azure_key,
            api_version=settings.azure_api_version,
        ),
    ])
