from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="WELLMONITOR_", extra="ignore")

    app_name: str = "Well Monitor"

    # Runtime tunables (thresholds, providers, intervals) live in the snapshot file
    config_path: str = Field(default="wellmonitor.json")

    # Storage
    sqlite_path: str = Field(default="wellmonitor.db")
    log_file: str = "wellmonitor.log"

    # Image source: "sim" reads a still from disk; "camera" shells out to libcamera
    image_source: str = "sim"
    sim_image_path: str = "debug_images/display.jpg"
    camera_width: int = 1920
    camera_height: int = 1080
    camera_quality: int = 95
    camera_warmup_ms: int = 2000
    camera_timeout_seconds: float = 30.0
    camera_rotation: int = 0

    # Relay: "sim", "gpio" or "sonoff"
    relay_mode: str = "sim"
    relay_gpio_pin: int = 17
    relay_active_high: bool = True
    sonoff_ip: str = "192.168.1.19"
    sonoff_port: int = 8081
    sonoff_device_id: str = "1000b8d61a"
    sonoff_timeout_seconds: float = 5.0

    # Tesseract
    tesseract_language: str = "eng"
    tesseract_oem: int = 3
    tesseract_psm: int = 7  # single text line for LED displays
    tesseract_char_whitelist: str = "0123456789.DryAMPSrcyc "

    # Azure AI Vision (Image Analysis 4.0 Read)
    azure_endpoint: str = ""
    azure_key: str = ""
    azure_api_version: str = "2023-10-01"

    # Out-of-process OCR bridge; empty means "python -m wellmonitor.bridge.ocr_server"
    bridge_command: list[str] = Field(default_factory=list)


settings = Settings()
