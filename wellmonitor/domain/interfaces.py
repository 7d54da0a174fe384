from __future__ import annotations
from typing import Protocol, Optional, runtime_checkable
from .config_snapshot import ConfigSnapshot
from .models import ExtractionResult, Reading, RelayAction


@runtime_checkable
class TextExtractionProvider(Protocol):
    name: str

    @property
    def is_available(self) -> bool:
        ...

    async def initialize(self) -> bool:
        ...

    async def extract(self, image: bytes) -> ExtractionResult:
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class ImageSource(Protocol):
    source_id: str

    async def capture(self) -> bytes:
        ...


@runtime_checkable
class RelayActuator(Protocol):
    actuator_id: str

    async def set_power(self, on: bool) -> None:
        ...


@runtime_checkable
class PersistenceSink(Protocol):
    async def append(self, reading: Reading, action: Optional[RelayAction] = None) -> None:
        ...


@runtime_checkable
class ConfigSource(Protocol):
    def current(self) -> ConfigSnapshot:
        ...
