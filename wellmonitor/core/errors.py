from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from ..domain.models import ExtractionResult, RelayAction


class WellMonitorError(Exception):
    """Base class for errors raised by the monitoring pipeline."""


class ProviderFault(WellMonitorError):
    """A single text-extraction attempt failed (crash, network, missing engine)."""


class PreprocessingError(WellMonitorError):
    """The captured image could not be decoded or transformed."""


class NoProviderAvailable(WellMonitorError):
    """Every provider in the priority list failed to produce text."""

    def __init__(self, attempts: Sequence["ExtractionResult"]) -> None:
        self.attempts = list(attempts)
        summary = "; ".join(f"{a.provider_name}: {a.error or 'no text'}" for a in self.attempts)
        super().__init__(f"No text extraction provider succeeded ({summary or 'no providers configured'})")


class ConfigInvalid(WellMonitorError):
    """A configuration snapshot violates its invariants."""

    def __init__(self, errors: Sequence[str] | str) -> None:
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class CaptureFault(WellMonitorError):
    """The image source could not produce a frame."""


class RelayActuationFault(WellMonitorError):
    """The relay did not execute a power command. Fatal for the monitor."""

    def __init__(self, message: str, action: "RelayAction | None" = None) -> None:
        self.action = action
        super().__init__(message)
