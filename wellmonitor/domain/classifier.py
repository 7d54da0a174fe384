from __future__ import annotations
import logging
import re
from typing import Iterable, Optional

from .config_snapshot import ConfigSnapshot
from .models import PumpState

logger = logging.getLogger(__name__)

_NUM = r"(\d+(?:\.\d+)?)"

# First match wins; order matters.
CURRENT_PATTERNS = (
    re.compile(rf"^\s*{_NUM}\s*$"),                              # bare decimal: "4.2"
    re.compile(rf"{_NUM}\s*A(?:mps?)?\b", re.IGNORECASE),        # "4.2A", "4.2 Amps"
    re.compile(rf"Current\s*:?\s*{_NUM}", re.IGNORECASE),        # "Current: 4.2"
    re.compile(rf"Amps?\s*:?\s*{_NUM}", re.IGNORECASE),          # "Amps 4.2"
    re.compile(rf"(?<![\w.]){_NUM}(?![\d.])"),                   # any standalone number
)


def contains_keyword(text: str, keywords: Iterable[str], case_sensitive: bool) -> bool:
    if case_sensitive:
        return any(k in text for k in keywords)
    folded = text.casefold()
    return any(k.casefold() in folded for k in keywords)


def extract_current(text: str) -> Optional[float]:
    for pattern in CURRENT_PATTERNS:
        m = pattern.search(text)
        if m:
            return float(m.group(1))
    return None


def classify(text: str, confidence: float, config: ConfigSnapshot) -> tuple[Optional[float], PumpState]:
    """Map display text to ``(amps, state)``.

    Pure: no state, no I/O beyond logging. Status keywords take precedence over
    any digits in the same frame; numeric values are banded by the snapshot's
    thresholds and anything outside a known band is ``UNKNOWN``.
    """
    text = text or ""

    if contains_keyword(text, config.dry_keywords, config.case_sensitive):
        return None, PumpState.DRY

    if contains_keyword(text, config.rapid_cycle_keywords, config.case_sensitive):
        return None, PumpState.RAPID_CYCLE

    amps = extract_current(text)
    if amps is None:
        logger.debug("No current value in text %r (confidence=%.2f)", text, confidence)
        return None, PumpState.UNKNOWN

    if amps > config.max_valid_current:
        logger.warning(
            "Rejected current %.2fA above max valid %.2fA (text=%r)",
            amps, config.max_valid_current, text,
        )
        return None, PumpState.UNKNOWN

    if amps < config.off_threshold:
        return amps, PumpState.OFF
    if amps < config.idle_threshold:
        return amps, PumpState.IDLE
    if config.normal_min <= amps <= config.normal_max:
        return amps, PumpState.NORMAL

    logger.warning(
        "Current %.2fA outside known bands (idle<%.2f, normal %.2f-%.2f)",
        amps, config.idle_threshold, config.normal_min, config.normal_max,
    )
    return amps, PumpState.UNKNOWN
