"""Tests for display text classification."""

import pytest

from wellmonitor.domain.classifier import classify, contains_keyword, extract_current
from wellmonitor.domain.config_snapshot import ConfigSnapshot
from wellmonitor.domain.models import PumpState


@pytest.fixture
def config():
    return ConfigSnapshot()


def test_amps_with_unit_is_normal(config):
    """Test "4.2A" reads as 4.2 amps in the normal band."""
    assert classify("4.2A", 0.95, config) == (4.2, PumpState.NORMAL)


def test_dry_keyword(config):
    """Test the dry message maps to Dry with no current."""
    assert classify("Dry", 0.9, config) == (None, PumpState.DRY)


def test_dry_keyword_wins_over_digits(config):
    """Test status keywords take precedence over a number in the same frame."""
    assert classify("Dry 4.2A", 0.9, config) == (None, PumpState.DRY)
    assert classify("rcyc 5.0", 0.9, config) == (None, PumpState.RAPID_CYCLE)


def test_rapid_cycle_keyword(config):
    """Test the controller's rapid-cycle message."""
    assert classify("rcyc", 0.8, config) == (None, PumpState.RAPID_CYCLE)
    assert classify("RAPID CYCLE", 0.8, config) == (None, PumpState.RAPID_CYCLE)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("0.05", (0.05, PumpState.OFF)),
        ("0.0", (0.0, PumpState.OFF)),
        ("0.3", (0.3, PumpState.IDLE)),
        ("3.0", (3.0, PumpState.NORMAL)),
        ("8.0", (8.0, PumpState.NORMAL)),
        ("Current: 6.5", (6.5, PumpState.NORMAL)),
        ("Amps 7", (7.0, PumpState.NORMAL)),
    ],
)
def test_numeric_bands(config, text, expected):
    """Test numeric values fall into the configured bands."""
    assert classify(text, 0.9, config) == expected


def test_value_between_bands_is_unknown(config):
    """Test a value above idle but below normal keeps the amps as Unknown."""
    assert classify("2.0", 0.9, config) == (2.0, PumpState.UNKNOWN)
    assert classify("12.5", 0.9, config) == (12.5, PumpState.UNKNOWN)


def test_value_above_max_valid_is_rejected(config):
    """Test misreads beyond the plausible range drop the value."""
    assert classify("42.0", 0.9, config) == (None, PumpState.UNKNOWN)


def test_garbage_is_unknown(config):
    """Test text with no keyword and no number."""
    assert classify("~~--", 0.4, config) == (None, PumpState.UNKNOWN)
    assert classify("", 0.0, config) == (None, PumpState.UNKNOWN)


def test_classify_is_idempotent(config):
    """Test the same input always gives the same output."""
    first = classify("5.5 Amps", 0.9, config)
    for _ in range(5):
        assert classify("5.5 Amps", 0.9, config) == first


def test_case_sensitive_keywords():
    """Test case-sensitive matching ignores a lowercase keyword."""
    config = ConfigSnapshot(case_sensitive=True)
    assert classify("dry", 0.9, config) == (None, PumpState.UNKNOWN)
    assert classify("Dry", 0.9, config) == (None, PumpState.DRY)


def test_custom_keywords():
    """Test keywords come from the snapshot."""
    config = ConfigSnapshot(dry_keywords=("LOW WATER",), rapid_cycle_keywords=("RC",))
    assert classify("low water", 0.9, config) == (None, PumpState.DRY)
    assert classify("Dry", 0.9, config) == (None, PumpState.UNKNOWN)


def test_extract_current_patterns():
    """Test the supported number formats."""
    assert extract_current("4.2") == 4.2
    assert extract_current(" 4.2 A") == 4.2
    assert extract_current("4.2 Amps") == 4.2
    assert extract_current("Current:3.1") == 3.1
    assert extract_current("Amps: 9") == 9.0
    assert extract_current("no digits") is None


def test_contains_keyword_casefold():
    """Test case-insensitive keyword matching."""
    assert contains_keyword("WELL DRY", ["Well Dry"], case_sensitive=False)
    assert not contains_keyword("WELL DRY", ["Well Dry"], case_sensitive=True)
