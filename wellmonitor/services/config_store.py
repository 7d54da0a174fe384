from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from ..core.errors import ConfigInvalid
from ..domain.config_snapshot import ConfigSnapshot

logger = logging.getLogger(__name__)


def _validation_messages(e: ValidationError) -> list[str]:
    out = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        out.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return out


def merge_updates(base: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Apply ``updates`` onto ``base`` in place; nested objects such as ``roi`` merge key by key."""
    for key, value in updates.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            merge_updates(base[key], value)
        else:
            base[key] = value
    return base


def build_snapshot(data: Mapping[str, Any]) -> ConfigSnapshot:
    try:
        return ConfigSnapshot.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigInvalid(_validation_messages(e)) from e


class ConfigStore:
    """Holds the current ``ConfigSnapshot`` and swaps it wholesale on update.

    Readers call ``current()`` once per cycle and keep that reference; a
    concurrent publish replaces the reference and never mutates a snapshot.
    An invalid update is rejected and the last-known-good snapshot stays.
    """

    def __init__(self, initial: Optional[ConfigSnapshot] = None) -> None:
        self._snapshot = initial or ConfigSnapshot()
        self._write_lock = Lock()

    @classmethod
    def from_file(cls, path: str | Path) -> "ConfigStore":
        """Load the boot snapshot. Raises ``ConfigInvalid``: there is no fallback yet."""
        p = Path(path)
        if not p.exists():
            logger.warning("Config file %s not found, using defaults", p)
            return cls()
        try:
            data = json.loads(p.read_text())
        except (OSError, ValueError) as e:
            raise ConfigInvalid(f"cannot read {p}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigInvalid(f"{p} must contain a JSON object")
        snapshot = build_snapshot(data)
        logger.info("Loaded config snapshot v%d from %s", snapshot.version, p)
        return cls(snapshot)

    def current(self) -> ConfigSnapshot:
        return self._snapshot

    def publish(self, updates: Mapping[str, Any]) -> ConfigSnapshot:
        """Merge ``updates`` onto the current snapshot and publish the result."""
        with self._write_lock:
            base = self._snapshot
            data = base.model_dump()
            merge_updates(data, {k: v for k, v in updates.items() if k != "version"})
            data["version"] = base.version + 1
            try:
                snapshot = build_snapshot(data)
            except ConfigInvalid as e:
                logger.warning("Rejected config update (keeping v%d): %s", base.version, "; ".join(e.errors))
                raise
            self._snapshot = snapshot
        logger.info("Published config snapshot v%d (%s)", snapshot.version, ", ".join(sorted(updates)) or "no changes")
        return snapshot
