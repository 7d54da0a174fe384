from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import settings
from ..core.errors import ConfigInvalid
from ..core.timeutil import now_utc
from ..domain.models import Reading, RelayAction
from ..domain.safety import SafetyCycleController
from ..extraction.orchestrator import ExtractionOrchestrator
from ..services.config_store import ConfigStore
from ..services.monitor import MonitoringLoop
from ..storage.sqlite_repo import SQLiteRepository
from .schemas import ActionOut, ConfigUpdateRequest, ReadingOut

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters, replaced through app.dependency_overrides in main ---
def get_monitor() -> MonitoringLoop:  # overridden in main
    raise RuntimeError("Monitor dependency not configured")

def get_controller() -> SafetyCycleController:  # overridden in main
    raise RuntimeError("Controller dependency not configured")

def get_orchestrator() -> ExtractionOrchestrator:  # overridden in main
    raise RuntimeError("Orchestrator dependency not configured")

def get_config_store() -> ConfigStore:  # overridden in main
    raise RuntimeError("Config store dependency not configured")

def get_repo() -> SQLiteRepository:  # overridden in main
    raise RuntimeError("Repo dependency not configured")


def _reading_out(r: Reading) -> ReadingOut:
    return ReadingOut(
        ts_utc=r.timestamp_utc.isoformat(),
        current_amps=r.current_amps,
        status=r.status.value,
        raw_text=r.raw_text,
        confidence=r.confidence,
        provider=r.provider_used,
        duration_ms=round(r.processing_duration.total_seconds() * 1000.0, 1),
        error=r.error,
    )


def _action_out(a: RelayAction) -> ActionOut:
    return ActionOut(
        ts_utc=a.timestamp_utc.isoformat(),
        kind=a.kind.value,
        reason=a.reason,
        outcome=a.outcome.value,
    )


def _window(minutes: int) -> tuple:
    end = now_utc()
    start = end - timedelta(minutes=max(1, minutes))
    return start, end


@router.get("/status")
async def get_status(
    monitor: MonitoringLoop = Depends(get_monitor),
    ctrl: SafetyCycleController = Depends(get_controller),
    store: ConfigStore = Depends(get_config_store),
):
    now = now_utc()
    config = store.current()
    live = monitor.live
    last: Optional[Reading] = live.last_reading
    last_cycle = ctrl.last_cycle_utc
    return {
        "app": settings.app_name,
        "now_utc": now.isoformat(),
        "running": live.running,
        "fatal_error": live.fatal_error,
        "config_version": config.version,
        "last_reading": _reading_out(last).model_dump() if last else None,
        "low_confidence": live.low_confidence,
        "last_action": _action_out(live.last_action).model_dump() if live.last_action else None,
        "controller": {
            "phase": ctrl.phase(now, config).value,
            "last_cycle_utc": last_cycle.isoformat() if last_cycle else None,
            "cycles_24h": ctrl.cycles_in_window(now),
            "max_daily_cycles": config.max_daily_cycles,
            "auto_actions": config.enable_auto_actions,
        },
        "counters": {
            "completed": live.cycles_completed,
            "failed": live.cycles_failed,
            "skipped": live.cycles_skipped,
            "consecutive_dry": live.consecutive_dry,
        },
    }


@router.get("/providers")
async def get_providers(
    orch: ExtractionOrchestrator = Depends(get_orchestrator),
    store: ConfigStore = Depends(get_config_store),
):
    stats = orch.statistics()
    out = []
    for name in store.current().provider_priority:
        provider = orch.providers.get(name)
        s = stats.get(name)
        out.append({
            "name": name,
            "registered": provider is not None,
            "available": bool(provider and provider.is_available),
            "attempts": s.attempts if s else 0,
            "successes": s.successes if s else 0,
            "success_rate": round(s.success_rate, 3) if s else 0.0,
            "mean_confidence": round(s.mean_confidence, 3) if s else 0.0,
            "mean_duration_ms": round(s.mean_duration_ms, 1) if s else 0.0,
            "last_error": s.last_error if s else None,
        })
    return {"providers": out}


@router.get("/config")
async def get_config(store: ConfigStore = Depends(get_config_store)):
    return store.current().model_dump(mode="json")


@router.put("/config")
async def update_config(req: ConfigUpdateRequest, store: ConfigStore = Depends(get_config_store)):
    try:
        snapshot = store.publish(req.updates)
    except ConfigInvalid as e:
        raise HTTPException(status_code=400, detail=e.errors)
    return {"ok": True, "version": snapshot.version, "updated_keys": sorted(req.updates)}


@router.get("/readings")
async def readings(
    minutes: int = 60,
    limit: int = 5000,
    repo: SQLiteRepository = Depends(get_repo),
):
    start, end = _window(minutes)
    rows = await repo.query_readings(start.isoformat(), end.isoformat(), limit=min(limit, 20000))
    return {
        "start_utc": start.isoformat(),
        "end_utc": end.isoformat(),
        "rows": [_reading_out(r).model_dump() for r in rows],
    }


@router.get("/actions")
async def actions(
    minutes: int = 24 * 60,
    limit: int = 2000,
    repo: SQLiteRepository = Depends(get_repo),
):
    start, end = _window(minutes)
    rows = await repo.query_actions(start.isoformat(), end.isoformat(), limit=min(limit, 20000))
    return {
        "start_utc": start.isoformat(),
        "end_utc": end.isoformat(),
        "rows": [_action_out(a).model_dump() for a in rows],
    }
