from __future__ import annotations
import aiosqlite
from datetime import datetime, timedelta
from typing import List, Optional
from ..domain.models import ActionKind, ActionOutcome, PumpState, Reading, RelayAction


class SQLiteRepository:
    def __init__(self, path: str) -> None:
        self._path = path

    async def init(self) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS readings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts_utc TEXT NOT NULL,
                    current_amps REAL,
                    status TEXT NOT NULL,
                    raw_text TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    provider TEXT,
                    duration_ms REAL NOT NULL,
                    error TEXT,
                    synced INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS relay_actions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ts_utc TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    reason TEXT NOT NULL,
                    outcome TEXT NOT NULL,
                    synced INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_readings_ts ON readings(ts_utc)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_relay_actions_ts ON relay_actions(ts_utc)")
            await db.commit()

    async def append(self, reading: Reading, action: Optional[RelayAction] = None) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                "INSERT INTO readings(ts_utc,current_amps,status,raw_text,confidence,provider,duration_ms,error) "
                "VALUES (?,?,?,?,?,?,?,?)",
                (
                    reading.timestamp_utc.isoformat(),
                    reading.current_amps,
                    reading.status.value,
                    reading.raw_text,
                    float(reading.confidence),
                    reading.provider_used,
                    reading.processing_duration.total_seconds() * 1000.0,
                    reading.error,
                ),
            )
            if action is not None:
                await db.execute(
                    "INSERT INTO relay_actions(ts_utc,kind,reason,outcome) VALUES (?,?,?,?)",
                    (action.timestamp_utc.isoformat(), action.kind.value, action.reason, action.outcome.value),
                )
            await db.commit()

    async def query_readings(self, start_ts: str, end_ts: str, limit: int) -> List[Reading]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                """
                SELECT ts_utc,current_amps,status,raw_text,confidence,provider,duration_ms,error
                FROM readings
                WHERE ts_utc >= ? AND ts_utc <= ?
                ORDER BY ts_utc DESC
                LIMIT ?
                """,
                (start_ts, end_ts, limit),
            )
            rows = await cur.fetchall()
        out: list[Reading] = []
        for ts, amps, status, text, conf, provider, dur_ms, err in rows:
            out.append(
                Reading(
                    timestamp_utc=datetime.fromisoformat(ts),
                    current_amps=amps,
                    status=PumpState(status),
                    raw_text=text,
                    confidence=float(conf),
                    provider_used=provider,
                    processing_duration=timedelta(milliseconds=dur_ms),
                    error=err,
                )
            )
        return list(reversed(out))

    async def query_actions(self, start_ts: str, end_ts: str, limit: int) -> List[RelayAction]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                """
                SELECT ts_utc,kind,reason,outcome
                FROM relay_actions
                WHERE ts_utc >= ? AND ts_utc <= ?
                ORDER BY ts_utc DESC
                LIMIT ?
                """,
                (start_ts, end_ts, limit),
            )
            rows = await cur.fetchall()
        out: list[RelayAction] = []
        for ts, kind, reason, outcome in rows:
            out.append(
                RelayAction(
                    timestamp_utc=datetime.fromisoformat(ts),
                    kind=ActionKind(kind),
                    reason=reason,
                    outcome=ActionOutcome(outcome),
                )
            )
        return list(reversed(out))

    async def count_unsynced(self) -> dict[str, int]:
        async with aiosqlite.connect(self._path) as db:
            out: dict[str, int] = {}
            for table in ("readings", "relay_actions"):
                cur = await db.execute(f"SELECT COUNT(*) FROM {table} WHERE synced = 0")
                (n,) = await cur.fetchone()
                out[table] = int(n)
        return out
