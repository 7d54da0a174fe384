import time
from datetime import datetime, timedelta, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def elapsed_since(start: float) -> timedelta:
    """Duration since a ``time.perf_counter()`` mark."""
    return timedelta(seconds=time.perf_counter() - start)
