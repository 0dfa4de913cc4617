"""Per-session sync gate.

A ``SyncSession`` is created once per CLI invocation and passed to the
commands that want an automatic sync. The gate lets at most one sync run
per session window; the window is tracked in a small marker file.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generic, TypeVar

from skillet.adapters.local import atomic_write_text

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncState:
    window_started_at: datetime
    last_sync_at: datetime
    last_version: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "windowStartedAt": self.window_started_at.isoformat(),
            "lastSyncAt": self.last_sync_at.isoformat(),
            "lastVersion": self.last_version,
        }

    @classmethod
    def from_dict(cls, d: dict) -> SyncState:
        return cls(
            window_started_at=datetime.fromisoformat(d["windowStartedAt"]),
            last_sync_at=datetime.fromisoformat(d["lastSyncAt"]),
            last_version=d.get("lastVersion"),
        )


class SessionSyncGate(Generic[T]):
    """Decides whether a sync is due and makes sure only one runs at a time."""

    def __init__(self, marker: Path, window: timedelta):
        self.marker = marker
        self.window = window
        self._lock = threading.Lock()
        # Bumped once per finished run; callers that queued behind a run
        # see it change and take that run's outcome.
        self._generation = 0
        self._last_result: T | None = None
        self._last_error: BaseException | None = None

    def load_state(self) -> SyncState | None:
        if not self.marker.exists():
            return None
        try:
            return SyncState.from_dict(json.loads(self.marker.read_text(encoding="utf-8")))
        except (ValueError, KeyError) as e:
            logger.warning("Ignoring unreadable session marker %s: %s", self.marker, e)
            return None

    def _in_window(self, state: SyncState | None, now: datetime) -> bool:
        return state is not None and now - state.window_started_at < self.window

    def should_sync(self, now: datetime | None = None) -> bool:
        now = now or _utc_now()
        return not self._in_window(self.load_state(), now)

    def record_sync(self, now: datetime | None = None, version: str | None = None) -> SyncState:
        now = now or _utc_now()
        state = self.load_state()
        if self._in_window(state, now):
            state.last_sync_at = now
            state.last_version = version or state.last_version
        else:
            state = SyncState(window_started_at=now, last_sync_at=now, last_version=version)
        atomic_write_text(self.marker, json.dumps(state.to_dict(), indent=2) + "\n")
        return state

    def run(
        self,
        sync_fn: Callable[[], T],
        now: datetime | None = None,
        record_if: Callable[[T], bool] | None = None,
        version_of: Callable[[T], str | None] | None = None,
    ) -> T | None:
        """Run sync_fn if the gate is open.

        Callers that arrive while a sync is running wait for it and get its
        result (or its exception) instead of starting another, even when that
        sync failed. Returns None when no sync was due and none ran earlier in
        this process.
        """
        seen = self._generation
        with self._lock:
            if self._generation != seen:
                if self._last_error is not None:
                    raise self._last_error
                return self._last_result

            now = now or _utc_now()
            if not self.should_sync(now):
                return self._last_result

            try:
                result = sync_fn()
            except BaseException as e:
                self._last_error = e
                raise
            else:
                self._last_error = None
                self._last_result = result
            finally:
                self._generation += 1

            if record_if is None or record_if(result):
                self.record_sync(now, version_of(result) if version_of else None)
            else:
                logger.info("Sync did not complete; the session gate stays open")
            return result


@dataclass
class SyncSession:
    """Explicit session context threaded through the commands."""

    gate: SessionSyncGate
    started_at: datetime = field(default_factory=_utc_now)

    @classmethod
    def create(cls, marker: Path, window_seconds: int) -> SyncSession:
        return cls(gate=SessionSyncGate(marker, timedelta(seconds=window_seconds)))

    def maybe_sync(self, sync_fn: Callable[[], T], now: datetime | None = None) -> T | None:
        return self.gate.run(
            sync_fn,
            now=now,
            record_if=lambda r: getattr(r, "ok", True),
            version_of=lambda r: getattr(r, "version", None),
        )
