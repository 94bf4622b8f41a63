"""
Periodic auto-refresh.

Ticks fire at a fixed rate and post a search for whatever query is on
screen at that moment. A tick does not wait for the previous search to
finish, and stop() does not cancel a search a tick already started.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Tuple

from .dispatch import UiDispatcher
from .domain import Place
from .orchestrator import PERSISTENCE_ERRORS, DashboardOrchestrator
from .store import KEY_REFRESH_ENABLED, KEY_REFRESH_INTERVAL, PreferenceStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 600
MIN_INTERVAL_S = 30
MAX_INTERVAL_S = 3600

# Returns the (text, picked place) currently shown in the search box
QueryProvider = Callable[[], Tuple[str, Optional[Place]]]


def clamp_interval(seconds: float, low: float = MIN_INTERVAL_S, high: float = MAX_INTERVAL_S) -> float:
    return max(low, min(high, seconds))


class RefreshScheduler:
    def __init__(
        self,
        orchestrator: DashboardOrchestrator,
        dispatcher: UiDispatcher,
        current_query: QueryProvider,
        prefs: Optional[PreferenceStore] = None,
        default_interval_s: int = DEFAULT_INTERVAL_S,
        min_interval_s: int = MIN_INTERVAL_S,
        max_interval_s: int = MAX_INTERVAL_S,
    ):
        self.orchestrator = orchestrator
        self.dispatcher = dispatcher
        self.current_query = current_query
        self.prefs = prefs
        self.min_interval_s = min_interval_s
        self.max_interval_s = max_interval_s
        self.interval_s = self._load_interval(default_interval_s)
        self.ticks = 0
        self._handle: Optional[asyncio.TimerHandle] = None
        self._next_at = 0.0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def _load_interval(self, default: int) -> int:
        raw = self._get(KEY_REFRESH_INTERVAL, str(default))
        try:
            seconds = int(raw)
        except ValueError:
            seconds = default
        return clamp_interval(seconds, self.min_interval_s, self.max_interval_s)

    def _get(self, key: str, default: str) -> str:
        if self.prefs is None:
            return default
        try:
            return self.prefs.get(key, default)
        except PERSISTENCE_ERRORS as exc:
            logger.warning("Could not read %s: %s", key, exc)
            return default

    def _put(self, key: str, value: str) -> None:
        if self.prefs is None:
            return
        try:
            self.prefs.put(key, value)
        except PERSISTENCE_ERRORS as exc:
            logger.warning("Could not save %s: %s", key, exc)

    # -------------------------
    # Timer
    # -------------------------

    def start(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._next_at = loop.time() + self.interval_s
        self._handle = loop.call_at(self._next_at, self._tick)
        logger.info("Auto refresh every %ss", self.interval_s)

    def stop(self) -> None:
        if self.running:
            logger.info("Auto refresh stopped")
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        # Fixed rate: the next deadline does not drift with search latency
        loop = asyncio.get_running_loop()
        self._next_at += self.interval_s
        self._handle = loop.call_at(self._next_at, self._tick)
        self.dispatcher.post(self._refresh)

    def _refresh(self) -> None:
        self.ticks += 1
        text, place = self.current_query()
        if not (text or "").strip():
            return
        self.orchestrator.search(text, place)

    # -------------------------
    # Preferences
    # -------------------------

    def set_enabled(self, enabled: bool) -> None:
        self._put(KEY_REFRESH_ENABLED, "true" if enabled else "false")
        if enabled:
            self.start()
        else:
            self.stop()

    def set_interval(self, seconds: int) -> int:
        """Clamp, persist, and re-arm a running timer with the new interval."""
        self.interval_s = clamp_interval(seconds, self.min_interval_s, self.max_interval_s)
        self._put(KEY_REFRESH_INTERVAL, str(self.interval_s))
        if self.running:
            self.start()
        return self.interval_s

    def restore(self) -> bool:
        """Start the timer if it was left enabled."""
        enabled = self._get(KEY_REFRESH_ENABLED, "false").strip().lower() == "true"
        if enabled:
            self.start()
        return enabled
