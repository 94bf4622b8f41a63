"""
Composition root.

Wires the stores, the weather source, the suggestion pipeline, the
orchestrator and the refresh scheduler around one UiDispatcher. The shell
talks to Dashboard only through dispatcher.call(), so every state change
happens on the interactive context.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx
from sqlalchemy.orm import sessionmaker

from .db import build_engine, build_session_factory, database_url
from .dispatch import UiDispatcher
from .geocoding import select_place_service
from .orchestrator import PERSISTENCE_ERRORS, DashboardOrchestrator
from .scheduler import RefreshScheduler
from .settings import Settings
from .store import (
    FAVORITES,
    KEY_API_KEY,
    KEY_DEMO_MODE,
    KEY_THEME,
    LAST_QUERY,
    PreferenceStore,
    SqlLineStore,
    SqlPreferenceStore,
)
from .suggestions import SuggestionController
from .weather_clients import select_weather_source

logger = logging.getLogger(__name__)


def resolve_api_key(prefs: PreferenceStore, default: str) -> str:
    """A non-blank stored key wins over the configured default."""
    try:
        stored = prefs.get(KEY_API_KEY, "").strip()
    except PERSISTENCE_ERRORS as exc:
        logger.warning("Could not read stored API key: %s", exc)
        stored = ""
    return stored or default.strip()


class Dashboard:
    def __init__(
        self,
        settings: Settings,
        session_factory: Optional[sessionmaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        if session_factory is None:
            session_factory = build_session_factory(build_engine(database_url(settings.sqlite_path)))

        self.prefs = SqlPreferenceStore(session_factory)
        self.dispatcher = UiDispatcher()

        api_key = resolve_api_key(self.prefs, settings.weather_api_key)
        self.source = select_weather_source(api_key, settings.snapshot_path, settings.http_timeout_s, transport)
        self.places = select_place_service(api_key, settings.geocode_timeout_s, settings.suggestion_limit, transport)
        logger.info("Weather backend: %s", self.source.name)

        self.orchestrator = DashboardOrchestrator(
            self.source,
            self.dispatcher,
            favorites_store=SqlLineStore(session_factory, FAVORITES),
            last_query_store=SqlLineStore(session_factory, LAST_QUERY),
        )
        self.suggestions = SuggestionController(self.places, self.dispatcher, settings.debounce_ms / 1000)
        self.scheduler = RefreshScheduler(
            self.orchestrator,
            self.dispatcher,
            lambda: (self.suggestions.text, self.suggestions.selected_place),
            prefs=self.prefs,
            default_interval_s=settings.refresh_default_s,
            min_interval_s=settings.refresh_min_s,
            max_interval_s=settings.refresh_max_s,
        )
        self._loop_task: Optional[asyncio.Task] = None

    def preference(self, key: str, default: str) -> str:
        try:
            return self.prefs.get(key, default)
        except PERSISTENCE_ERRORS as exc:
            logger.warning("Could not read %s: %s", key, exc)
            return default

    @property
    def demo_mode(self) -> bool:
        default = "true" if self.settings.demo_mode else "false"
        return self.preference(KEY_DEMO_MODE, default).strip().lower() == "true"

    @property
    def theme(self) -> str:
        return self.preference(KEY_THEME, self.settings.theme)

    # -------------------------
    # Lifecycle
    # -------------------------

    async def start(self) -> None:
        self.dispatcher.bind()
        self._loop_task = asyncio.create_task(self.dispatcher.run())
        await self.dispatcher.call(self._restore)

    def _restore(self) -> None:
        last = self.orchestrator.restore()
        if last:
            self.suggestions.set_text(last)
            self.orchestrator.search(last)
        self.scheduler.restore()

    async def stop(self) -> None:
        self.scheduler.stop()
        self.suggestions.close()
        self.dispatcher.cancel_background()
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

    # -------------------------
    # Interactive-context actions
    # -------------------------

    def search_text(self, text: str) -> Optional[asyncio.Task]:
        """Search typed text, ignoring any earlier picked suggestion."""
        self.suggestions.set_text(text)
        return self.orchestrator.search(text)

    def pick(self, label: str) -> Optional[asyncio.Task]:
        place = self.suggestions.pick(label)
        return self.orchestrator.search(self.suggestions.text, place)

    def add_current_favorite(self, name: Optional[str] = None) -> bool:
        return self.orchestrator.add_favorite(name if name is not None else self.suggestions.text)

    async def run(self, action, *args) -> None:
        """Run an action on the interactive context and wait for any search it starts."""
        task = await self.dispatcher.call(action, *args)
        if isinstance(task, asyncio.Task):
            await asyncio.gather(task, return_exceptions=True)
        await self.dispatcher.join()
