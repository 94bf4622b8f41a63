"""
Dashboard orchestration.

search() runs on the interactive context: it resolves the query, starts the
current-conditions and forecast fetches together as background work, and
the worker posts either a finished ViewModel or an error message back. Only
the interactive context replaces the held ViewModel, the recents list and
the favorites.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from . import charts
from .dispatch import UiDispatcher
from .domain import CurrentConditions, ForecastDay, Place, SearchOutcome, ViewModel
from .store import LineStore, first_line
from .weather_clients import FORECAST_DAYS, WeatherError, WeatherSource

logger = logging.getLogger(__name__)

Listener = Callable[[SearchOutcome], None]

# Store failures that must never fail the operation that triggered them
PERSISTENCE_ERRORS = (SQLAlchemyError, OSError)


def build_view_model(
    raw_input: str,
    query: str,
    current: CurrentConditions,
    forecast: Sequence[ForecastDay],
    selected_day: int = 0,
) -> ViewModel:
    forecast = tuple(forecast)
    hourly = forecast[selected_day].hourly if forecast else ()
    return ViewModel(
        raw_input=raw_input,
        query=query,
        current=current,
        forecast=forecast,
        daily_series=charts.daily_series(forecast),
        hourly_series=charts.hourly_series(hourly),
        selected_day=selected_day if forecast else 0,
    )


class DashboardOrchestrator:
    def __init__(
        self,
        source: WeatherSource,
        dispatcher: UiDispatcher,
        favorites_store: Optional[LineStore] = None,
        last_query_store: Optional[LineStore] = None,
        forecast_days: int = FORECAST_DAYS,
    ):
        self.source = source
        self.dispatcher = dispatcher
        self.favorites_store = favorites_store
        self.last_query_store = last_query_store
        self.forecast_days = forecast_days

        self.view_model: Optional[ViewModel] = None
        self.last_error: Optional[str] = None
        self.recents: List[str] = []
        self.favorites: List[str] = []
        self.in_flight = 0

        self._listener: Optional[Listener] = None
        self._issued = 0
        self._applied = 0

    def set_listener(self, listener: Optional[Listener]) -> None:
        """Single slot: a new listener replaces the previous one."""
        self._listener = listener

    # -------------------------
    # Search
    # -------------------------

    def search(self, raw_input: Optional[str], resolved_place: Optional[Place] = None) -> Optional[asyncio.Task]:
        """
        Start a search. Returns the background task, or None for blank input.

        A picked suggestion is searched by its coordinates; otherwise the
        trimmed text is sent as typed.
        """
        raw = (raw_input or "").strip()
        if not raw:
            return None

        query = resolved_place.query if resolved_place is not None else raw
        self._issued += 1
        self.in_flight += 1
        logger.info("Searching %r (query %r) via %s", raw, query, self.source.name)
        return self.dispatcher.spawn(self._fetch(self._issued, raw, query))

    async def _fetch(self, seq: int, raw: str, query: str) -> None:
        try:
            current, forecast = await asyncio.gather(
                self.source.get_current_conditions(query),
                self.source.get_forecast(query, self.forecast_days),
            )
        except WeatherError as exc:
            logger.warning("Search for %r failed: %s", raw, exc)
            self.dispatcher.post(self._apply_failure, seq, str(exc))
            return
        view_model = build_view_model(raw, query, current, forecast)
        self.dispatcher.post(self._apply_success, seq, view_model)

    def _superseded(self, seq: int) -> bool:
        self.in_flight -= 1
        if seq < self._applied:
            logger.debug("Dropping result of search #%d, #%d already shown", seq, self._applied)
            return True
        self._applied = seq
        return False

    def _apply_success(self, seq: int, view_model: ViewModel) -> None:
        if self._superseded(seq):
            return
        self.view_model = view_model
        self.last_error = None

        raw = view_model.raw_input
        if raw not in self.recents:
            self.recents.insert(0, raw)
        self._remember_last_query(raw)
        self._emit(SearchOutcome(view_model))

    def _apply_failure(self, seq: int, message: str) -> None:
        if self._superseded(seq):
            return
        # The previous view model stays on screen
        self.last_error = message
        self._emit(SearchOutcome(self.view_model, message))

    def _emit(self, outcome: SearchOutcome) -> None:
        if self._listener is not None:
            self._listener(outcome)

    def _remember_last_query(self, raw: str) -> None:
        if self.last_query_store is None:
            return
        try:
            self.last_query_store.save(raw)
        except PERSISTENCE_ERRORS as exc:
            logger.warning("Could not save last query: %s", exc)

    # -------------------------
    # Forecast day selection
    # -------------------------

    def select_day(self, index: int) -> Optional[ViewModel]:
        """Show the hourly chart of another forecast day."""
        vm = self.view_model
        if vm is None or not 0 <= index < len(vm.forecast):
            return vm
        self.view_model = build_view_model(vm.raw_input, vm.query, vm.current, vm.forecast, index)
        return self.view_model

    # -------------------------
    # Favorites and startup
    # -------------------------

    def restore(self) -> str:
        """
        Load favorites and the last query; recents start as the favorites
        with the last query in front. Returns the last query ('' if none).
        """
        if self.favorites_store is not None:
            try:
                self.favorites = self.favorites_store.load()
            except PERSISTENCE_ERRORS as exc:
                logger.warning("Could not load favorites: %s", exc)

        last = ""
        if self.last_query_store is not None:
            try:
                last = first_line(self.last_query_store)
            except PERSISTENCE_ERRORS as exc:
                logger.warning("Could not load last query: %s", exc)

        self.recents = list(self.favorites)
        if last and last not in self.recents:
            self.recents.insert(0, last)
        return last

    def add_favorite(self, name: Optional[str]) -> bool:
        name = (name or "").strip()
        if not name or name in self.favorites:
            return False
        self.favorites.append(name)
        self._save_favorites()
        return True

    def remove_favorite(self, name: str) -> bool:
        if name not in self.favorites:
            return False
        self.favorites.remove(name)
        self._save_favorites()
        return True

    def _save_favorites(self) -> None:
        if self.favorites_store is None:
            return
        try:
            self.favorites_store.save(list(self.favorites))
        except PERSISTENCE_ERRORS as exc:
            logger.warning("Could not save favorites: %s", exc)
