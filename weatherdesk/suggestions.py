"""
Debounced place suggestions for the search box.

Keystrokes arrive on the interactive context. Each one re-arms a 300 ms
timer; when it fires the geocoder lookup runs as background work and posts
the result back. Responses carry no query token: a slow response for an
older fragment can still replace the list built for a newer one.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from .dispatch import Debouncer, UiDispatcher
from .domain import Place, SuggestionMap
from .geocoding import PlaceSuggestionService
from .weather_clients import WeatherError

logger = logging.getLogger(__name__)


def build_suggestion_map(places: Iterable[Place]) -> SuggestionMap:
    """Key places by label; repeated labels become 'X [1]', 'X [2]', ..."""
    out: SuggestionMap = {}
    for place in places:
        label = place.label or place.name or ""
        unique = label
        idx = 1
        while unique in out:
            unique = f"{label} [{idx}]"
            idx += 1
        out[unique] = place
    return out


class SuggestionController:
    """Owns the input text, the suggestion map and the selected place."""

    def __init__(
        self,
        service: PlaceSuggestionService,
        dispatcher: UiDispatcher,
        delay_s: float = 0.3,
        on_change: Optional[Callable[[SuggestionMap], None]] = None,
    ):
        self.service = service
        self.dispatcher = dispatcher
        self.debouncer = Debouncer(delay_s)
        self.on_change = on_change
        self.text = ""
        self.selected_place: Optional[Place] = None
        self.suggestions: SuggestionMap = {}
        self.lookups = 0

    @property
    def labels(self) -> List[str]:
        return list(self.suggestions)

    def text_changed(self, text: Optional[str]) -> None:
        """Keystroke handler. Typing discards any previously picked place."""
        self.text = text or ""
        self.selected_place = None
        self.debouncer.cancel()

        fragment = self.text.strip()
        if not fragment:
            self._apply([])
            return
        self.debouncer.trigger(self._lookup, fragment)

    def _lookup(self, fragment: str) -> None:
        self.lookups += 1
        logger.debug("Looking up suggestions for %r", fragment)
        self.dispatcher.spawn(self._fetch(fragment))

    async def _fetch(self, fragment: str) -> None:
        try:
            places = await self.service.search(fragment)
        except WeatherError as exc:
            logger.warning("Suggestion lookup for %r failed: %s", fragment, exc)
            places = []
        self.dispatcher.post(self._apply, places)

    def _apply(self, places: List[Place]) -> None:
        self.suggestions = build_suggestion_map(places)
        if self.on_change is not None:
            self.on_change(self.suggestions)

    def pick(self, label: str) -> Place:
        """Select a suggestion; raises KeyError for an unknown label."""
        place = self.suggestions[label]
        self.debouncer.cancel()
        self.selected_place = place
        self.text = place.label or place.name or ""
        self._apply([])
        return place

    def set_text(self, text: str) -> None:
        """Replace the input without a lookup (favorites, startup restore)."""
        self.debouncer.cancel()
        self.text = text
        self.selected_place = None

    def close(self) -> None:
        self.debouncer.cancel()
