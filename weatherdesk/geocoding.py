"""
Place suggestions.

Two geocoders:
- WeatherApiGeocoder: weatherapi.com search.json, structured results (needs a key)
- NominatimGeocoder: OpenStreetMap Nominatim, one display string per result

PlaceSuggestionService uses the structured one when a key is configured and
falls back to Nominatim exactly once when it has a transport failure.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from .domain import NAN, Place
from .weather_clients import NetworkError, ParseError

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 10
USER_AGENT = "WeatherDesk/1.0 (+https://example.local)"


def _coord(obj: Dict[str, Any], key: str) -> float:
    """Coordinates arrive as numbers (weatherapi) or strings (Nominatim)."""
    value = obj.get(key)
    if value is None or isinstance(value, bool):
        return NAN
    try:
        return float(value)
    except (TypeError, ValueError):
        return NAN


def _text(obj: Dict[str, Any], key: str) -> Optional[str]:
    value = obj.get(key)
    return None if value is None else str(value)


def _is_blank(s: Optional[str]) -> bool:
    return s is None or not s.strip()


def structured_label(name: Optional[str], region: Optional[str], country: Optional[str]) -> str:
    """'name, region, country' / 'name, country' / 'name'."""
    if not _is_blank(region):
        return f"{name or ''}, {region}, {country or ''}"
    if not _is_blank(country):
        return f"{name or ''}, {country}"
    return name or ""


def split_display_name(display: Optional[str]):
    """
    Derive (name, region, country) from a comma-separated display string.

    First token is the name, the last is the country and the second-to-last
    the region. A single token is both name and country; only the region
    needs at least two tokens.
    """
    if _is_blank(display):
        return None, None, None
    parts = [p.strip() for p in display.split(",")]
    name = parts[0]
    region = parts[-2] if len(parts) >= 2 else None
    return name, region, parts[-1]


class Geocoder(ABC):
    """Free text -> at most `limit` places, in backend order."""

    name = "base"

    def __init__(
        self,
        timeout_s: float = 6.0,
        limit: int = MAX_SUGGESTIONS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout_s = timeout_s
        self.limit = min(limit, MAX_SUGGESTIONS)
        self.transport = transport

    async def _get_array(self, url: str, params: Dict[str, Any]) -> List[Any]:
        """
        Non-200 responses and non-array bodies give no suggestions; transport
        failures raise NetworkError and undecodable bodies raise ParseError.
        """
        headers = {"User-Agent": USER_AGENT}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                r = await client.get(url, params=params, headers=headers)
        except httpx.DecodingError as exc:
            raise ParseError(f"{self.name} returned an undecodable body") from exc
        except httpx.RequestError as exc:
            raise NetworkError(f"{self.name} lookup failed: {exc}") from exc

        if r.status_code != 200:
            logger.debug("%s returned %s", self.name, r.status_code)
            return []
        try:
            data = r.json()
        except ValueError as exc:
            raise ParseError(f"{self.name} returned an unreadable body") from exc
        return data if isinstance(data, list) else []

    async def search(self, query: str) -> List[Place]:
        items = await self._fetch(query)
        out: List[Place] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            out.append(self._to_place(item))
            if len(out) >= self.limit:
                break
        return out

    @abstractmethod
    async def _fetch(self, query: str) -> List[Any]:
        ...

    @abstractmethod
    def _to_place(self, item: Dict[str, Any]) -> Place:
        ...


class WeatherApiGeocoder(Geocoder):
    """weatherapi.com search.json: [{"name","region","country","lat","lon"}, ...]"""

    name = "weatherapi-search"

    def __init__(self, api_key: str, base: str = "https://api.weatherapi.com/v1", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key.strip()
        self.base = base

    async def _fetch(self, query: str) -> List[Any]:
        return await self._get_array(f"{self.base}/search.json", {"key": self.api_key, "q": query})

    def _to_place(self, item: Dict[str, Any]) -> Place:
        name = _text(item, "name")
        region = _text(item, "region")
        country = _text(item, "country")
        return Place(
            label=structured_label(name, region, country),
            name=name,
            region=region,
            country=country,
            lat=_coord(item, "lat"),
            lon=_coord(item, "lon"),
        )


class NominatimGeocoder(Geocoder):
    """Nominatim search: [{"display_name","lat","lon"}, ...]"""

    name = "nominatim"

    def __init__(self, base: str = "https://nominatim.openstreetmap.org", **kwargs):
        super().__init__(**kwargs)
        self.base = base

    async def _fetch(self, query: str) -> List[Any]:
        params = {"format": "json", "limit": self.limit, "q": query}
        return await self._get_array(f"{self.base}/search", params)

    def _to_place(self, item: Dict[str, Any]) -> Place:
        display = _text(item, "display_name")
        name, region, country = split_display_name(display)
        return Place(
            label=display if display is not None else (name or ""),
            name=name,
            region=region,
            country=country,
            lat=_coord(item, "lat"),
            lon=_coord(item, "lon"),
        )


class PlaceSuggestionService:
    def __init__(self, primary: Optional[Geocoder], fallback: Geocoder):
        self.primary = primary
        self.fallback = fallback

    async def search(self, query: Optional[str]) -> List[Place]:
        """
        Suggestions for a typed fragment.

        Blank input returns [] without any request. A transport failure on the
        primary geocoder gets one fallback attempt; if that one has a transport
        failure too, the primary's NetworkError propagates. Parse failures
        give [] instead of an error.
        """
        q = (query or "").strip()
        if not q:
            return []

        backend = self.primary or self.fallback
        try:
            return await backend.search(q)
        except ParseError as exc:
            logger.debug("Suggestion parse failure for %r: %s", q, exc)
            return []
        except NetworkError as primary_error:
            if self.primary is None:
                raise
            logger.info("Primary geocoder unreachable, trying %s", self.fallback.name)
            try:
                return await self.fallback.search(q)
            except ParseError:
                return []
            except NetworkError as fallback_error:
                logger.warning("Fallback geocoder failed too: %s", fallback_error)
                raise primary_error


def select_place_service(
    api_key: str,
    timeout_s: float = 6.0,
    limit: int = MAX_SUGGESTIONS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PlaceSuggestionService:
    """Structured geocoder first when a key is configured, Nominatim always as fallback."""
    fallback = NominatimGeocoder(timeout_s=timeout_s, limit=limit, transport=transport)
    primary = None
    if api_key and api_key.strip():
        primary = WeatherApiGeocoder(api_key, timeout_s=timeout_s, limit=limit, transport=transport)
    return PlaceSuggestionService(primary, fallback)
