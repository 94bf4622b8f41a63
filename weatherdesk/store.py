"""
Preference and line-list stores.

The core only sees two small interfaces:
- PreferenceStore: get(key, default) / put(key, value)
- LineStore: load() / save(lines or a single string)

The SQLite-backed implementations read once, keep a cache, and commit on
every write. Callers treat write failures as non-fatal.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Sequence, Union

from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from .models import Preference, StoredLine

# Preference keys
KEY_API_KEY = "weather.api_key"
KEY_DEMO_MODE = "demo_mode"
KEY_THEME = "theme"
KEY_REFRESH_INTERVAL = "refresh.interval_seconds"
KEY_REFRESH_ENABLED = "refresh.enabled"

# Line-list names
FAVORITES = "favorites"
LAST_QUERY = "last_query"


class PreferenceStore(Protocol):
    def get(self, key: str, default: str) -> str:
        ...

    def put(self, key: str, value: str) -> None:
        ...


class LineStore(Protocol):
    def load(self) -> List[str]:
        ...

    def save(self, lines: Union[Sequence[str], str]) -> None:
        ...


class SqlPreferenceStore:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self._cache: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._cache is None:
            with self.session_factory() as db:
                rows = db.scalars(select(Preference)).all()
                self._cache = {row.key: row.value for row in rows}
        return self._cache

    def get(self, key: str, default: str) -> str:
        return self._load().get(key, default)

    def put(self, key: str, value: str) -> None:
        cache = self._load()
        with self.session_factory() as db:
            db.merge(Preference(key=key, value=value))
            db.commit()
        cache[key] = value


class SqlLineStore:
    """One named list of lines; blank lines are dropped on load."""

    def __init__(self, session_factory: sessionmaker, list_name: str):
        self.session_factory = session_factory
        self.list_name = list_name

    def load(self) -> List[str]:
        with self.session_factory() as db:
            rows = db.scalars(
                select(StoredLine)
                .where(StoredLine.list_name == self.list_name)
                .order_by(StoredLine.position)
            ).all()
            return [row.value.strip() for row in rows if row.value.strip()]

    def save(self, lines: Union[Sequence[str], str]) -> None:
        if isinstance(lines, str):
            lines = [lines]
        with self.session_factory() as db:
            db.execute(delete(StoredLine).where(StoredLine.list_name == self.list_name))
            db.add_all(
                StoredLine(list_name=self.list_name, position=i, value=line)
                for i, line in enumerate(lines)
            )
            db.commit()


def first_line(store: LineStore) -> str:
    lines = store.load()
    return lines[0] if lines else ""
