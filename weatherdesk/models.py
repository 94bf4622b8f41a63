"""
ORM models.

We store:
- preferences as plain string key/value pairs
- named, ordered lists of lines (favorites, last query)
"""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


class Preference(Base):
    __tablename__ = "preferences"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="")


class StoredLine(Base):
    __tablename__ = "stored_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Which list the line belongs to, e.g. "favorites" or "last_query"
    list_name: Mapped[str] = mapped_column(String(64), index=True)
    position: Mapped[int] = mapped_column(Integer)
    value: Mapped[str] = mapped_column(Text)
