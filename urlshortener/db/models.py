"""
Database Models for URL Shortener Service

This module defines the SQLModel schema for:
- ShortenedUrl: one persisted mapping from a submitted URL to its
  alias / offset / url-safe token, plus its hit statistics

Design Decisions:
- alias is indexed but NOT unique: distinct URLs may fingerprint to the same
  alias, the offset disambiguates them
- (alias, offset) carries a unique constraint so two concurrent creates can
  never claim the same slot
- url_safe_alias is derived from (alias, offset) once, at creation time, and
  gets its own unique index since it is what lookups are keyed on externally
- hits / last_hit are denormalized onto the row and only ever written by the
  telemetry aggregator
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, SmallInteger, String, Text, UniqueConstraint
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShortenedUrl(SQLModel, table=True):
    """
    Shortened url table.

    Fields:
    - row_id: Primary key, assigned by the store on insert
    - alias: 16 character content fingerprint of host + path + query
    - offset: Collision offset in [0, 9]
    - url_safe_alias: Token handed to clients (encoded alias + offset)
    - full_url: URL submitted by the client (we redirect here)
    - created: When the row was inserted
    - hits: Number of successful lookups recorded so far
    - last_hit: When the most recent recorded lookup happened
    """
    __tablename__ = "shortened_urls"
    __table_args__ = (
        UniqueConstraint("alias", "offset", name="uq_shortened_urls_alias_offset"),
    )

    row_id: Optional[int] = Field(default=None, primary_key=True)
    alias: str = Field(
        sa_column=Column(String(16), nullable=False, index=True),
        min_length=16,
        max_length=16
    )
    offset: int = Field(
        default=0,
        sa_column=Column(SmallInteger, nullable=False, default=0)
    )
    url_safe_alias: str = Field(
        sa_column=Column(String(32), nullable=False, unique=True, index=True)
    )
    full_url: str = Field(sa_column=Column(Text, nullable=False))
    created: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    hits: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    last_hit: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
