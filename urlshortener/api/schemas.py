"""
API Request and Response Schemas

This module defines all Pydantic models for API requests and responses.

Design Principles:
- Request models: shape only; URL rules live in the service so the same
  client errors come back whether the caller is HTTP or Python
- Response models: never expose internal fields (raw alias, offset, row id)
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from urlshortener.core.validators import MAX_URL_LENGTH


class ShortenRequest(BaseModel):
    """Request model for URL shortening endpoint."""
    # Plain str rather than HttpUrl: the URL is stored byte-for-byte as submitted
    url: str = Field(..., max_length=MAX_URL_LENGTH, description="The long URL to shorten")


class ShortenedUrlResponse(BaseModel):
    """A shortened url as seen by clients."""
    alias: str = Field(..., description="Url-safe alias used in the short url")
    short_url: str = Field(..., description="The complete short URL")
    full_url: str = Field(..., description="The original long URL")
    created: datetime


class StatsResponse(BaseModel):
    """Hit statistics for one shortened url."""
    alias: str
    full_url: str
    created: datetime
    hits: int
    last_hit: Optional[datetime] = None


class UrlListResponse(BaseModel):
    """One page of shortened urls."""
    items: list[ShortenedUrlResponse]
    page_index: int
    page_size: int
    total_count: int
    has_next: bool
    has_prev: bool
    search: Optional[str] = None
