"""
URL Shortening Service

This service holds the core business logic of the shortener:
- create: map a submitted URL to a persisted row, reusing the row for a URL
  that was already shortened and resolving fingerprint collisions
- lookup: map a url-safe token back to its URL and publish a hit event
- record_hit: apply one hit event to its row (telemetry aggregator only)
- list_urls / get_stats: read-only views for the web layer

Design Decisions:
- Content-addressed aliases: the alias is a fingerprint of host + path +
  query, so the same URL always lands on the same alias
- Collisions: URLs sharing an alias get dense offsets 0..9 in first-seen
  order; the 11th distinct URL for an alias is refused
- Every operation returns a Result; store and codec exceptions are turned
  into typed errors here and never escape to the caller
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from urlshortener.core.exceptions import AliasDecodeError, DatabaseError
from urlshortener.core.result import Err, ErrorCategory, Result
from urlshortener.core.validators import sanitize_token, validate_url
from urlshortener.db.models import ShortenedUrl
from urlshortener.db.repository import RowStore
from urlshortener.services import alias_codec
from urlshortener.services.telemetry import HitEvent, TelemetryQueue

logger = logging.getLogger(__name__)

MAX_COLLISIONS = alias_codec.MAX_OFFSET + 1


@dataclass(frozen=True)
class UrlPage:
    """One page of stored urls."""
    items: list[ShortenedUrl]
    page_index: int
    page_size: int
    total_count: int

    @property
    def has_next(self) -> bool:
        return (self.page_index + 1) * self.page_size < self.total_count

    @property
    def has_prev(self) -> bool:
        return self.page_index > 0


class UrlService:
    """
    Creates shortened urls, resolves them and records their hits.

    Args:
        store: Row store for ShortenedUrl rows
        telemetry: Queue receiving a HitEvent for every successful lookup.
            Optional for callers that never look urls up (the aggregator).
    """

    def __init__(self, store: RowStore, telemetry: Optional[TelemetryQueue] = None):
        self.store = store
        self.telemetry = telemetry

    async def create(self, url: Optional[str]) -> Result[ShortenedUrl]:
        """
        Create a shortened url, or return the existing row for this exact URL.

        Args:
            url: Absolute http(s) URL

        Returns:
            Result with the persisted row, or an error:
            - CLIENT_ERROR: url is malformed or not http(s)
            - COLLISION_EXHAUSTED: 10 other URLs already share this alias
            - UNEXPECTED: fingerprinting or the row store failed
        """
        reason = validate_url(url)
        if reason is not None:
            logger.debug(f"Rejected url for shortening: {reason}")
            return Result.fail(Err(reason, ErrorCategory.CLIENT_ERROR, "UrlService.create"))

        try:
            alias = alias_codec.fingerprint(alias_codec.alias_content(url))
        except Exception as e:
            logger.error(f"Unexpected error while creating alias for '{url}'", exc_info=True)
            return Result.fail(Err(
                f"Unexpected error while creating alias for '{url}'",
                ErrorCategory.UNEXPECTED,
                "UrlService.create",
                exception=e
            ))

        try:
            existing = await self.store.find_by_alias(alias)
        except DatabaseError as e:
            return Result.fail(self._store_error(e, "UrlService.create"))

        if len(existing) >= MAX_COLLISIONS:
            message = (
                f"Reached {MAX_COLLISIONS} collisions for alias {alias!r} "
                f"while shortening '{url}'. A new disambiguation strategy is needed."
            )
            logger.critical(message)
            return Result.fail(Err(message, ErrorCategory.COLLISION_EXHAUSTED, "UrlService.create"))

        for row in existing:
            if row.full_url == url:
                logger.debug(f"Url '{url}' already shortened as '{row.url_safe_alias}'")
                return Result.ok(row)

        offset = len(existing)
        if offset:
            logger.info(f"Alias collision for '{url}': using offset {offset}")

        new_row = ShortenedUrl(
            alias=alias,
            offset=offset,
            url_safe_alias=alias_codec.encode(alias, offset),
            full_url=url,
            created=datetime.now(timezone.utc),
            hits=0,
        )

        try:
            inserted = await self.store.insert(new_row)
        except DatabaseError as e:
            return Result.fail(self._store_error(e, "UrlService.create"))

        logger.info(f"Shortened '{url}' as '{inserted.url_safe_alias}' (row {inserted.row_id})")
        return Result.ok(inserted)

    async def lookup(self, token: Optional[str]) -> Result[str]:
        """
        Resolve a url-safe token to the URL it was created for.

        On success a HitEvent is queued for the telemetry aggregator before
        returning; the hit itself is recorded later.

        Returns:
            Result with the full url, or an error:
            - CLIENT_ERROR: token is missing or blank
            - NOT_FOUND: token is undecodable or matches no row
            - UNEXPECTED: the row store failed
        """
        if sanitize_token(token) is None:
            return Result.fail(Err(
                f"Shortened url cannot be null or whitespace. Was: '{token if token is not None else '<null>'}'",
                ErrorCategory.CLIENT_ERROR,
                "UrlService.lookup"
            ))

        row_result = await self._find_row(token)
        if not row_result.success:
            return Result.from_error(row_result, "UrlService.lookup")
        row = row_result.value

        if self.telemetry is not None:
            await self.telemetry.put(HitEvent(row_id=row.row_id, date_hit=datetime.now(timezone.utc)))
        else:
            logger.warning(f"No telemetry queue configured; hit for row {row.row_id} not recorded")

        return Result.ok(row.full_url)

    async def record_hit(self, event: Optional[HitEvent]) -> Result[None]:
        """
        Apply one hit event: hits + 1 and last_hit = event time.

        Only the telemetry aggregator calls this. The read-increment-write is
        not atomic, so it must run on a single consumer.

        Returns:
            Result with no value, or an error:
            - NOT_FOUND: the row no longer exists
            - UNEXPECTED: event is missing or the row store failed
        """
        if event is None:
            return Result.fail(Err("telemetry cannot be null", ErrorCategory.UNEXPECTED, "UrlService.record_hit"))

        try:
            row = await self.store.get_by_id(event.row_id)
        except DatabaseError as e:
            return Result.fail(self._store_error(e, "UrlService.record_hit"))

        if row is None:
            return Result.fail(Err(
                f"Row with row id {event.row_id} was not found.",
                ErrorCategory.NOT_FOUND,
                "UrlService.record_hit"
            ))

        row.hits = (row.hits or 0) + 1
        row.last_hit = event.date_hit

        try:
            await self.store.update(row)
        except DatabaseError as e:
            return Result.fail(self._store_error(e, "UrlService.record_hit"))

        return Result.ok()

    async def get_stats(self, token: Optional[str]) -> Result[ShortenedUrl]:
        """
        Return the row behind a token without recording a hit.

        Same error semantics as lookup().
        """
        if sanitize_token(token) is None:
            return Result.fail(Err(
                f"Shortened url cannot be null or whitespace. Was: '{token if token is not None else '<null>'}'",
                ErrorCategory.CLIENT_ERROR,
                "UrlService.get_stats"
            ))
        row_result = await self._find_row(token)
        if not row_result.success:
            return Result.from_error(row_result, "UrlService.get_stats")
        return row_result

    async def list_urls(
        self,
        page_index: int = 0,
        page_size: int = 20,
        search: Optional[str] = None
    ) -> Result[UrlPage]:
        """Page through stored urls, newest first."""
        if page_index < 0 or page_size <= 0:
            return Result.fail(Err(
                f"Invalid page request (page_index={page_index}, page_size={page_size})",
                ErrorCategory.CLIENT_ERROR,
                "UrlService.list_urls"
            ))

        try:
            rows, total = await self.store.query(page_index, page_size, search or None)
        except DatabaseError as e:
            return Result.fail(self._store_error(e, "UrlService.list_urls"))

        return Result.ok(UrlPage(items=rows, page_index=page_index, page_size=page_size, total_count=total))

    async def _find_row(self, token: str) -> Result[ShortenedUrl]:
        """Decode a token and fetch the row with matching alias and offset."""
        try:
            alias, offset = alias_codec.decode(token)
        except AliasDecodeError as e:
            # Every token this service issues decodes; one that doesn't was never ours
            logger.debug(f"Could not decode alias '{token}': {e.reason}")
            return Result.fail(Err(e.reason, ErrorCategory.NOT_FOUND, "UrlService._find_row"))

        try:
            found = await self.store.find_by_alias(alias)
        except DatabaseError as e:
            return Result.fail(self._store_error(e, "UrlService._find_row"))

        matches = [row for row in found if row.offset == offset]
        if not matches:
            logger.debug(f"No urls found with alias '{token}' ({len(found)} rows share its fingerprint)")
            return Result.fail(Err(
                f"No urls found with alias '{token}'",
                ErrorCategory.NOT_FOUND,
                "UrlService._find_row"
            ))

        if len(matches) > 1:
            logger.warning(f"Found {len(matches)} urls stored with the same alias '{token}'")

        return Result.ok(matches[0])

    def _store_error(self, error: DatabaseError, location: str) -> Err:
        cause = error.original_error or error
        logger.error(f"{location}: {error.message}", exc_info=cause)
        return Err(error.message, ErrorCategory.UNEXPECTED, location, exception=cause)
