"""
Row Store

The service layer's only view of persistence. `RowStore` is the contract;
`SQLModelRowStore` implements it on an async SQLModel session.

Contract:
- find_by_alias: every row whose alias equals the argument (non-unique index)
- insert: persist a new row and return it with its row_id assigned
- update: full-row replace keyed on row_id
- get_by_id / query: single-row and paginated reads

Every write is a single commit, so a cancelled or failed call never leaves a
half-written row behind. Failures are raised as DatabaseError with the
driver exception attached; retrying is left to the caller.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from urlshortener.core.exceptions import DatabaseError
from urlshortener.db.models import ShortenedUrl

logger = logging.getLogger(__name__)


class RowStore(ABC):
    """Keyed-row store for ShortenedUrl rows."""

    @abstractmethod
    async def find_by_alias(self, alias: str) -> list[ShortenedUrl]:
        pass

    @abstractmethod
    async def insert(self, row: ShortenedUrl) -> ShortenedUrl:
        pass

    @abstractmethod
    async def update(self, row: ShortenedUrl) -> None:
        pass

    @abstractmethod
    async def get_by_id(self, row_id: int) -> Optional[ShortenedUrl]:
        pass

    @abstractmethod
    async def query(
        self,
        page_index: int = 0,
        page_size: int = 20,
        search: Optional[str] = None
    ) -> tuple[list[ShortenedUrl], int]:
        """
        Page through stored rows, newest first.

        Args:
            page_index: 0-based page number
            page_size: Rows per page
            search: Optional substring filter on full_url

        Returns:
            (rows on this page, total number of matching rows)
        """
        pass


class SQLModelRowStore(RowStore):
    """RowStore backed by an async SQLModel/SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_alias(self, alias: str) -> list[ShortenedUrl]:
        try:
            statement = (
                select(ShortenedUrl)
                .where(ShortenedUrl.alias == alias)
                .order_by(ShortenedUrl.offset)
            )
            result = await self.session.execute(statement)
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to fetch shortened urls with alias '{alias}'", exc_info=True)
            raise DatabaseError(
                f"Failed to fetch shortened urls with alias '{alias}'",
                original_error=e
            ) from e

    async def insert(self, row: ShortenedUrl) -> ShortenedUrl:
        try:
            self.session.add(row)
            await self.session.commit()
            await self.session.refresh(row)
        except Exception as e:
            await self.session.rollback()
            logger.error(
                f"Failed to insert row with alias '{row.url_safe_alias}' "
                f"(offset: {row.offset}) from url '{row.full_url}'",
                exc_info=True
            )
            raise DatabaseError(
                f"Failed to insert row with alias '{row.url_safe_alias}' "
                f"(offset: {row.offset}) from url '{row.full_url}'",
                original_error=e
            ) from e

        logger.debug(
            f"Inserted row {row.row_id} with alias '{row.url_safe_alias}' "
            f"(offset: {row.offset}) from url '{row.full_url}'"
        )
        return row

    async def update(self, row: ShortenedUrl) -> None:
        if row.row_id is None:
            raise DatabaseError("Cannot update a row that was never inserted")
        try:
            await self.session.merge(row)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            logger.error(f"Failed to update row {row.row_id} ('{row.url_safe_alias}')", exc_info=True)
            raise DatabaseError(
                f"Failed to update row {row.row_id} ('{row.url_safe_alias}')",
                original_error=e
            ) from e

    async def get_by_id(self, row_id: int) -> Optional[ShortenedUrl]:
        try:
            return await self.session.get(ShortenedUrl, row_id)
        except Exception as e:
            logger.error(f"Failed to fetch row {row_id}", exc_info=True)
            raise DatabaseError(f"Failed to fetch row {row_id}", original_error=e) from e

    async def query(
        self,
        page_index: int = 0,
        page_size: int = 20,
        search: Optional[str] = None
    ) -> tuple[list[ShortenedUrl], int]:
        try:
            statement = select(ShortenedUrl)
            count_statement = select(func.count(ShortenedUrl.row_id))
            if search:
                pattern = f"%{search}%"
                statement = statement.where(ShortenedUrl.full_url.like(pattern))
                count_statement = count_statement.where(ShortenedUrl.full_url.like(pattern))

            statement = (
                statement
                .order_by(ShortenedUrl.created.desc(), ShortenedUrl.row_id.desc())
                .offset(page_index * page_size)
                .limit(page_size)
            )

            rows = (await self.session.execute(statement)).scalars().all()
            total = (await self.session.execute(count_statement)).scalar() or 0
            return list(rows), total
        except Exception as e:
            logger.error(f"Failed to query page {page_index} of shortened urls", exc_info=True)
            raise DatabaseError(
                f"Failed to query page {page_index} of shortened urls",
                original_error=e
            ) from e
