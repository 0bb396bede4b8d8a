"""
FastAPI Endpoints for URL Shortener Service

Endpoints only handle:
- Request parsing (Pydantic models)
- Mapping service Results to HTTP responses
- Delegating to UrlService

Error mapping:
- CLIENT_ERROR -> 400 with the service message
- NOT_FOUND -> 404
- COLLISION_EXHAUSTED / UNEXPECTED -> 500 with a generic message; internal
  causes are logged, never returned
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from urlshortener.api.schemas import ShortenRequest, ShortenedUrlResponse, StatsResponse, UrlListResponse
from urlshortener.core.result import Err, ErrorCategory
from urlshortener.core.setting import settings
from urlshortener.core.telemetry_manager import TelemetryRuntime, get_telemetry
from urlshortener.db.models import ShortenedUrl
from urlshortener.db.repository import SQLModelRowStore
from urlshortener.db.session import get_session
from urlshortener.services.url_service import UrlService

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong on our end. Please try again later."

router = APIRouter()


def get_url_service(
    session: AsyncSession = Depends(get_session),
    telemetry: TelemetryRuntime = Depends(get_telemetry)
) -> UrlService:
    """UrlService bound to the request's session and the process telemetry queue."""
    return UrlService(SQLModelRowStore(session), telemetry.queue)


def raise_for_error(err: Err, token: Optional[str] = None) -> None:
    """Translate a service error into an HTTPException."""
    if err.category is ErrorCategory.CLIENT_ERROR:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=err.message)

    if err.category is ErrorCategory.NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Shortened url '{token}' was not found"
        )

    logger.error(
        f"{err.category.name} result: {err.message} --> {err.format_called_from()}",
        exc_info=err.exception
    )
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=GENERIC_ERROR_MESSAGE)


def to_response(row: ShortenedUrl) -> ShortenedUrlResponse:
    return ShortenedUrlResponse(
        alias=row.url_safe_alias,
        short_url=f"{settings.BASE_URL.rstrip('/')}/{row.url_safe_alias}",
        full_url=row.full_url,
        created=row.created
    )


@router.post(
    "/urls/create",
    response_model=ShortenedUrlResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a short URL",
    description="Shortens a long URL; submitting the same URL again returns the same short URL"
)
async def create_short_url(
    body: ShortenRequest,
    url_service: UrlService = Depends(get_url_service)
) -> ShortenedUrlResponse:
    logger.debug(f"Creating alias for '{body.url}'")
    result = await url_service.create(body.url)
    if not result.success:
        raise_for_error(result.error)
    return to_response(result.value)


@router.get(
    "/urls/all",
    response_model=UrlListResponse,
    summary="List short URLs",
    description="Paginated list of shortened urls, newest first"
)
async def list_urls(
    page_index: int = Query(0, ge=0),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, max_length=256),
    url_service: UrlService = Depends(get_url_service)
) -> UrlListResponse:
    result = await url_service.list_urls(page_index, page_size, search)
    if not result.success:
        raise_for_error(result.error)

    page = result.value
    return UrlListResponse(
        items=[to_response(row) for row in page.items],
        page_index=page.page_index,
        page_size=page.page_size,
        total_count=page.total_count,
        has_next=page.has_next,
        has_prev=page.has_prev,
        search=search
    )


@router.get(
    "/urls/{token}/stats",
    response_model=StatsResponse,
    summary="Get URL statistics",
    description="Hit count and last hit time; hits are recorded asynchronously"
)
async def get_url_stats(
    token: str,
    url_service: UrlService = Depends(get_url_service)
) -> StatsResponse:
    result = await url_service.get_stats(token)
    if not result.success:
        raise_for_error(result.error, token)

    row = result.value
    return StatsResponse(
        alias=row.url_safe_alias,
        full_url=row.full_url,
        created=row.created,
        hits=row.hits,
        last_hit=row.last_hit
    )


@router.get(
    "/{token}",
    status_code=status.HTTP_302_FOUND,
    summary="Redirect to original URL",
    description="Resolves a short URL and redirects to the original long URL"
)
async def redirect_to_url(
    token: str,
    url_service: UrlService = Depends(get_url_service)
) -> RedirectResponse:
    result = await url_service.lookup(token)
    if not result.success:
        raise_for_error(result.error, token)

    return RedirectResponse(url=result.value, status_code=status.HTTP_302_FOUND)
