from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from shortlink_app.dependencies import get_registry, require_session
from shortlink_app.errors import DuplicateCode, GenerationExhausted, ValidationError
from shortlink_app.models.session import AuthSession
from shortlink_app.schemas.url import ClickStats, Granularity, PurgeResult, URLCreate, URLResponse
from shortlink_app.services.analytics_service import AnalyticsRecorder
from shortlink_app.services.url_service import ShortCodeRegistry

router = APIRouter(prefix="/urls", tags=["urls"])


@router.post("/", response_model=URLResponse, status_code=status.HTTP_201_CREATED)
async def create_short_url(
    url_data: URLCreate,
    registry: ShortCodeRegistry = Depends(get_registry),
    session: Optional[AuthSession] = Depends(require_session)
):
    """Create a new short URL"""
    try:
        return registry.shorten(
            url_data.long_url,
            custom_code=url_data.custom_code,
            ttl_minutes=url_data.ttl_minutes
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DuplicateCode as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except GenerationExhausted as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/", response_model=List[URLResponse])
async def list_urls(registry: ShortCodeRegistry = Depends(get_registry)):
    """List every stored short URL, expired ones included"""
    return registry.list_entries()


@router.post("/purge-expired", response_model=PurgeResult)
async def purge_expired(
    registry: ShortCodeRegistry = Depends(get_registry),
    session: Optional[AuthSession] = Depends(require_session)
):
    """Maintenance sweep removing expired entries"""
    return PurgeResult(removed=registry.purge_expired())


@router.get("/{short_code}", response_model=URLResponse)
async def get_url_info(
    short_code: str,
    registry: ShortCodeRegistry = Depends(get_registry)
):
    """Get information about a short URL (expired entries are still shown)"""
    entry = registry.get(short_code)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
    return entry


@router.get("/{short_code}/stats", response_model=ClickStats)
async def get_url_stats(
    short_code: str,
    granularity: Granularity = Granularity.HOUR,
    registry: ShortCodeRegistry = Depends(get_registry)
):
    """Get click statistics for a short URL"""
    entry = registry.get(short_code)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
    return AnalyticsRecorder.aggregate(entry, granularity)
