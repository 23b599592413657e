import logging

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import RedirectResponse

from shortlink_app.dependencies import get_recorder, get_registry
from shortlink_app.errors import Expired, NotFound
from shortlink_app.services.analytics_service import AnalyticsRecorder, ClickContext
from shortlink_app.services.url_service import ShortCodeRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["redirect"])


@router.get("/{short_code}")
async def redirect_to_long_url(
    short_code: str,
    request: Request,
    registry: ShortCodeRegistry = Depends(get_registry),
    recorder: AnalyticsRecorder = Depends(get_recorder)
):
    """
    Redirect to the original URL.

    Flow:
    1. Resolve the code (404 unknown, 410 expired)
    2. Record the click; the geo lookup is bounded and never fails the redirect
    3. Redirect
    """
    try:
        entry = registry.resolve(short_code)
    except NotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
    except Expired:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Short URL has expired"
        )

    context = ClickContext(
        referrer=request.headers.get("referer", ""),
        user_agent=request.headers.get("user-agent", ""),
        ip_address=request.client.host if request.client else None,
    )
    try:
        await recorder.record(entry, context)
    except NotFound:
        # Purged between resolve and record; the redirect itself is still valid
        logger.warning("Entry %s vanished before its click was recorded", short_code)

    return RedirectResponse(url=entry.long_url, status_code=status.HTTP_302_FOUND)
