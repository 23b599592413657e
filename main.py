import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI

from shortlink_app.api.v1 import auth, redirect, urls
from shortlink_app.config import settings
from shortlink_app.dependencies import get_registry, get_store, get_token_manager
from shortlink_app.logger import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Process start: migrate the legacy collection, restore a stored session
    and start dispatching store changes from other contexts.
    """
    setup_logging(settings.log_level)
    get_registry().migrate()

    manager = get_token_manager()
    manager.restore()

    watcher = asyncio.create_task(get_store().watch(settings.store_poll_interval))
    try:
        yield
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
        manager.close()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="URL shortener with click analytics and self-renewing sessions",
    debug=settings.debug,
    lifespan=lifespan
)


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(urls.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1")
app.include_router(redirect.router)
