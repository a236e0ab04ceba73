"""
Seat Sync - FastAPI surface over the seat availability cache
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from seatsync.cache import SeatCacheManager, create_seat_cache_manager
from seatsync.errors import RateLimitedError, SeatSyncError

load_dotenv()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("seatsync.main")

APP_NAME = "Seat Sync"
APP_VERSION = "v0.1.0"


def create_app(manager: Optional[SeatCacheManager] = None) -> FastAPI:
    """Build the application around a seat cache manager (one per process)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.seat_cache = manager if manager is not None else create_seat_cache_manager(settings)
        logger.info("Seat cache ready")
        yield

    app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)

    def get_cache(request: Request) -> SeatCacheManager:
        return request.app.state.seat_cache

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/events/{event_id}/seats")
    async def event_seats(event_id: str, request: Request):
        """
        Current seat snapshot for an event.

        Starts a background refresh when the snapshot is stale; the
        response then reports loading=true alongside the last known seats.
        """
        cache = get_cache(request)
        cache.refresh_if_stale(event_id)
        return cache.read(event_id).to_dict()

    @app.post("/events/{event_id}/seats/refresh")
    async def refresh_event_seats(
        event_id: str,
        request: Request,
        ignore_rate_limit: bool = Query(default=False, description="Bypass the local backoff window"),
    ):
        """Fetch seats from the origin now and return the updated snapshot."""
        cache = get_cache(request)
        try:
            await cache.refresh(event_id, ignore_rate_limit=ignore_rate_limit)
        except RateLimitedError as e:
            headers = {}
            if e.retry_after_ms:
                headers["Retry-After"] = str(max(1, round(e.retry_after_ms / 1000)))
            return JSONResponse(
                status_code=429,
                content={"detail": e.message, **cache.read(event_id).to_dict()},
                headers=headers,
            )
        except SeatSyncError as e:
            raise HTTPException(status_code=502, detail=e.message)
        return cache.read(event_id).to_dict()

    @app.get("/cache/stats")
    def cache_stats(request: Request):
        """Get cache statistics."""
        return get_cache(request).get_stats()

    return app


app = create_app()
