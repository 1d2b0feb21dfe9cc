import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import LOG_LEVEL
from .cache import availability_cache
from .errors import BookingServiceError
from .middleware import RequestLoggingMiddleware
from .publisher import publisher
from .redis_client import redis_client
from .routes import router
from .venue_routes import router as venue_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Booking Service")
app.add_middleware(RequestLoggingMiddleware)
app.include_router(router)
app.include_router(venue_router)


@app.exception_handler(BookingServiceError)
async def booking_error_handler(request: Request, exc: BookingServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "booking-service",
        "events_enabled": publisher.enabled,
        "cache_enabled": availability_cache.enabled,
    }


@app.on_event("startup")
async def startup():
    try:
        await publisher.connect()
    except Exception:
        # publish() reconnects lazily
        logger.warning("event publisher unavailable at startup")


@app.on_event("shutdown")
async def shutdown():
    try:
        await publisher.close()
    except Exception:
        logger.warning("event publisher close failed", exc_info=True)
    if redis_client is not None:
        await redis_client.aclose()
