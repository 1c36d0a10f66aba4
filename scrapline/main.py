import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from scrapline.api.listings import router as listings_router
from scrapline.api.users import router as users_router
from scrapline.config import settings
from scrapline.database import get_engine, initialize_database
from scrapline.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    PickupError,
    StoreUnavailableError,
    ValidationError,
)

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ValidationError: 422,
    AuthorizationError: 403,
    NotFoundError: 404,
    # ConflictError is an InvalidStateError
    InvalidStateError: 409,
    StoreUnavailableError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database on startup."""
    initialize_database(get_engine())
    yield


app = FastAPI(lifespan=lifespan)

# Include routers
app.include_router(listings_router)
app.include_router(users_router)


@app.exception_handler(PickupError)
async def pickup_error_handler(request: Request, exc: PickupError):
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        400,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": exc.message},
    )


@app.get("/")
async def root():
    return {"message": "Scrapline pickup coordinator"}
