# backend/rentals/main.py
"""
Rentals booking API.

Run locally with:
    uvicorn rentals.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import assert_payment_env, settings
from .database import init_db
from .errors import register_error_handlers
from .routes import health, prometheus
from .routes.v1 import (
    bookings as bookings_v1,
    manager as manager_v1,
    payments as payments_v1,
    properties as properties_v1,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)

API_TITLE = "Rentals Booking API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    assert_payment_env(settings.site_mode_raw, settings.payment_mode)
    if settings.site_mode == "local" and not settings.is_testing:
        init_db()
    logger.info(
        "Rentals API starting: site_mode=%s payment_mode=%s overlap_policy=%s price_policy=%s",
        settings.site_mode,
        settings.payment_mode,
        settings.booking_overlap_policy,
        settings.price_policy,
    )
    yield
    logger.info("Rentals API shutting down")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Register unified error envelope handlers
register_error_handlers(app)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(manager_v1.router, prefix="/manager")
api_v1.include_router(properties_v1.router, prefix="/properties")
api_v1.include_router(payments_v1.router, prefix="/payments")

app.include_router(api_v1)
app.include_router(health.router)
app.include_router(prometheus.router)
