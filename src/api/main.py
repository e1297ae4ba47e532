"""
FILE: src/api/main.py
"""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.api.observability import redact_token_path, setup_observability
from src.api.persistence_profile import validate_persistence_profile_guardrails
from src.api.routers import (  # noqa: F401
    firm_offer_public_routes,
    firm_offers_support_routes,
)
from src.api.routers.firm_offers import router as firm_offer_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI):
    validate_persistence_profile_guardrails()
    yield


app = FastAPI(
    title="Firm Offer Lifecycle API",
    version="0.1.0",
    description=(
        "Firm offer lifecycle service for speaker bookings.\n\n"
        "Admins derive and send firm offers, clients complete them through a token link, "
        "and speakers confirm or decline through a separate review link."
    ),
    openapi_tags=[
        {
            "name": "Firm Offers",
            "description": "Admin, client, and speaker firm offer lifecycle endpoints.",
        },
        {
            "name": "Health",
            "description": "Liveness and readiness probes.",
        },
    ],
    lifespan=_app_lifespan,
)

setup_observability(app)
app.include_router(firm_offer_router)


@app.exception_handler(Exception)
async def unhandled_exception_to_problem_details(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception while serving request", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred.",
            "instance": redact_token_path(str(request.url.path)),
        },
    )


health_router = APIRouter(tags=["Health"])


@health_router.get("/health", summary="Service Health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@health_router.get("/health/live", summary="Liveness Probe")
def health_live() -> dict[str, str]:
    return {"status": "live"}


@health_router.get("/health/ready", summary="Readiness Probe")
def health_ready() -> dict[str, str]:
    return {"status": "ready"}


app.include_router(health_router)
app.include_router(health_router, prefix="/api/v1")
