"""
FuelGo Marketplace — FastAPI Application

On-demand fuel delivery: customers order from verified vendors, vendors
dispatch their own drivers, admins approve accounts and oversee orders.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import settings
from domain.errors import DomainError
from routes import (
    health, auth, vendors, vendor, vendor_drivers, orders, drivers,
    payments, notifications, reviews, admin, realtime,
)

# ── Logging ─────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: validate settings and create DB tables."""
    settings.validate_production_settings()

    from database import init_db
    await init_db()
    logger.info("Database initialized")

    yield  # app runs here

    logger.info("Shutting down")


# ── App Factory ─────────────────────────────────────────────────────

app = FastAPI(
    title=settings.app_name,
    description="On-demand fuel delivery marketplace for customers, vendors, drivers and admins",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routes ──────────────────────────────────────────────────────────

API_PREFIX = "/api"

app.include_router(health.router, prefix=API_PREFIX)
app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(vendors.router, prefix=API_PREFIX)
app.include_router(vendor.router, prefix=API_PREFIX)
app.include_router(vendor_drivers.router, prefix=API_PREFIX)
app.include_router(orders.router, prefix=API_PREFIX)
app.include_router(orders.vendor_router, prefix=API_PREFIX)
app.include_router(orders.admin_router, prefix=API_PREFIX)
app.include_router(drivers.router, prefix=API_PREFIX)
app.include_router(payments.router, prefix=API_PREFIX)
app.include_router(notifications.router, prefix=API_PREFIX)
app.include_router(reviews.router, prefix=API_PREFIX)
app.include_router(admin.router, prefix=API_PREFIX)
app.include_router(realtime.router, prefix=API_PREFIX)

# ── Static Files (uploaded logos) ───────────────────────────────────

os.makedirs(settings.logo_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

# ── Exception Handlers ──────────────────────────────────────────────
# Every failure leaves the API as {"success": false, "error": {...}}


def _error_body(code: str, message: str, details=None) -> dict:
    return {"success": False, "error": {"code": code, "message": message, "details": details}}


@app.exception_handler(DomainError)
async def domain_error_handler(request, exc: DomainError):
    """NotFoundError → "notfound", InvalidTransitionError → "invalidtransition", ..."""
    code = exc.__class__.__name__.replace("Error", "").lower()
    return JSONResponse(
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
        content=_error_body(code, exc.message, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content=_error_body("validation_error", "Request validation failed", jsonable_encoder(exc.errors())),
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request, exc: HTTPException):
    detail = exc.detail
    if isinstance(detail, str):
        body = _error_body("http_error", detail)
    else:
        body = _error_body("http_error", "Request failed", detail)
    return JSONResponse(status_code=exc.status_code, headers=exc.headers, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(request, exc):
    # Raw exception text stays in the server log
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body("internal_server_error", "Internal server error"),
    )


# ── Entrypoint ──────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
