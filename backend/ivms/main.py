"""FastAPI application entry point (``uvicorn ivms.main:app``)."""

import logging

from dotenv import load_dotenv

# Load environment variables FIRST - before any other imports
load_dotenv()

# ruff: noqa: E402
# Third-party
from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ivms.config import get_settings
from ivms.constants import API_PREFIX
from ivms.database import initialize_database
from ivms.exceptions import IVMSError
from ivms.exceptions import ValidationFailedError
from ivms.routers.audit import router as audit_router
from ivms.routers.auth import router as auth_router
from ivms.routers.car_requests import router as car_requests_router
from ivms.routers.cars import router as cars_router
from ivms.routers.maintenance import router as maintenance_router
from ivms.routers.notifications import router as notifications_router
from ivms.routers.parts import router as parts_router
from ivms.routers.rental_companies import router as rental_companies_router
from ivms.routers.users import router as users_router
from ivms.schemas.validation import field_errors_from
from ivms.services.notification_events import register_notification_handlers

_settings = get_settings()

# --------------------------------------------------------------------------
# LOGGING CONFIGURATION
# --------------------------------------------------------------------------
#
# - Default log level: INFO
# - Can be set at runtime with LOG_LEVEL env (e.g. LOG_LEVEL=WARNING for CI)
#
_log_level = getattr(logging, _settings.log_level.upper(), logging.INFO)
if not isinstance(_log_level, int):
    _log_level = logging.INFO
logging.basicConfig(level=_log_level, format="%(levelname)s - %(message)s", handlers=[logging.StreamHandler()])

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------

app = FastAPI(title="IVMS", redirect_slashes=True)

# ------------------------------------------------------------------
# CORS – open wildcard in dev/tests, restricted otherwise.
# ``ALLOWED_CORS_ORIGINS`` can contain a comma-separated list.
# ------------------------------------------------------------------

if _settings.auth_disabled:
    cors_origins = ["*"]
else:
    cors_origins = [o.strip() for o in _settings.allowed_cors_origins.split(",") if o.strip()]
    if not cors_origins:
        cors_origins = ["http://localhost:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


@app.exception_handler(IVMSError)
async def handle_domain_error(request: Request, exc: IVMSError):
    content = {"detail": exc.message}
    if isinstance(exc, ValidationFailedError):
        content["errors"] = [e.as_dict() for e in exc.errors]
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    return await handle_domain_error(request, ValidationFailedError(field_errors_from(exc.errors())))


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include our API routers under the shared prefix
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(users_router, prefix=API_PREFIX)
app.include_router(rental_companies_router, prefix=API_PREFIX)
app.include_router(cars_router, prefix=API_PREFIX)
app.include_router(parts_router, prefix=API_PREFIX)
app.include_router(maintenance_router, prefix=API_PREFIX)
app.include_router(car_requests_router, prefix=API_PREFIX)
app.include_router(audit_router, prefix=API_PREFIX)
app.include_router(notifications_router, prefix=API_PREFIX)

# Domain events -> per-user notifications
register_notification_handlers()


@app.on_event("startup")
async def startup_event():
    """Create tables if they don't exist."""
    initialize_database()
    logger.info("IVMS API started (environment=%s)", _settings.environment or "development")


# Root endpoint
@app.get("/")
async def read_root():
    """Return a simple message to indicate the API is working."""
    return {"message": "IVMS API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
