"""
Estimate API

FastAPI app for the contractor estimate workflow.

Responsibilities:
- Resolve contractor sessions (cookie or bearer token)
- Serve contractor, technician and homeowner routes
- Render domain errors as {"error": ...} with their HTTP status
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from basecore.logging import setup_logging
from basecore.settings import get_settings
from estimate_core.errors import EstimateCoreError
from estimate_core.persistence import init_db
from estimate_api.router import contractor_router, homeowner_router

setup_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(
    title="Estimate API",
    description="Contractor estimates, technician handoffs and pricing overrides",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(contractor_router)
app.include_router(homeowner_router)


@app.on_event("startup")
def startup():
    """Create tables that do not exist yet."""
    try:
        init_db()
        logger.info("Estimate API started", extra={"environment": settings.ENVIRONMENT})
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


@app.exception_handler(EstimateCoreError)
async def estimate_core_error_handler(request: Request, exc: EstimateCoreError):
    if exc.status_code >= 500:
        logger.error(f"Request failed: {exc.message}", extra={"path": request.url.path})
    else:
        logger.info(
            f"Request rejected: {exc.message}",
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    unknown = sorted(
        str(error["loc"][-1]) for error in exc.errors() if error.get("type") == "extra_forbidden"
    )
    if unknown:
        return JSONResponse(
            status_code=400,
            content={"error": f"Unknown fields: {', '.join(unknown)}"},
        )
    return JSONResponse(status_code=400, content={"error": "Malformed request body"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    content = {"error": "Internal server error"}
    if get_settings().is_development:
        content["details"] = str(exc)
    return JSONResponse(status_code=500, content=content)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "estimate-api"}
