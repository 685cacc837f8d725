"""
Gemelo - Survey answers from your digital twin
FastAPI Backend with multi-provider generation
"""

from contextlib import asynccontextmanager
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from routers import survey, users
from errors import GemeloError, NotFoundError, ValidationError, error_response
from logging_config import setup_logging
from config import runtime_config

setup_logging()
logger = logging.getLogger(__name__)

# Instance ID - changes on every startup, used by frontend to detect restarts
INSTANCE_ID = str(uuid.uuid4())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Startup
    from services.storage import get_store
    from tools.registry import ToolRegistry, register_all_tools

    register_all_tools()
    logger.info(f"Tool registry ready ({len(ToolRegistry.get_all_tools())} tools)")

    if runtime_config.seed_demo_user:
        try:
            demo = get_store().seed_demo_user()
            logger.info(f"Demo user available (id={demo.id})")
        except OSError as e:
            logger.warning(f"Demo user could not be seeded: {e}")

    providers = runtime_config.configured_providers()
    for name, configured in providers.items():
        if not configured:
            logger.warning(f"Provider {name} has no credentials - requests routed to it will fail")

    logger.info("Gemelo ready")
    yield
    # Shutdown
    logger.info("Gemelo signing off")


app = FastAPI(
    title="Gemelo",
    description="Survey answers from your digital twin",
    version="1.0.0",
    lifespan=lifespan,
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Referrer policy for privacy
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# Request body size limit (base64 images inflate ~4/3)
MAX_BODY_SIZE_API = 10 * 1024 * 1024


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests with bodies exceeding the size limit."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            size = int(content_length)
            if size > MAX_BODY_SIZE_API:
                return JSONResponse(
                    status_code=413,
                    content={"message": f"Request body too large ({size} bytes, limit {MAX_BODY_SIZE_API} bytes)"},
                )
        return await call_next(request)


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)

# CORS - restrict to localhost and private network IPs
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1|192\.168\.\d+\.\d+)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error rendering: every failure body is {message, details?}
# =============================================================================


@app.exception_handler(GemeloError)
async def gemelo_error_handler(request: Request, exc: GemeloError):
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, ValidationError):
        status = 400
    else:
        status = 500
        logger.error(f"Unhandled {exc.code.value} on {request.url.path}: {exc}")
    return JSONResponse(status_code=status, content=error_response(exc))


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)


def _summarize_validation_error(exc: RequestValidationError) -> str:
    """One line for the first failing field, e.g. 'body.question: Field required'."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected request to {request.url.path}: {len(exc.errors())} validation error(s)")
    body = ValidationError("Invalid request", details=_summarize_validation_error(exc))
    return JSONResponse(status_code=400, content=error_response(body))


# API Routers
app.include_router(survey.router, prefix="/api/survey", tags=["survey"])
app.include_router(users.router, prefix="/api/users", tags=["users"])


@app.get("/health")
async def health():
    """Liveness plus which providers have credentials."""
    providers = runtime_config.configured_providers()
    return {
        "status": "ok" if any(providers.values()) else "degraded",
        "instance_id": INSTANCE_ID,
        "providers": providers,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
