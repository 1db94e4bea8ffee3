"""
FastAPI application entry point.

Sets up the readiness API with middleware, exception handlers and routers.
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routers import readiness
from core.config import settings
from core.logging import setup_logging
from core.exceptions import APIException
from core.security_headers import SecurityHeadersMiddleware
from services.readiness import METHODOLOGIES, ReadinessError, get_monitoring_config
import logging
import time

setup_logging()
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
DOCS_ENABLED = settings.DEBUG or settings.EXPOSE_API_DOCS

app = FastAPI(
    title="Athlete Readiness API",
    description="Daily readiness scoring from HRV, resting HR, wellness and workload, with workout modification",
    version=API_VERSION,
    docs_url="/docs" if DOCS_ENABLED else None,
    redoc_url="/redoc" if DOCS_ENABLED else None,
)


@app.on_event("startup")
async def load_monitoring_rules():
    """Fail fast on a broken rules file instead of on the first request."""
    config = get_monitoring_config()
    logger.info(
        f"Readiness rules loaded: weights={config.composite.weights}, "
        f"methodologies={METHODOLOGIES.names()}"
    )


def _allowed_origins():
    # DEBUG allows everything; deployments list origins in CORS_ORIGINS
    if settings.DEBUG:
        return ["*"]
    return settings.cors_origin_list() or ["http://localhost:3000", "http://127.0.0.1:3000"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)


def _request_fields(request: Request, **fields):
    return {"extra_fields": {"method": request.method, "path": request.url.path, **fields}}


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its status and timing."""
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Request failed: {request.method} {request.url.path}",
            exc_info=True,
            extra=_request_fields(request, error=str(e)),
        )
        raise

    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms} ms)",
        extra=_request_fields(request, status_code=response.status_code, process_time_ms=elapsed_ms),
    )
    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    return response


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(),
        headers=exc.headers,
    )


@app.exception_handler(ReadinessError)
async def readiness_exception_handler(request: Request, exc: ReadinessError):
    """Typed computation errors that escaped a router."""
    logger.warning(
        f"Readiness error: {exc.error_code} {exc.message}",
        extra=_request_fields(request, error_code=exc.error_code),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "error_code": exc.error_code, "details": exc.details},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True, extra=_request_fields(request))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "error_code": "INTERNAL_ERROR"},
    )


@app.get("/health")
async def health():
    """No database or cache behind this service, so healthy means the rules loaded."""
    config = get_monitoring_config()
    return {
        "status": "healthy",
        "version": API_VERSION,
        "environment": settings.ENVIRONMENT,
        "methodologies": len(METHODOLOGIES.names()),
        "factor_weights": config.composite.weights,
    }


@app.get("/ping")
async def ping():
    return {"pong": True}


app.include_router(readiness.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT)
