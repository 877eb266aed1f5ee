import logging
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import settings, resolve_bridge_config
from app.routes import widget

# Configure logging
logger = logging.getLogger("app")

# --- Logging Configuration ---
# Determine log level based on settings
log_level = logging.DEBUG if settings.DEBUG else logging.getLevelName(settings.LOG_LEVEL.upper())
if not isinstance(log_level, int):
    log_level = logging.INFO

# Configure root logger
logging.basicConfig(level=log_level, stream=sys.stdout,
                    format='%(levelname)s:%(name)s:%(lineno)d - %(message)s')

# Set specific loggers to WARNING to reduce verbosity
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

logger.info(f"Root logger configured with level: {logging.getLevelName(log_level)}")
# --- End Logging Configuration ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Application starting up...")
    config = resolve_bridge_config(settings.plugin_config())
    if not config.is_configured:
        # Not fatal: the summary route answers 500 plugin_not_configured until a token is set
        logger.warning("WIDGET_API_TOKEN is not set; /widget/summary will report plugin_not_configured.")
    logger.info(f"Gateway CLI: {config.cli_path}, timeout {config.timeout_ms}ms, default days {config.default_days}")
    logger.info("Application startup complete.")
    yield
    # Code to run on shutdown
    logger.info("Application shutting down...")

app = FastAPI(
    title="OpenClaw Widget Bridge",
    description="Authenticated gateway health and usage-cost summary for dashboard widgets.",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False
)

# Instrument the app after creation
# This automatically exposes /metrics and adds default metrics (latency, requests)
Instrumentator().instrument(app).expose(app)

# Middleware for logging requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    # Log request details safely (never the Authorization header)
    client_host = request.client.host if request.client else "unknown_client"
    logger.info(f"Request: {request.method} {request.url.path} {client_host}")
    response = await call_next(request)
    # Log response status code
    logger.info(f"Response: {response.status_code}")
    return response

# CORS Middleware
if settings.CORS_ALLOWED_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["Authorization"],
    )
    logger.info(f"CORS enabled for origins: {settings.CORS_ALLOWED_ORIGINS}")
else:
    logger.debug("CORS_ALLOWED_ORIGINS not set, CORS middleware not added.")

# Include routers
widget.register(app, prefix=settings.API_PREFIX)


@app.get("/health", tags=["System"])
async def health_check():
    """Basic health check endpoint for the bridge itself."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting uvicorn development server on {settings.DEV_SERVER_HOST}:{settings.DEV_SERVER_PORT} with reload={'enabled' if settings.DEV_SERVER_RELOAD else 'disabled'}")
    uvicorn.run(
        "app.main:app",
        host=settings.DEV_SERVER_HOST,
        port=settings.DEV_SERVER_PORT,
        reload=settings.DEV_SERVER_RELOAD
    )
