"""FastAPI application initialization."""

import os
from contextlib import asynccontextmanager

import logfire
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration

from src.api import chat, health
from src.config import get_settings
from src.logging_config import setup_logfire
from src.middleware.rate_limit_gate import RateLimitGateMiddleware
from src.services.upstash_redis import close_upstash_redis

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    settings = get_settings()

    # Fail fast on an enabled gate without a backing store
    settings.validate_rate_limit_gate()

    # Initialize Logfire for observability
    setup_logfire(app)

    # Initialize Sentry if DSN is provided
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            send_default_pii=False,
            integrations=[FastApiIntegration()],
        )

    logfire.info(
        "Application startup complete",
        model=settings.default_model,
        environment=settings.env,
        rate_limit_gate_enabled=settings.rate_limit_gate_enabled,
    )

    yield

    # Shutdown
    await close_upstash_redis()
    logfire.info("Application shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Web Context Chat API",
    description="Chat assistant that reads the web pages and documents you share",
    version=APP_VERSION,
    lifespan=lifespan,
)

# Sliding-window gate on /api/chat (no-op unless RATE_LIMIT_GATE_ENABLED)
app.add_middleware(RateLimitGateMiddleware)

# CORS middleware for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Register routers
app.include_router(health.router, tags=["health"])
app.include_router(chat.router, prefix="/api", tags=["chat"])


@app.get("/")
def root():
    """Root endpoint."""
    settings = get_settings()
    return {
        "message": "Web Context Chat API",
        "model": settings.default_model,
        "version": APP_VERSION,
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "src.main:app", host="0.0.0.0", port=port, reload=os.getenv("ENV") == "local"
    )
