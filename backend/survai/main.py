"""
SurvAI - Survey offers with EPC-driven ordering
Main FastAPI Application
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from urllib.parse import urlparse

from survai.core.config import settings
from survai.api.tracking import router as tracking_router
from survai.api.presentation import router as presentation_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting SurvAI API...")
    try:
        db_host = urlparse(getattr(settings, "DATABASE_URL", "")).hostname
        logger.info("Config: db_host=%s env=%s", db_host, settings.ENVIRONMENT)
    except ValueError:
        logger.info("Config: env=%s", settings.ENVIRONMENT)
    logger.info(
        "EPC config: window_days=%s timeout_seconds=%s offer_limit=%s",
        settings.EPC_WINDOW_DAYS,
        settings.EPC_TIMEOUT_SECONDS,
        settings.RANKED_OFFER_LIMIT,
    )
    yield
    logger.info("Shutting down SurvAI API...")


app = FastAPI(
    title="SurvAI API",
    description="Survey offers with click tracking and EPC-driven ordering",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tracking_router, prefix="/api/track", tags=["tracking"])
app.include_router(presentation_router, prefix="/api", tags=["presentation"])


@app.get("/health")
async def health_check():
    """Liveness check (should be fast and not depend on external services)."""
    return {
        "status": "ok",
        "service": "survai-backend",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/ready")
def readiness_check():
    """Readiness check (verifies the database)."""
    try:
        from sqlalchemy import text

        from survai.core.database import SessionLocal

        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()

        return {"status": "ready", "db": "ok"}
    except Exception as e:
        return JSONResponse(status_code=503, content={"status": "not_ready", "error": str(e)})


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "SurvAI API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }
